"""Heroku webhook receiver."""

import logging

from fastapi import APIRouter, Depends, Request

from mercury.auth import require_heroku_signature
from mercury.builder import build
from mercury.channels.dispatcher import Dispatcher
from mercury.decoding import JSON_CONTENT_TYPES, check_content_type
from mercury.dependencies import deliver, get_dispatcher
from mercury.heroku.decoder import EventIgnored, decode, decode_destination

logger = logging.getLogger(__name__)

router = APIRouter(tags=["heroku"])


@router.post(
    "/hook",
    dependencies=[Depends(require_heroku_signature)],
    summary="Receive a Heroku webhook",
)
async def receive_hook(request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """
    A ``Heroku-Webhook-Hmac-SHA256`` header carrying the base64 HMAC-SHA256 of
    the raw body, keyed with ``$HEROKU_SECRET``, is required. Without
    ``$HEROKU_SECRET`` the route answers 404.
    """
    check_content_type(request.headers, JSON_CONTENT_TYPES)
    destination = decode_destination(request.query_params)
    body = await request.body()

    try:
        event = decode(request.headers, request.query_params, body)
    except EventIgnored as e:
        logger.info("Ignoring Heroku webhook: %s", e)
        return {"status": "ignored"}

    message = build(event, destination)
    attempts = await deliver(dispatcher, message)
    return {"status": "delivered", "attempts": attempts}
