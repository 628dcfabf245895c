"""Post a message to any Slack channel on behalf of an authorized caller."""

from fastapi import APIRouter, Depends, Request

from mercury.auth import require_bearer
from mercury.builder import build
from mercury.channels.dispatcher import Dispatcher
from mercury.decoding import FORM_CONTENT_TYPES, check_content_type, decode_direct
from mercury.dependencies import deliver, get_dispatcher

router = APIRouter(tags=["slack"])


@router.post("", dependencies=[Depends(require_bearer)], summary="Send a message")
async def send_message(request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """
    Accepts ``channel``, ``title``, ``desc`` and an optional ``link`` as an
    ``application/x-www-form-urlencoded`` body. A ``Bearer`` ``Authorization``
    header matching ``$SLACK_TOKEN`` is required.
    """
    check_content_type(request.headers, FORM_CONTENT_TYPES)
    form = await request.form()
    message = build(decode_direct(form))
    attempts = await deliver(dispatcher, message)
    return {"status": "delivered", "attempts": attempts}
