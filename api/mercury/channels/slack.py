"""Slack channel adapter for the ``chat.postMessage`` Web API method.

Messages use Block Kit with a plain-text section for the foreign copy and
small context blocks underneath it for a team mention and a link. Plain text
is safe for caller-supplied input; mrkdwn is only used for the mention and
the link, which we format ourselves.
"""

import json
from typing import Optional
from urllib.parse import urlparse

from mercury.builder import NormalizedMessage
from mercury.channels import ChannelPayload

POST_MESSAGE_PATH = "/chat.postMessage"

# Mention targets accepted in the `cc` form field, mapped to Slack user group
# IDs. Hardcoded so callers can use a shorthand; groups rarely change.
USER_GROUPS = {
    "web": "SAWPVDSUW",
    "api": "SAVLBV4J0",
}

# Slack error codes (ok: false) that are worth another attempt
TRANSIENT_ERRORS = {
    "ratelimited",
    "service_unavailable",
    "internal_error",
    "fatal_error",
    "request_timeout",
}


def format_link(url: str) -> str:
    """
    Prettify a URL as a mrkdwn link, reducing verbosity.

    ``https://www.unsplash.com/it?set_locale=it-IT`` becomes
    ``<https://www.unsplash.com/it?set_locale=it-IT|unsplash.com/it>``.
    URLs without a host are returned as-is.
    """
    parsed = urlparse(url)
    host = parsed.hostname
    if not host:
        return url

    if host.startswith("www."):
        host = host[len("www."):]
    path = "" if parsed.path in ("", "/") else parsed.path
    return f"<{url}|{host}{path}>"


def format_mention(cc: str) -> str:
    return f"cc <!subteam^{USER_GROUPS[cc]}>"


def build_blocks(message: NormalizedMessage) -> list[dict]:
    text = f"{message.title}: {message.description}" if message.description else message.title
    blocks = [{"type": "section", "text": {"type": "plain_text", "text": text}}]

    if message.cc:
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": format_mention(message.cc)}],
        })

    if message.link:
        blocks.append({
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": format_link(message.link)}],
        })

    return blocks


def format_slack(message: NormalizedMessage, api_base: str, token: str) -> ChannelPayload:
    """Format a message as a ``chat.postMessage`` request."""
    fallback = f"{message.title}: {message.description}" if message.description else message.title
    body = {
        "channel": message.channel,
        "text": fallback,
        "blocks": build_blocks(message),
    }

    return ChannelPayload(
        method="POST",
        url=api_base.rstrip("/") + POST_MESSAGE_PATH,
        headers={
            "Content-Type": "application/json; charset=utf-8",
            "Authorization": f"Bearer {token}",
        },
        body=json.dumps(body),
    )


def api_error(body: object) -> Optional[str]:
    """Return Slack's error code for an ``ok: false`` response, else None."""
    if isinstance(body, dict) and body.get("ok") is True:
        return None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return "invalid_response"
