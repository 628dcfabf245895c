"""Reduce every inbound event to the one message shape the dispatcher sends."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from mercury.errors import MessageValidationError
from mercury.events import (
    ConfigVarChange,
    DirectMessage,
    DynoCrash,
    NotificationEvent,
    Rollback,
    SlackDestination,
)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"

DYNO_CRASH_TITLE = "☢️ Dyno crashed"
ROLLBACK_TITLE = "🏳️ Rollback"
CONFIG_VAR_CHANGE_TITLE = "⚙️ Config vars changed"


@dataclass(frozen=True)
class NormalizedMessage:
    channel: str
    title: str
    description: str
    link: Optional[str] = None
    cc: Optional[str] = None


def format_timestamp(at: datetime) -> str:
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def normalize_channel(channel: str) -> str:
    # Slack channel names can't contain '#', so a leading one is decoration
    return channel.strip().lstrip("#")


def _require(field: str, value: str) -> str:
    if not value.strip():
        raise MessageValidationError(field)
    return value


def build(
    event: NotificationEvent,
    destination: Optional[SlackDestination] = None,
) -> NormalizedMessage:
    """Render ``event`` as a message.

    Direct messages carry their own channel. Heroku events are sent to
    ``destination``, which is then required, and never carry a link or a
    mention.

    Raises:
        MessageValidationError: channel or title is empty.
    """
    if isinstance(event, DirectMessage):
        return NormalizedMessage(
            channel=_require("channel", normalize_channel(event.channel)),
            title=_require("title", event.title),
            description=event.description,
            link=event.link,
            cc=event.cc,
        )

    if destination is None:
        raise ValueError(f"{type(event).__name__} needs a destination")
    channel = _require("channel", normalize_channel(destination.channel))

    if isinstance(event, DynoCrash):
        title = DYNO_CRASH_TITLE
        description = (
            f"{event.app}: dyno {event.dyno} crashed with status code "
            f"{event.exit_status} at {format_timestamp(event.at)}"
        )
    elif isinstance(event, Rollback):
        title = ROLLBACK_TITLE
        description = (
            f"{event.app}: rolled back to {event.release} at {format_timestamp(event.at)}"
        )
    elif isinstance(event, ConfigVarChange):
        title = CONFIG_VAR_CHANGE_TITLE
        description = (
            f"{event.app}: config vars changed ({event.change}) at {format_timestamp(event.at)}"
        )
    else:
        raise TypeError(f"Unsupported event: {type(event).__name__}")

    return NormalizedMessage(channel=channel, title=title, description=description)
