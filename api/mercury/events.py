"""The closed set of events the relay knows how to turn into messages."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union


@dataclass(frozen=True)
class DirectMessage:
    channel: str
    title: str
    description: str
    link: Optional[str] = None
    # A key of the Slack user group table, e.g. "web"
    cc: Optional[str] = None


@dataclass(frozen=True)
class DynoCrash:
    app: str
    dyno: str
    at: datetime
    exit_status: int


@dataclass(frozen=True)
class Rollback:
    app: str
    release: str
    at: datetime


@dataclass(frozen=True)
class ConfigVarChange:
    app: str
    at: datetime
    change: str


HerokuEvent = Union[DynoCrash, Rollback, ConfigVarChange]
NotificationEvent = Union[DirectMessage, DynoCrash, Rollback, ConfigVarChange]


@dataclass(frozen=True)
class SlackDestination:
    channel: str

