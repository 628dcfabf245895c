"""Decode Heroku webhook requests into notification events.

Webhooks are created on Heroku's side with Mercury's ``/api/v1/heroku/hook``
endpoint as the target. The ``platform`` query param names where messages go,
along with that platform's own params, for example
``/api/v1/heroku/hook?platform=slack&channel=playground``.

The (platform, resource) pair selects a decoder from a static table. Anything
outside the table is a ``DecodeError``. Payloads for a known resource that
describe nothing worth reporting (a dyno starting, a deploy, the "create"
half of a release) raise ``EventIgnored`` instead.
"""

import json
import re
from datetime import datetime, timezone
from typing import Callable, Mapping

from pydantic import BaseModel, ValidationError

from mercury.decoding import JSON_CONTENT_TYPES, check_content_type
from mercury.errors import DecodeError
from mercury.events import ConfigVarChange, DynoCrash, HerokuEvent, Rollback, SlackDestination
from mercury.schemas.heroku import DynoHook, ReleaseHook

PLATFORMS = ("slack",)

_ROLLBACK_RE = re.compile(r"^Rollback to (?P<release>.+)$")
_CONFIG_VARS_RE = re.compile(r"^(?P<change>.+) config vars$")


class EventIgnored(Exception):
    """A well-formed webhook for an event we deliberately do not forward."""

    def __init__(self, resource: str, reason: str):
        super().__init__(f"{resource}: {reason}")
        self.resource = resource
        self.reason = reason


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _validate(model: type[BaseModel], payload: dict) -> BaseModel:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        err = exc.errors()[0]
        field = ".".join(str(part) for part in err["loc"]) or "body"
        if err["type"] == "missing":
            raise DecodeError.missing(field) from None
        raise DecodeError.malformed(field, err["msg"]) from None


def _utc(at: datetime) -> datetime:
    if at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc)


def _platform(query_params: Mapping[str, str]) -> str:
    platform = query_params.get("platform")
    if not platform:
        raise DecodeError.missing("platform")
    if platform not in PLATFORMS:
        raise DecodeError.unsupported(
            "platform", f"unknown platform '{platform}', expected one of: {', '.join(PLATFORMS)}"
        )
    return platform


# ---------------------------------------------------------------------------
# Per-resource decoders
# ---------------------------------------------------------------------------


def _decode_dyno(payload: dict) -> HerokuEvent:
    hook = _validate(DynoHook, payload)
    data = hook.data

    # A crash of a one-off `heroku run` dyno is the user's business
    crashed = (
        data.state == "crashed"
        and data.type != "run"
        and data.exit_status is not None
        and data.exit_status > 0
    )
    if not crashed:
        raise EventIgnored("dyno", f"state '{data.state}' of {data.type} dyno is not a crash")

    return DynoCrash(
        app=data.app.name,
        dyno=data.name,
        at=_utc(hook.created_at),
        exit_status=data.exit_status,
    )


def _decode_release(payload: dict) -> HerokuEvent:
    hook = _validate(ReleaseHook, payload)

    # Heroku sends "create" then "update" for the same release; report once
    if hook.action != "update":
        raise EventIgnored("release", f"action '{hook.action}' is not reported")

    app = hook.data.app.name
    at = _utc(hook.created_at)
    description = hook.data.description

    match = _ROLLBACK_RE.match(description)
    if match:
        return Rollback(app=app, release=match.group("release"), at=at)

    match = _CONFIG_VARS_RE.match(description)
    if match:
        return ConfigVarChange(app=app, at=at, change=match.group("change"))

    # Deploys, add-on changes and the like
    raise EventIgnored("release", f"description '{description}' is not reported")


_DECODERS: dict[tuple[str, str], Callable[[dict], HerokuEvent]] = {
    ("slack", "dyno"): _decode_dyno,
    ("slack", "release"): _decode_release,
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def decode(
    headers: Mapping[str, str],
    query_params: Mapping[str, str],
    body: bytes,
) -> HerokuEvent:
    check_content_type(headers, JSON_CONTENT_TYPES)
    platform = _platform(query_params)

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise DecodeError.malformed("body", "invalid JSON") from None
    if not isinstance(payload, dict):
        raise DecodeError.malformed("body", "expected a JSON object")

    resource = payload.get("resource")
    if resource is None:
        raise DecodeError.missing("resource")
    if not isinstance(resource, str):
        raise DecodeError.malformed("resource", "expected a string")

    decoder = _DECODERS.get((platform, resource))
    if decoder is None:
        raise DecodeError.unsupported(
            "resource", f"unsupported resource '{resource}' for platform '{platform}'"
        )
    return decoder(payload)


def decode_destination(query_params: Mapping[str, str]) -> SlackDestination:
    _platform(query_params)
    channel = query_params.get("channel")
    if channel is None:
        raise DecodeError.missing("channel")
    return SlackDestination(channel=channel)
