"""Request authorization: bearer tokens and Heroku webhook signatures.

Both policies are pure functions of the inbound request and the configured
credentials. Secrets are compared with ``constant_time_equals``, which never
exits early and always walks the same number of bytes.
"""

import base64
import binascii
import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from fastapi import Request

from mercury.config import SecretStore
from mercury.decoding import get_header
from mercury.errors import AuthError, AuthFailure

logger = logging.getLogger(__name__)

HEROKU_SIGNATURE_HEADER = "Heroku-Webhook-Hmac-SHA256"

_DIGEST_SIZE = hashlib.sha256().digest_size


@dataclass(frozen=True)
class InboundRequest:
    headers: Mapping[str, str]
    query_params: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Authorized:
    pass


@dataclass(frozen=True)
class Unauthorized:
    reason: AuthFailure


@dataclass(frozen=True)
class Disabled:
    """The policy has no credential to check against."""

    reason: AuthFailure = AuthFailure.DISABLED


AuthOutcome = Union[Authorized, Unauthorized, Disabled]


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BearerPolicy:
    token: bytes


@dataclass(frozen=True)
class HmacPolicy:
    secret: Optional[bytes]
    header: str = HEROKU_SIGNATURE_HEADER


Policy = Union[BearerPolicy, HmacPolicy]


def constant_time_equals(provided: bytes, expected: bytes) -> bool:
    """Compare two byte strings without leaking where or whether they differ.

    Both inputs are first reduced to fixed-size SHA-256 digests so the loop
    below always runs over the same number of bytes, whatever the lengths.
    Differences are OR-accumulated and only inspected once at the end.
    """
    a = hashlib.sha256(provided).digest()
    b = hashlib.sha256(expected).digest()

    diff = len(provided) ^ len(expected)
    for i in range(_DIGEST_SIZE):
        diff |= a[i] ^ b[i]
    return diff == 0


def _check_bearer(request: InboundRequest, policy: BearerPolicy) -> AuthOutcome:
    header = get_header(request.headers, "Authorization")
    if header is None:
        return Unauthorized(AuthFailure.MISSING)

    scheme, _, token = header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return Unauthorized(AuthFailure.MALFORMED)

    if constant_time_equals(token.encode("utf-8"), policy.token):
        return Authorized()
    return Unauthorized(AuthFailure.MISMATCH)


def _check_hmac(request: InboundRequest, policy: HmacPolicy) -> AuthOutcome:
    if policy.secret is None:
        return Disabled()

    header = get_header(request.headers, policy.header)
    if header is None:
        return Unauthorized(AuthFailure.MISSING)

    try:
        provided = base64.b64decode(header.strip(), validate=True)
    except (binascii.Error, ValueError):
        return Unauthorized(AuthFailure.MALFORMED)
    if len(provided) != _DIGEST_SIZE:
        return Unauthorized(AuthFailure.MALFORMED)

    # Must be the raw body exactly as received
    expected = hmac.new(policy.secret, request.body, hashlib.sha256).digest()
    if constant_time_equals(provided, expected):
        return Authorized()
    return Unauthorized(AuthFailure.MISMATCH)


def authorize(request: InboundRequest, policy: Policy) -> AuthOutcome:
    if isinstance(policy, BearerPolicy):
        return _check_bearer(request, policy)
    if isinstance(policy, HmacPolicy):
        return _check_hmac(request, policy)
    raise TypeError(f"Unknown auth policy: {type(policy).__name__}")


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------


def get_secrets(request: Request) -> SecretStore:
    return request.app.state.secrets


def _reject(outcome: AuthOutcome, request: Request) -> None:
    if isinstance(outcome, Authorized):
        return
    client = request.client.host if request.client else "unknown"
    if isinstance(outcome, Disabled):
        logger.warning(
            "Rejected %s %s from %s: route disabled (no webhook secret configured)",
            request.method, request.url.path, client,
        )
        raise AuthError(outcome.reason)

    logger.warning(
        "Rejected %s %s from %s: %s credential",
        request.method, request.url.path, client, outcome.reason.value,
    )
    raise AuthError(outcome.reason)


async def require_bearer(request: Request) -> None:
    secrets = get_secrets(request)
    inbound = InboundRequest(headers=request.headers, query_params=request.query_params)
    _reject(authorize(inbound, BearerPolicy(secrets.bearer_token)), request)


async def require_heroku_signature(request: Request) -> None:
    secrets = get_secrets(request)
    policy = HmacPolicy(secrets.webhook_secret)
    if policy.secret is None:
        # Skip reading the body for a route that does not exist
        _reject(Disabled(), request)

    inbound = InboundRequest(
        headers=request.headers,
        query_params=request.query_params,
        body=await request.body(),
    )
    _reject(authorize(inbound, policy), request)
