"""Failure taxonomy shared by the auth, decode, build and dispatch stages."""

from enum import Enum
from typing import Optional


class AuthFailure(str, Enum):
    MISSING = "missing"
    MALFORMED = "malformed"
    MISMATCH = "mismatch"
    # The credential needed to check the request is not configured
    DISABLED = "disabled"


class DecodeFailure(str, Enum):
    UNSUPPORTED = "unsupported"
    MISSING = "missing"
    MALFORMED = "malformed"


class MercuryError(Exception):
    """Base class for errors raised by the relay core."""


class AuthError(MercuryError):
    def __init__(self, reason: AuthFailure):
        super().__init__(reason.value)
        self.reason = reason


class DecodeError(MercuryError):
    """An inbound payload could not be mapped onto a supported event.

    The message is safe to return to the caller: it only describes input
    the caller sent.
    """

    def __init__(self, kind: DecodeFailure, field: Optional[str], reason: str):
        self.kind = kind
        self.field = field
        self.reason = reason
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.reason}"
        return self.reason

    @classmethod
    def missing(cls, field: str) -> "DecodeError":
        return cls(DecodeFailure.MISSING, field, "field required")

    @classmethod
    def malformed(cls, field: str, reason: str) -> "DecodeError":
        return cls(DecodeFailure.MALFORMED, field, reason)

    @classmethod
    def unsupported(cls, field: Optional[str], reason: str) -> "DecodeError":
        return cls(DecodeFailure.UNSUPPORTED, field, reason)


class MessageValidationError(MercuryError):
    def __init__(self, field: str):
        super().__init__(f"{field}: must not be empty")
        self.field = field


class DispatchError(MercuryError):
    """Delivery to the messaging backend failed for good."""

    def __init__(self, cause: str, attempts: int, transient: bool, timed_out: bool = False):
        super().__init__(cause)
        self.cause = cause
        self.attempts = attempts
        self.transient = transient
        self.timed_out = timed_out


class BodyTooLarge(MercuryError):
    """The request body grew past the configured limit while being read."""

    def __init__(self, max_body_size: int):
        super().__init__(f"Request body too large. Max size is {max_body_size} bytes.")
        self.max_body_size = max_body_size
