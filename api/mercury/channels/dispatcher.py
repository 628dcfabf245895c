"""Send normalized messages to Slack with bounded retries."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

import httpx

from mercury.builder import NormalizedMessage
from mercury.channels import ChannelPayload
from mercury.channels.slack import TRANSIENT_ERRORS, api_error, format_slack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Delivered:
    attempts: int


@dataclass(frozen=True)
class Failed:
    cause: str
    attempts: int
    transient: bool
    timed_out: bool = False


DispatchResult = Union[Delivered, Failed]


@dataclass(frozen=True)
class _AttemptFailure:
    cause: str
    transient: bool
    timed_out: bool = False


class Dispatcher:
    """
    Deliver messages through Slack's ``chat.postMessage``.

    Each attempt is exactly one HTTP request. Timeouts, connection errors,
    429s, 5xx responses and Slack's own transient error codes are retried up
    to ``retries`` more times with exponential backoff; anything else fails
    straight away. Nothing is kept between calls to ``dispatch``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_base: str,
        token: str,
        timeout: float = 10.0,
        retries: int = 2,
        backoff: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.client = client
        self.api_base = api_base
        self.token = token
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the attempt following attempt number ``attempt``."""
        return self.backoff * (2 ** (attempt - 1))

    async def dispatch(self, message: NormalizedMessage) -> DispatchResult:
        # Built once so every retry sends the identical request
        payload = format_slack(message, self.api_base, self.token)
        max_attempts = 1 + self.retries
        attempt = 0

        while True:
            attempt += 1
            failure = await self._attempt(payload)

            if failure is None:
                logger.info(
                    "Delivered message to #%s after %d attempt(s)", message.channel, attempt
                )
                return Delivered(attempts=attempt)

            if not failure.transient or attempt >= max_attempts:
                logger.error(
                    "Delivery to #%s failed after %d attempt(s): %s",
                    message.channel, attempt, failure.cause,
                )
                return Failed(
                    cause=failure.cause,
                    attempts=attempt,
                    transient=failure.transient,
                    timed_out=failure.timed_out,
                )

            delay = self.backoff_delay(attempt)
            logger.warning(
                "Attempt %d/%d to #%s failed (%s), retrying in %.2fs",
                attempt, max_attempts, message.channel, failure.cause, delay,
            )
            # Cancellation of the caller lands here, between attempts
            await self._sleep(delay)

    async def _attempt(self, payload: ChannelPayload) -> Optional[_AttemptFailure]:
        # A request already on the wire is allowed to finish even if the
        # caller goes away, so its delivery state is never left ambiguous.
        task = asyncio.ensure_future(self._send(payload))
        return await asyncio.shield(task)

    async def _send(self, payload: ChannelPayload) -> Optional[_AttemptFailure]:
        try:
            response = await self.client.request(
                method=payload.method,
                url=payload.url,
                headers=payload.headers,
                content=payload.body,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            return _AttemptFailure(f"timeout: {type(e).__name__}", transient=True, timed_out=True)
        except httpx.NetworkError as e:
            return _AttemptFailure(f"connection error: {type(e).__name__}: {e}", transient=True)
        except httpx.RequestError as e:
            return _AttemptFailure(f"request error: {type(e).__name__}: {e}", transient=False)

        status = response.status_code
        if status == 429 or status >= 500:
            return _AttemptFailure(f"HTTP {status}", transient=True)
        if status >= 400:
            return _AttemptFailure(f"HTTP {status}: {response.text[:200]}", transient=False)

        try:
            body = response.json()
        except ValueError:
            return _AttemptFailure(f"HTTP {status}: response is not JSON", transient=False)

        error = api_error(body)
        if error is None:
            return None
        return _AttemptFailure(f"Slack API error: {error}", transient=error in TRANSIENT_ERRORS)
