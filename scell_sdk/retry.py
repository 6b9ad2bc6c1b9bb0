"""Retry policy and backoff for Scell API requests.

The policy decides *whether* to retry and *how long* to wait; tenacity
drives the attempt loop around a single-attempt send coroutine. Keeping the
two apart lets the policy be tested without any network mechanics.
"""

import asyncio
import random
import time
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Optional, TypeVar, Union

import httpx
from tenacity import AsyncRetrying, RetryCallState, stop_never

from .logging import get_logger
from .models import IDEMPOTENT_METHODS, ApiRequest, HttpMethod

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_MS = 100
DEFAULT_JITTER_RATIO = 0.25

# Failures where no response was received
CONNECTION_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def is_connection_error(exc: Optional[BaseException]) -> bool:
    """True if ``exc`` means the request never produced a response."""
    return isinstance(exc, CONNECTION_ERRORS)


def parse_retry_after_ms(value: str, now: Optional[float] = None) -> Optional[int]:
    """
    Parse a ``Retry-After`` header value into milliseconds.

    Supports:
    - Retry-After: 120 (seconds)
    - Retry-After: Wed, 21 Oct 2026 07:28:00 GMT (HTTP-date)

    Args:
        value: Raw header value
        now: Current unix time (default: ``time.time()``)

    Returns:
        Delay in milliseconds (never negative), or None if unparseable
    """
    value = value.strip()
    if not value:
        return None

    try:
        return max(0, int(float(value)) * 1000)
    except (ValueError, OverflowError):
        pass

    try:
        target = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if target is None:
        return None
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)

    current = time.time() if now is None else now
    return max(0, int((target.timestamp() - current) * 1000))


class RetryPolicy:
    """Retry decision and backoff computation."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
        jitter_ratio: float = DEFAULT_JITTER_RATIO,
        rng: Optional[random.Random] = None,
    ):
        """Initialize the policy.

        Args:
            max_retries: Retries allowed after the first attempt (default: 3)
            base_delay_ms: Backoff base in milliseconds (default: 100)
            jitter_ratio: Upper bound of the jitter, as a fraction of the delay
            rng: Random source, injectable for deterministic tests
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if base_delay_ms < 0:
            raise ValueError("base_delay_ms must be >= 0")
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.jitter_ratio = jitter_ratio
        self._rng = rng or random.Random()

    def should_retry(
        self,
        retries: int,
        method: Union[HttpMethod, str],
        response: Optional[httpx.Response] = None,
        exception: Optional[BaseException] = None,
    ) -> bool:
        """Decide whether another attempt should be made.

        Args:
            retries: Retries already performed (0 after the first attempt)
            method: HTTP method of the request
            response: Response of the last attempt, if any
            exception: Transport error of the last attempt, if any

        Returns:
            True if the request should be sent again
        """
        if retries >= self.max_retries:
            return False

        if is_connection_error(exception):
            return True

        if response is None:
            return False

        status_code = response.status_code

        if not _is_idempotent(method):
            # 408 is deliberately not retried here
            return status_code >= 500 or status_code == 429

        return status_code in RETRYABLE_STATUS_CODES

    def compute_delay_ms(
        self,
        retries: int,
        response: Optional[httpx.Response] = None,
    ) -> int:
        """Milliseconds to wait before retry number ``retries + 1``.

        A ``Retry-After`` header on the response wins over the computed
        exponential backoff. Jitter is only ever added, so the delay is
        always within ``[base * 2**retries, base * 2**retries * (1 + jitter_ratio)]``.
        """
        if response is not None:
            header = response.headers.get("Retry-After")
            if header is not None:
                retry_after = parse_retry_after_ms(header)
                if retry_after is not None:
                    return retry_after
                logger.warning("Ignoring invalid Retry-After header", value=header)

        delay = self.base_delay_ms * (2 ** retries)
        jitter = delay * self._rng.uniform(0, self.jitter_ratio)
        return int(delay + jitter)


def _is_idempotent(method: Union[HttpMethod, str]) -> bool:
    try:
        return HttpMethod(str(getattr(method, "value", method)).upper()) in IDEMPOTENT_METHODS
    except ValueError:
        return False


def _outcome_parts(retry_state: RetryCallState):
    outcome = retry_state.outcome
    if outcome is None:
        return None, None
    if outcome.failed:
        return None, outcome.exception()
    return outcome.result(), None


async def send_with_retry(
    send: Callable[[ApiRequest], Awaitable[httpx.Response]],
    request: ApiRequest,
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> httpx.Response:
    """Run ``send(request)`` until the policy stops retrying.

    Returns the last response, whatever its status. Transport errors the
    policy gives up on are re-raised unchanged. Cancelling the calling task
    interrupts any pending delay and no further attempt is started.

    Args:
        send: Coroutine performing exactly one HTTP attempt
        request: Request descriptor
        policy: Retry policy
        sleep: Awaitable sleep, in seconds

    Returns:
        The final HTTP response
    """

    def retry_predicate(retry_state: RetryCallState) -> bool:
        response, exception = _outcome_parts(retry_state)
        return policy.should_retry(
            retry_state.attempt_number - 1,
            request.method,
            response=response,
            exception=exception,
        )

    def wait_strategy(retry_state: RetryCallState) -> float:
        response, _ = _outcome_parts(retry_state)
        return policy.compute_delay_ms(retry_state.attempt_number - 1, response) / 1000.0

    def log_retry(retry_state: RetryCallState) -> None:
        response, exception = _outcome_parts(retry_state)
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Retrying request",
            method=request.method.value,
            path=request.path,
            retry=retry_state.attempt_number,
            max_retries=policy.max_retries,
            delay_ms=int(delay * 1000),
            status_code=response.status_code if response is not None else None,
            error=str(exception) if exception is not None else None,
        )

    retrying = AsyncRetrying(
        stop=stop_never,
        retry=retry_predicate,
        wait=wait_strategy,
        sleep=sleep,
        before_sleep=log_retry,
    )
    return await retrying(send, request)
