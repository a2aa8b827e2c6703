"""Retry policy and cancellation applied around remote generation calls."""
from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

from ..errors import AuthenticationError, ClientConfigurationError, RemoteError, RetryExhaustedError

T = TypeVar("T")

RETRYABLE_MARKERS: Tuple[str, ...] = (
    "service overloaded",
    "rate limit",
    "timeout",
    "connection reset",
)


class OperationCancelled(Exception):
    """Internal signal that the caller cancelled; never escapes the orchestrators."""


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and one call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""
        return self._event.wait(max(0.0, seconds))

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled()


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 2.0
    multiplier: float = 2.0
    jitter: bool = True
    max_total_delay: Optional[float] = 120.0

    def delay_for(self, retry_index: int, rng: Optional[random.Random] = None) -> float:
        """Delay before retry number ``retry_index`` (0-based): 2s, 4s, 8s..."""
        delay = self.base_delay * (self.multiplier ** retry_index)
        if self.jitter:
            delay *= (rng or random).uniform(0.5, 1.5)
        return delay


def is_retryable(error: BaseException) -> bool:
    if not isinstance(error, RemoteError):
        return False
    if isinstance(error, (RetryExhaustedError, AuthenticationError, ClientConfigurationError)):
        return False
    if error.retryable:
        return True
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


def call_with_retry(
    operation: Callable[[], T],
    *,
    policy: Optional[RetryPolicy] = None,
    cancel_token: Optional[CancellationToken] = None,
    sleep: Optional[Callable[[float], None]] = None,
    logger: Optional[logging.Logger] = None,
) -> Tuple[T, int]:
    """Run ``operation`` under ``policy`` and return ``(value, attempts)``.

    Non-retryable ``RemoteError`` instances propagate after one attempt with
    ``attempts`` set on them. Retryable ones are retried with exponential
    backoff and, once the budget (attempts or total delay) is spent,
    re-raised wrapped in ``RetryExhaustedError``. ``OperationCancelled`` is
    raised when the token fires before or between attempts.
    """

    policy = policy or RetryPolicy()
    logger = logger or logging.getLogger(__name__)
    attempts = 0
    slept = 0.0

    while True:
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        attempts += 1
        try:
            value = operation()
        except RemoteError as exc:
            if not is_retryable(exc):
                exc.attempts = attempts
                raise
            if attempts >= policy.max_attempts:
                raise RetryExhaustedError(exc, attempts) from exc

            delay = policy.delay_for(attempts - 1)
            if policy.max_total_delay is not None and slept + delay > policy.max_total_delay:
                raise RetryExhaustedError(exc, attempts) from exc

            logger.debug(
                "retry",
                extra={"summary": {"event": "retry-scheduled", "attempt": attempts, "delay": delay, "error": str(exc)}},
            )
            _pause(delay, cancel_token, sleep)
            slept += delay
            continue

        if cancel_token is not None:
            # A result that arrives after cancellation is discarded.
            cancel_token.raise_if_cancelled()
        return value, attempts


def _pause(
    delay: float,
    cancel_token: Optional[CancellationToken],
    sleep: Optional[Callable[[float], None]],
) -> None:
    if sleep is not None:
        sleep(delay)
    elif cancel_token is not None:
        cancel_token.wait(delay)
    else:
        time.sleep(delay)
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()
