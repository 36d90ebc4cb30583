"""
Retry classification.

The single policy point deciding whether a failed call is retried. Both the
multipart coordinator and paginated listings go through ``call_with_retry``,
which drives tenacity with the classifier's decisions.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar, Union

from tenacity import RetryCallState, Retrying

from .storage.transport_errors import ServiceError, TransportConnectionError

__all__ = [
    "RetryPolicy",
    "Retry",
    "GiveUp",
    "RetryClassifier",
    "call_with_retry",
    "RETRYABLE_STATUS_CODES",
    "RETRYABLE_ERROR_CODES",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
RETRYABLE_ERROR_CODES = frozenset({
    "ThrottlingException",
    "RequestTimeoutException",
    "ServiceUnavailableException",
})


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff parameters.

    The delay before retry ``n`` (1-based) is
    ``min(max_delay_s, base_delay_s * multiplier ** (n - 1))``.
    """
    max_attempts: int = 5
    base_delay_s: float = 0.5
    multiplier: float = 2.0
    max_delay_s: float = 20.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_settings(cls, settings) -> RetryPolicy:
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            multiplier=settings.retry_multiplier,
            max_delay_s=settings.retry_max_delay_s,
        )


@dataclass(frozen=True)
class Retry:
    delay: float


@dataclass(frozen=True)
class GiveUp:
    reason: str


Decision = Union[Retry, GiveUp]


class RetryClassifier:
    """Classify failures as transient (retry with backoff) or final (give up)."""

    def __init__(self, policy: Optional[RetryPolicy] = None) -> None:
        self.policy = policy or RetryPolicy()

    def is_transient(self, error: BaseException) -> bool:
        if isinstance(error, TransportConnectionError):
            return True
        if isinstance(error, ServiceError):
            return error.status in RETRYABLE_STATUS_CODES or error.code in RETRYABLE_ERROR_CODES
        return False

    def classify(self, error: BaseException, attempt_count: int) -> Decision:
        """
        Decide what to do after ``attempt_count`` failed attempts.

        Args:
            error: The failure from the latest attempt
            attempt_count: Attempts made so far (1 after the first failure)
        """
        if not self.is_transient(error):
            return GiveUp(f"non-retryable {type(error).__name__}")
        if attempt_count >= self.policy.max_attempts:
            return GiveUp(f"gave up after {attempt_count} attempt(s)")
        delay = self.policy.base_delay_s * self.policy.multiplier ** (attempt_count - 1)
        return Retry(delay=min(self.policy.max_delay_s, delay))


def call_with_retry(
    func: Callable[[], T],
    classifier: RetryClassifier,
    *,
    description: str = "request",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``func`` until it succeeds or the classifier gives up.

    The last exception is re-raised unchanged when retries stop.
    """
    def _decide(retry_state: RetryCallState) -> Decision:
        return classifier.classify(retry_state.outcome.exception(), retry_state.attempt_number)

    def _should_retry(retry_state: RetryCallState) -> bool:
        if not retry_state.outcome.failed:
            return False
        return isinstance(_decide(retry_state), Retry)

    def _wait(retry_state: RetryCallState) -> float:
        decision = _decide(retry_state)
        return decision.delay if isinstance(decision, Retry) else 0.0

    def _log_retry(retry_state: RetryCallState) -> None:
        logger.warning(
            f"{description} failed on attempt {retry_state.attempt_number}: "
            f"{retry_state.outcome.exception()}; retrying in {retry_state.next_action.sleep:.2f}s"
        )

    retrying = Retrying(
        retry=_should_retry,
        wait=_wait,
        sleep=sleep,
        before_sleep=_log_retry,
        reraise=True,
    )
    return retrying(func)
