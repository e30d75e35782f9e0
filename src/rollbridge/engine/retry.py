# src/rollbridge/engine/retry.py
"""RetryPolicy: bounded retry with multiplicative backoff, via tenacity.

One policy object is built from settings and reused at every external-call
boundary: state-root reads, the deposit poll and the settlement cycle as a
whole. The delay before retry n (1-based) is

    initial_delay * multiplier ** (n - 1)

so the defaults (3 attempts, 2s, x1.5) sleep 2s then 3s. When the last
attempt fails, its exception propagates unchanged.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from rollbridge.contracts.errors import ConfigurationError, ManualReviewRequired, StateConflictError

if TYPE_CHECKING:
    from rollbridge.core.config import RetrySettings

T = TypeVar("T")

logger = structlog.get_logger(__name__)

# Conditions a retry can never fix; they go straight to the caller.
NEVER_RETRY: tuple[type[BaseException], ...] = (
    ManualReviewRequired,
    StateConflictError,
    ConfigurationError,
)


def default_is_retryable(error: BaseException) -> bool:
    """Retry every Exception except the NEVER_RETRY family."""
    return isinstance(error, Exception) and not isinstance(error, NEVER_RETRY)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry parameters.

    max_attempts is the TOTAL number of tries, not the number of retries.
    """

    max_attempts: int = 3
    initial_delay: float = 2.0  # seconds
    multiplier: float = 1.5

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must be >= 0")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1.0")

    @classmethod
    def from_settings(cls, settings: "RetrySettings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            initial_delay=settings.initial_delay_seconds,
            multiplier=settings.multiplier,
        )

    def delays(self) -> list[float]:
        """Sleep durations between attempts, in order."""
        return [self.initial_delay * self.multiplier**i for i in range(self.max_attempts - 1)]

    def call(
        self,
        operation: Callable[[], T],
        *,
        name: str = "operation",
        is_retryable: Callable[[BaseException], bool] = default_is_retryable,
        on_retry: Callable[[int, BaseException], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> T:
        """Run operation, retrying retryable failures.

        Args:
            operation: Zero-argument callable to run
            name: Label for log events
            is_retryable: Decides whether an error earns another attempt
            on_retry: Called with (attempt number, error) before each sleep
            sleep: Injected for tests

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: the last attempt's error, or the first non-retryable one
        """

        def _before_sleep(state: RetryCallState) -> None:
            assert state.outcome is not None
            error = state.outcome.exception()
            assert error is not None
            delay = state.next_action.sleep if state.next_action is not None else 0.0
            logger.warning(
                "retrying",
                operation=name,
                attempt=state.attempt_number,
                max_attempts=self.max_attempts,
                delay_seconds=delay,
                error=str(error),
                error_type=type(error).__name__,
            )
            if on_retry is not None:
                on_retry(state.attempt_number, error)

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_delay, exp_base=self.multiplier, min=0),
            retry=retry_if_exception(is_retryable),
            before_sleep=_before_sleep,
            sleep=sleep,
            reraise=True,
        )
        return retrying(operation)
