"""Bounded polling with capped exponential backoff.

Runs one provider query repeatedly until it succeeds, raises an error the
predicate refuses to retry, or the attempt budget runs out. Waiting between
attempts honors an external cancellation event.

Example:
    from uhost_builder.retry import RetryPolicy, on_exception_type, retry_until

    policy = RetryPolicy(max_attempts=20, initial_delay=2, max_delay=6)

    instance = retry_until(
        lambda: check_running(client, instance_id),
        policy=policy,
        retryable=on_exception_type(ExpectedStateError, NotFoundError),
        cancel=cancel_event,
        description=f"instance {instance_id}",
    )
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from uhost_builder.core.exceptions import RetryExhaustedError, WaitCancelledError

log = logger.bind(component="retry")

# Type for the retry predicate
type RetryPredicate = Callable[[Exception], bool]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt budget and backoff for one wait phase.

    Delay after failed attempt n (1-indexed) is
    ``min(initial_delay * multiplier ** (n - 1), max_delay)``; no jitter.
    """

    max_attempts: int
    initial_delay: float
    max_delay: float
    multiplier: float = 2.0

    def delay(self, attempt: int) -> float:
        return min(self.initial_delay * self.multiplier ** (attempt - 1), self.max_delay)

    @property
    def wait(self) -> wait_exponential:
        return wait_exponential(
            multiplier=self.initial_delay,
            exp_base=self.multiplier,
            max=self.max_delay,
        )


def retry_until[T](
    operation: Callable[[], T],
    *,
    policy: RetryPolicy,
    retryable: RetryPredicate,
    cancel: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
    description: str = "operation",
) -> T:
    """Invoke ``operation`` until it returns, following ``policy``.

    Args:
        operation: Performs one provider query; raises to signal "not yet" or failure.
        policy: Attempt budget and backoff.
        retryable: Decides whether a raised error is worth another attempt.
        cancel: Event that aborts the wait promptly when set.
        sleep: Replaces the cancellable sleep (tests).
        description: Human-readable name of what is awaited, used in errors.

    Returns:
        Whatever ``operation`` returned on its first successful attempt.

    Raises:
        RetryExhaustedError: The budget ran out; chained from the last error.
        WaitCancelledError: ``cancel`` was set before an attempt or while sleeping.
        Exception: The first error ``retryable`` rejected, unchanged.
    """
    event = cancel if cancel is not None else threading.Event()

    def _sleep(seconds: float) -> None:
        if sleep is not None:
            sleep(seconds)
        elif event.wait(seconds):
            raise WaitCancelledError(description)
        if event.is_set():
            raise WaitCancelledError(description)

    def _attempt() -> T:
        if event.is_set():
            raise WaitCancelledError(description)
        return operation()

    def _should_retry(exc: BaseException) -> bool:
        if isinstance(exc, WaitCancelledError) or not isinstance(exc, Exception):
            return False
        return retryable(exc)

    def _before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        log.debug(
            "Retry {attempt}/{total} for {what} after {err}. Waiting {delay:.1f}s...",
            attempt=retry_state.attempt_number,
            total=policy.max_attempts,
            what=description,
            err=outcome.exception() if outcome else None,
            delay=delay,
        )

    retrying = Retrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait,
        retry=retry_if_exception(_should_retry),
        sleep=_sleep,
        before_sleep=_before_sleep,
    )

    try:
        return retrying(_attempt)
    except RetryError as e:
        last = e.last_attempt.exception()
        log.warning(
            "Gave up waiting for {what} after {n} attempts: {err}",
            what=description,
            n=policy.max_attempts,
            err=last,
        )
        raise RetryExhaustedError(description, policy.max_attempts, last) from last


# =============================================================================
# Common Predicates
# =============================================================================


def on_exception_type(*types: type[Exception]) -> RetryPredicate:
    """Create a predicate that retries on the given exception types.

    Example:
        retryable=on_exception_type(ExpectedStateError, NotFoundError)
    """

    def predicate(e: Exception) -> bool:
        return isinstance(e, types)

    return predicate


def any_of(*predicates: RetryPredicate) -> RetryPredicate:
    """Combine predicates with OR logic (retry if ANY predicate matches)."""

    def combined(e: Exception) -> bool:
        return any(p(e) for p in predicates)

    return combined


def negate(predicate: RetryPredicate) -> RetryPredicate:
    """Invert a predicate: retry on everything it rejects.

    Example:
        # keep polling until the resource is reported missing
        retryable=negate(on_exception_type(NotFoundError))
    """

    def inverted(e: Exception) -> bool:
        return not predicate(e)

    return inverted
