"""Exponential backoff around a whole mutation.

Retries always restart from the ref read. Re-running only the tail of a
mutation against a ref that may have moved would break atomicity, so this
wraps the facade call, never an individual step.
"""

from __future__ import annotations

from collections.abc import Callable
import logging
from typing import TypeVar

import tenacity

from ghcommit.config import RetryPolicy
from ghcommit.errors import is_retryable
from ghcommit.observability import log_warning_event


LOGGER = logging.getLogger("ghcommit.retry")
T = TypeVar("T")


def retry_mutation(
    operation: Callable[[], T],
    *,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] | None = None,
) -> T:
    """Run `operation`, retrying ConcurrentModification and transient failures.

    Delays grow from `initial_delay_seconds` by `backoff_factor` per attempt and
    are capped at `max_delay_seconds`. The last error is re-raised unchanged once
    `max_attempts` is exhausted; non-retryable errors are raised immediately.
    """
    active = policy if policy is not None else RetryPolicy()
    extra: dict[str, object] = {}
    if sleep is not None:
        extra["sleep"] = sleep
    retryer = tenacity.Retrying(
        retry=tenacity.retry_if_exception(is_retryable),
        wait=tenacity.wait_exponential(
            multiplier=active.initial_delay_seconds,
            exp_base=active.backoff_factor,
            max=active.max_delay_seconds,
        ),
        stop=tenacity.stop_after_attempt(active.max_attempts),
        before_sleep=_log_retry(active),
        reraise=True,
        **extra,
    )
    return retryer(operation)


def _log_retry(policy: RetryPolicy) -> Callable[[tenacity.RetryCallState], None]:
    def before_sleep(retry_state: tenacity.RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        log_warning_event(
            LOGGER,
            "mutation_retry_scheduled",
            attempt=retry_state.attempt_number,
            max_attempts=policy.max_attempts,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error_type=type(error).__name__ if error is not None else None,
            error=str(error) if error is not None else None,
        )

    return before_sleep
