"""Tenacity retry policy for embedding provider calls."""

import logging

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from shared.helper.errors import TransientProviderError


class _RetryAfterOrBackoff(wait_base):
    """Wait strategy that honours a provider Retry-After before falling back to backoff."""

    def __init__(self, fallback_wait: wait_base, max_delay_seconds: float) -> None:
        self._fallback_wait = fallback_wait
        self._max_delay_seconds = max_delay_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is not None:
            exc = outcome.exception()
            retry_after = getattr(exc, "retry_after", None)
            if retry_after is not None:
                return min(float(retry_after), self._max_delay_seconds)
        return float(self._fallback_wait(retry_state))


def create_embed_retry_policy(
    max_attempts: int,
    base_delay_seconds: float,
    max_delay_seconds: float,
    logger: logging.Logger | None = None,
) -> AsyncRetrying:
    """Create the retry policy used around a single embedding request.

    Only TransientProviderError is retried; anything else propagates on the
    first attempt. After the last attempt the final exception is re-raised.

    Args:
        max_attempts (int): Total number of attempts, including the first one.
        base_delay_seconds (float): Delay before the second attempt; doubles per attempt.
        max_delay_seconds (float): Upper bound for a single wait.
        logger (logging.Logger | None): Receives a warning before each sleep.

    Returns:
        AsyncRetrying: Policy for use as ``async for attempt in policy: with attempt: ...``
    """
    fallback = wait_exponential(multiplier=base_delay_seconds, min=0, max=max_delay_seconds)
    kwargs = {
        "stop": stop_after_attempt(max(1, max_attempts)),
        "wait": _RetryAfterOrBackoff(fallback, max_delay_seconds),
        "retry": retry_if_exception_type(TransientProviderError),
        "reraise": True,
    }
    if logger is not None:
        kwargs["before_sleep"] = before_sleep_log(logger, logging.WARNING)
    return AsyncRetrying(**kwargs)
