"""Exponential backoff for rate-limited provider calls.

Only ``EmbeddingProviderError`` with ``retryable`` set (HTTP 429) is retried;
everything else propagates on the first failure. The embedding client itself
never retries, so this is the one place backoff happens.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from docvec.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_S = 1.0
DEFAULT_MAX_DELAY_S = 30.0
BACKOFF_FACTOR = 2


def is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, EmbeddingProviderError) and exc.retryable


class RetryPolicy:
    """Retry rate-limited calls with delays of base, base*2, base*4, ... capped at max.

    Args:
        max_retries: Retries after the first attempt (0 disables retrying).
        base_delay_s: Delay before the first retry.
        max_delay_s: Upper bound on any single delay.
        sleep: Coroutine used between attempts. Injectable for tests.
    """

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_s: float = DEFAULT_BASE_DELAY_S,
        max_delay_s: float = DEFAULT_MAX_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s
        self.max_delay_s = max_delay_s
        self._sleep = sleep

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args,
        on_retry: Callable[[int, BaseException], None] | None = None,
        context: str = "",
    ) -> T:
        """Await ``fn(*args)``, retrying retryable failures.

        Args:
            fn: Coroutine function to call.
            on_retry: Called as ``on_retry(retry_number, exc)`` before each retry.
            context: Short description included in log messages (e.g. the batch).

        Raises:
            The last exception raised by *fn* once retries are exhausted, or
            the first non-retryable one.
        """

        def _before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            delay = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                "Rate limited%s; retry %d/%d in %.1fs",
                f" ({context})" if context else "",
                state.attempt_number,
                self.max_retries,
                delay,
            )
            if on_retry is not None and exc is not None:
                on_retry(state.attempt_number, exc)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.base_delay_s, max=self.max_delay_s, exp_base=BACKOFF_FACTOR
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=_before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(fn, *args)
