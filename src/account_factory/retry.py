"""Bounded retry policy shared by retrying operations."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple, Type, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RetryPolicy:
    """Exponential backoff: the delay before retry ``n`` (from 0) is ``base_delay * 2**n`` seconds."""

    max_retries: int = 5
    base_delay: float = 1.0
    max_delay: Optional[float] = None
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be zero or greater")
        if self.base_delay < 0:
            raise ValueError("base_delay must be zero or greater")

    def delay_for(self, retry_number: int) -> float:
        delay = self.base_delay * (2**retry_number)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    def _retrying(self, description: str) -> Retrying:
        def _log_before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            wait = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                "%s failed (attempt %s/%s): %s; retrying in %.1fs",
                description,
                state.attempt_number,
                self.max_retries + 1,
                exc,
                wait,
            )

        def _wait(state: RetryCallState) -> float:
            return self.delay_for(state.attempt_number - 1)

        return Retrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=_wait,
            retry=retry_if_exception_type(self.retry_on),
            before_sleep=_log_before_sleep,
            sleep=self.sleep,
            reraise=True,
        )

    def call(self, fn: Callable[..., T], *args, description: Optional[str] = None, **kwargs) -> T:
        """Invoke ``fn`` and retry it on ``retry_on`` errors; the last error is re-raised."""

        retrying = self._retrying(description or getattr(fn, "__name__", "operation"))
        return retrying(fn, *args, **kwargs)
