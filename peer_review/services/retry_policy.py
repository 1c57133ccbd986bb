"""
Retry with exponential backoff for I/O performed by the services.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError, InterfaceError

from peer_review.exceptions import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, InterfaceError, ConnectionError, TimeoutError)


def is_transient(error: BaseException) -> bool:
    """Infrastructure errors worth another attempt."""
    if isinstance(error, DatabaseError):
        return error.recoverable
    return isinstance(error, TRANSIENT_ERRORS)


@dataclass
class RetryPolicy:
    """Attempt count and backoff curve applied to one I/O operation"""
    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 10.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    @classmethod
    def from_settings(cls, source) -> "RetryPolicy":
        return cls(
            max_attempts=source.RETRY_MAX_ATTEMPTS,
            base_delay=source.RETRY_BASE_DELAY,
            multiplier=source.RETRY_MULTIPLIER,
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    def delay_for(self, attempt: int) -> float:
        """Delay after the given 1-based failed attempt."""
        return min(self.base_delay * (self.multiplier ** (attempt - 1)), self.max_delay)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        """
        Await ``operation()`` until it succeeds or attempts run out.

        Only transient errors are retried; the last error is re-raised.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as e:
                if not is_transient(e) or attempt >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"{description} failed (attempt {attempt}/{self.max_attempts}): {e}. "
                    f"Retrying in {delay:.1f}s"
                )
                await self.sleep(delay)
                attempt += 1
