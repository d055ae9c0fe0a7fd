"""
Retry, backoff and best-effort wait primitives
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from validator.errors import ExternalServiceRateLimited

logger = logging.getLogger(__name__)


async def _default_sleep(seconds: float):
    await asyncio.sleep(seconds)


def _always(exc: Exception) -> bool:
    return True


def is_rate_limited(exc: Exception) -> bool:
    """Throttling signal from Bedrock (botocore ClientError) or anything carrying a 429"""
    if isinstance(exc, ExternalServiceRateLimited):
        return True
    response = getattr(exc, 'response', None)
    if isinstance(response, dict):
        code = response.get('Error', {}).get('Code', '')
        status = response.get('ResponseMetadata', {}).get('HTTPStatusCode')
        if code in ('ThrottlingException', 'TooManyRequestsException') or status == 429:
            return True
    if getattr(exc, 'status', None) == 429 or getattr(exc, 'status_code', None) == 429:
        return True
    return '429' in str(exc)


@dataclass
class RetryPolicy:
    """
    Bounded retry: at most ``max_attempts`` calls, sleeping
    ``base_delay * multiplier ** (attempt - 1)`` seconds after failed attempt N.

    Only exceptions for which ``retry_on`` returns True are retried; anything
    else, or the last failure, is re-raised to the caller.
    """
    max_attempts: int
    base_delay: float
    multiplier: float = 1.0
    retry_on: Callable[[Exception], bool] = _always
    sleep: Callable[[float], Awaitable[Any]] = field(default=_default_sleep, repr=False)
    name: str = 'operation'

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (self.multiplier ** (attempt - 1))

    def with_sleep(self, sleep: Callable[[float], Awaitable[Any]]) -> 'RetryPolicy':
        return RetryPolicy(self.max_attempts, self.base_delay, self.multiplier,
                           self.retry_on, sleep, self.name)

    async def run(self, operation: Callable[[], Awaitable[Any]]) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as e:
                if attempt >= self.max_attempts or not self.retry_on(e):
                    raise
                delay = self.delay_for(attempt)
                logger.warning(
                    f"⚠️ {self.name} failed (attempt {attempt}/{self.max_attempts}): {e}. "
                    f"Retrying in {delay:g}s..."
                )
                await self.sleep(delay)


# Fixed 5s between page loads, 3 tries
NAVIGATION_RETRY = RetryPolicy(max_attempts=3, base_delay=5.0, multiplier=1.0, name='Navigation')

# 5 retries on throttling: 5s -> 10s -> 20s -> 40s -> 80s
RATE_LIMIT_RETRY = RetryPolicy(max_attempts=6, base_delay=5.0, multiplier=2.0,
                               retry_on=is_rate_limited, name='Vision analysis')


async def try_wait(awaitable: Awaitable[Any], timeout: Optional[float] = None) -> bool:
    """
    Best-effort wait. True if ``awaitable`` finished, False if it timed out or
    raised (Playwright waits raise TimeoutError on their own bound).
    """
    try:
        if timeout is None:
            await awaitable
        else:
            await asyncio.wait_for(awaitable, timeout=timeout)
        return True
    except Exception as e:
        logger.debug(f"  wait gave up: {e}")
        return False


async def with_timeout(awaitable: Awaitable[Any], timeout: float, default: Any = None) -> Any:
    """Race ``awaitable`` against ``timeout``; ``default`` when the clock wins"""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"  ⚠️ Timed out after {timeout}s")
        return default
