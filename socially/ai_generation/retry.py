"""
Bounded retry with backoff around single image requests.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable

from socially.common import GenerationError, RateLimited

from .cancellation import RunCancellation

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE_URL = (
    "https://placehold.co/1024x576/e2e8f0/64748b?text=Image+Generation+Failed"
)

RequestFn = Callable[[], Awaitable[str]]
SleepFn = Callable[[float, "RunCancellation | None"], Awaitable[None]]


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry knobs for one image slot.

    Attributes
    ----------
    max_attempts:
        Attempts allowed for generic failures (transient or fatal), including the first.
    retry_delay:
        Fixed delay in seconds between generic attempts.
    rate_limit_delay:
        Base delay in seconds after a rate-limit response.
    rate_limit_jitter:
        Upper bound of the uniform random delay added to ``rate_limit_delay``.
    max_rate_limit_retries:
        Consecutive rate-limit retries allowed on top of the generic budget.
        Any other failure resets the count.
    placeholder_url:
        Image reference returned once a budget is exhausted.
    """

    max_attempts: int = 3
    retry_delay: float = 5.0
    rate_limit_delay: float = 5.0
    rate_limit_jitter: float = 2.0
    max_rate_limit_retries: int = 5
    placeholder_url: str = PLACEHOLDER_IMAGE_URL


async def cancellable_sleep(seconds: float, cancellation: RunCancellation | None) -> None:
    if cancellation is None:
        await asyncio.sleep(seconds)
        return
    await cancellation.sleep(seconds)


class RetryPolicy:
    """
    Runs a request function until it succeeds or a retry budget runs out.

    Rate-limited attempts wait ``rate_limit_delay`` plus jitter and do not
    consume the generic attempt budget. Any other :class:`GenerationError`
    waits ``retry_delay``. Exhaustion yields the placeholder; cancellation
    propagates unchanged.
    """

    def __init__(
        self,
        config: RetryConfig | None = None,
        *,
        sleep: SleepFn | None = None,
        jitter: Callable[[float, float], float] | None = None,
    ) -> None:
        self.config = config or RetryConfig()
        self._sleep = sleep or cancellable_sleep
        self._jitter = jitter or random.uniform

    def is_placeholder(self, image_url: str | None) -> bool:
        return image_url == self.config.placeholder_url

    async def with_retry(
        self,
        request_fn: RequestFn,
        slot_label: str,
        *,
        cancellation: RunCancellation | None = None,
    ) -> str:
        config = self.config
        failures = 0
        rate_limit_hits = 0

        while True:
            if cancellation is not None:
                cancellation.raise_if_cancelled()
            try:
                return await request_fn()
            except RateLimited:
                rate_limit_hits += 1
                if rate_limit_hits > config.max_rate_limit_retries:
                    logger.error(
                        "Rate limit persisted for %s after %d consecutive retries; using placeholder.",
                        slot_label,
                        config.max_rate_limit_retries,
                    )
                    return config.placeholder_url
                delay = config.rate_limit_delay + self._jitter(0.0, config.rate_limit_jitter)
                logger.warning(
                    "Rate limit hit for %s. Waiting %.1fs to retry...", slot_label, delay
                )
                await self._sleep(delay, cancellation)
            except GenerationError as exc:
                rate_limit_hits = 0
                failures += 1
                logger.warning("Attempt %d failed for %s: %s", failures, slot_label, exc)
                if failures >= config.max_attempts:
                    logger.error("Final failure for %s: %s", slot_label, exc)
                    return config.placeholder_url
                await self._sleep(config.retry_delay, cancellation)
