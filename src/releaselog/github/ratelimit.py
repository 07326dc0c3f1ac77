"""Admission control against the GitHub rate limit."""

import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

import structlog

from releaselog.github.errors import RateLimitExhaustedError
from releaselog.github.models import RateLimits

logger = structlog.get_logger(__name__)

# Budget used when the server does not rate limit at all
UNLIMITED = sys.maxsize


@dataclass
class RateBudget:
    """Snapshot of the remaining quota for one resource."""

    remaining: int
    reset_at: float
    fetched_at: float

    def expired(self, now: float, ttl: float) -> bool:
        return now >= self.reset_at or (now - self.fetched_at) > ttl


class RateLimiter:
    """Gates every uncached request behind a remaining-quota check.

    The quota snapshot is only refreshed from ``/rate_limit`` once it has
    expired. The check and the decrement happen under one lock so parallel
    callers cannot overdraw the budget.
    """

    def __init__(
        self,
        fetch_limits: Callable[[], Optional[RateLimits]],
        resource: str = "core",
        max_wait: float = 900.0,
        snapshot_ttl: float = 60.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetch_limits = fetch_limits
        self.resource = resource
        self.max_wait = max_wait
        self.snapshot_ttl = snapshot_ttl
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._budget: Optional[RateBudget] = None

    @property
    def budget(self) -> Optional[RateBudget]:
        return self._budget

    def _refresh(self) -> RateBudget:
        limits = self._fetch_limits()
        now = self._clock()
        if limits is None:
            logger.debug("github_rate_limit_unlimited", resource=self.resource)
            return RateBudget(remaining=UNLIMITED, reset_at=now + self.snapshot_ttl, fetched_at=now)

        rate = limits.resource(self.resource)
        if rate is None:
            # No information, assume the standard anonymous allowance
            budget = RateBudget(remaining=60, reset_at=now + 3600, fetched_at=now)
        else:
            budget = RateBudget(remaining=rate.remaining, reset_at=float(rate.reset), fetched_at=now)
        logger.info("github_rate_limit", resource=self.resource, remaining=budget.remaining, rate=str(rate))
        return budget

    def acquire(self) -> int:
        """Consume one request from the budget.

        Returns:
            Requests left after this one

        Raises:
            RateLimitExhaustedError: If the quota is gone and the reset is too far away
        """
        with self._lock:
            now = self._clock()
            if self._budget is None or self._budget.expired(now, self.snapshot_ttl):
                self._budget = self._refresh()

            if self._budget.remaining <= 0:
                wait = max(0.0, self._budget.reset_at - now)
                if wait > self.max_wait:
                    raise RateLimitExhaustedError(self.resource, wait)
                logger.warning("github_rate_limit_wait", resource=self.resource, seconds=round(wait, 1))
                self._sleep(wait)
                self._budget = self._refresh()
                if self._budget.remaining <= 0:
                    raise RateLimitExhaustedError(self.resource, max(0.0, self._budget.reset_at - self._clock()))

            self._budget.remaining -= 1
            return self._budget.remaining
