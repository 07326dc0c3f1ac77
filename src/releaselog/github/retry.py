"""Bounded retry with backoff for transport failures."""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

import structlog

from releaselog.github.errors import GitHubTransportError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Never wait longer than this on a single Retry-After
MAX_SINGLE_WAIT = 300.0


@dataclass
class RetryPolicy:
    """How often and how patiently to retry a failed request."""

    max_retries: int = 3
    backoff_base: float = 0.5
    max_backoff: float = 30.0
    jitter: Optional[float] = None

    @property
    def jitter_seconds(self) -> float:
        return self.backoff_base if self.jitter is None else self.jitter


def compute_wait(retry_after: Optional[float], backoff: float, jitter: float) -> float:
    if retry_after is not None:
        return min(float(retry_after) + random.uniform(0, jitter), MAX_SINGLE_WAIT)
    return min(backoff + random.uniform(0, jitter), MAX_SINGLE_WAIT)


def call_with_retries(
    func: Callable[[], T],
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func``, retrying retryable transport errors.

    Not-found and permission errors are never retried, nor are transport
    errors flagged as non-retryable.

    Args:
        func: Zero-argument callable performing one attempt
        policy: Retry policy
        sleep: Sleep function, replaceable in tests

    Returns:
        Whatever ``func`` returns
    """
    attempt = 0
    backoff = policy.backoff_base

    while True:
        try:
            return func()
        except GitHubTransportError as e:
            if not e.retryable or attempt >= policy.max_retries:
                raise
            wait = compute_wait(e.retry_after, backoff, policy.jitter_seconds)
            logger.warning(
                "github_request_retry",
                attempt=attempt + 1,
                max_retries=policy.max_retries,
                wait=round(wait, 2),
                status=e.status,
                error=str(e),
            )
            sleep(wait)
            backoff = min(backoff * 2, policy.max_backoff)
            attempt += 1
