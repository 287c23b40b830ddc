"""
Rate Limiter

Fixed-window counters keyed by caller identity (``user:<id>``) or network
address (``ip:<addr>``), partitioned by operation class.

Counters live in process memory. This is only correct for a single-process
deployment; running several workers needs a shared counter store instead.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from src.domain.auth import AuthContext
from src.domain.entities import OperationClass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitPolicy:
    window_seconds: float
    limit: int
    failures_only: bool = False


@dataclass
class RateBucket:
    key: str
    window_start: float
    count: int = 0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: Optional[int] = None


def default_policies(config=None) -> Dict[OperationClass, RateLimitPolicy]:
    window = config.RATE_LIMIT_WINDOW if config else 15 * 60
    return {
        OperationClass.auth: RateLimitPolicy(
            window, config.RATE_LIMIT_AUTH if config else 5
        ),
        OperationClass.general: RateLimitPolicy(
            window, config.RATE_LIMIT_GENERAL if config else 500, failures_only=True
        ),
        OperationClass.graphql: RateLimitPolicy(
            window, config.RATE_LIMIT_GRAPHQL if config else 100, failures_only=True
        ),
        OperationClass.mutation: RateLimitPolicy(
            window, config.RATE_LIMIT_MUTATION if config else 30
        ),
        OperationClass.session_management: RateLimitPolicy(
            window, config.RATE_LIMIT_SESSION_MANAGEMENT if config else 50
        ),
    }


def rate_limit_key(auth: Optional[AuthContext], client_host: Optional[str]) -> str:
    """user:<id> for verified callers, ip:<addr> otherwise"""
    if auth is not None:
        return auth.rate_limit_key
    return f"ip:{client_host or 'unknown'}"


class RateLimiter:
    """
    Business Rules:
    - Count-all classes (auth, mutation, session-management) count every call in allow()
    - Failures-only classes (general, graphql) count in record_failure() only;
      allow() just checks the budget
    - Over the limit: deny immediately with retry_after seconds, never queue
    - Elapsed buckets are dropped from allow() at most once per shortest window
    """

    def __init__(
        self,
        policies: Optional[Dict[OperationClass, RateLimitPolicy]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.policies = policies or default_policies()
        self.clock = clock
        self._buckets: Dict[Tuple[OperationClass, str], RateBucket] = {}
        self._lock = threading.Lock()
        self._prune_every = min(policy.window_seconds for policy in self.policies.values())
        self._next_prune = self.clock() + self._prune_every

    def _bucket(self, key: str, operation: OperationClass, now: float) -> RateBucket:
        policy = self.policies[operation]
        bucket = self._buckets.get((operation, key))
        if bucket is None or now - bucket.window_start >= policy.window_seconds:
            bucket = RateBucket(key=key, window_start=now)
            self._buckets[(operation, key)] = bucket
        return bucket

    def _retry_after(self, bucket: RateBucket, policy: RateLimitPolicy, now: float) -> int:
        return max(1, math.ceil(bucket.window_start + policy.window_seconds - now))

    def allow(self, key: str, operation: OperationClass) -> RateLimitDecision:
        policy = self.policies[operation]
        with self._lock:
            now = self.clock()
            if now >= self._next_prune:
                self._drop_stale(now)
            bucket = self._bucket(key, operation, now)
            if bucket.count >= policy.limit:
                retry_after = self._retry_after(bucket, policy, now)
                logger.warning(
                    f"Rate limit exceeded: key={key} class={operation.value} "
                    f"retry_after={retry_after}s"
                )
                return RateLimitDecision(
                    allowed=False, limit=policy.limit, remaining=0, retry_after=retry_after
                )
            if not policy.failures_only:
                bucket.count += 1
            return RateLimitDecision(
                allowed=True, limit=policy.limit, remaining=policy.limit - bucket.count
            )

    def record_failure(self, key: str, operation: OperationClass) -> None:
        """Count a failed call against a failures-only class"""
        policy = self.policies[operation]
        if not policy.failures_only:
            return
        with self._lock:
            bucket = self._bucket(key, operation, self.clock())
            bucket.count += 1

    def _drop_stale(self, now: float) -> int:
        stale = [
            bucket_key
            for bucket_key, bucket in self._buckets.items()
            if now - bucket.window_start >= self.policies[bucket_key[0]].window_seconds
        ]
        for bucket_key in stale:
            del self._buckets[bucket_key]
        self._next_prune = now + self._prune_every
        if stale:
            logger.debug(f"Dropped {len(stale)} elapsed rate limit bucket(s)")
        return len(stale)

    def prune(self) -> int:
        """Drop buckets whose window has passed. Returns number dropped."""
        with self._lock:
            return self._drop_stale(self.clock())
