"""Per-identifier request throttling for model invocations.

Two limits apply to every identifier:

  BURST  — consecutive allowed requests must be at least ``60s / per_minute``
           apart (12s with the defaults). This is a fixed spacing, not a
           sliding count of N requests per minute.
  DAILY  — at most ``daily`` allowed requests per 24h window. The window
           starts at the first request and restarts lazily once it has passed.

The burst check always runs before the daily check. The policy itself is the
pure function ``apply_rate_limit``; stores only guarantee that it runs
atomically per identifier.
"""

import asyncio
import json
import logging
import time
from collections import defaultdict
from dataclasses import asdict, dataclass
from typing import Callable, Protocol

from app.config import settings

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
MINUTE_SECONDS = 60


@dataclass(frozen=True)
class RateLimitPolicy:
    daily_limit: int = 50
    per_minute_limit: int = 5
    window_seconds: float = DAY_SECONDS

    @property
    def min_interval(self) -> float:
        """Minimum spacing between two allowed requests, in seconds."""
        return MINUTE_SECONDS / self.per_minute_limit

    @classmethod
    def from_settings(cls) -> "RateLimitPolicy":
        return cls(
            daily_limit=settings.rate_limit_daily,
            per_minute_limit=settings.rate_limit_per_minute,
        )


@dataclass(frozen=True)
class RateLimitRecord:
    identifier: str
    count: int
    window_reset_at: float
    last_request_at: float = 0.0

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str | bytes) -> "RateLimitRecord":
        return cls(**json.loads(raw))


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float | None = None
    error: str | None = None


Mutation = Callable[[RateLimitRecord | None], tuple[RateLimitRecord, RateLimitResult]]


def rate_limit_headers(remaining: int, reset_time: float | None) -> dict[str, str]:
    """``X-RateLimit-*`` headers; the reset time is epoch milliseconds, empty when unknown."""
    return {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": str(int(reset_time * 1000)) if reset_time is not None else "",
    }


def burst_error_message(policy: RateLimitPolicy) -> str:
    return (
        f"1分間に{policy.per_minute_limit}回までリクエスト可能です。"
        "少し待ってから再試行してください。"
    )


def daily_error_message(policy: RateLimitPolicy) -> str:
    return f"本日の利用上限（{policy.daily_limit}回）に達しました。明日またお試しください。"


def apply_rate_limit(
    record: RateLimitRecord | None,
    identifier: str,
    now: float,
    policy: RateLimitPolicy,
) -> tuple[RateLimitRecord, RateLimitResult]:
    """Evaluate one request against *record* and return the updated record.

    A denied request never changes ``count`` or ``last_request_at``.
    """
    if record is None:
        record = RateLimitRecord(
            identifier=identifier,
            count=0,
            window_reset_at=now + policy.window_seconds,
        )

    if now > record.window_reset_at:
        record = RateLimitRecord(
            identifier=identifier,
            count=0,
            window_reset_at=now + policy.window_seconds,
            last_request_at=record.last_request_at,
        )

    if now - record.last_request_at < policy.min_interval:
        return record, RateLimitResult(
            allowed=False,
            remaining=policy.daily_limit - record.count,
            error=burst_error_message(policy),
        )

    if record.count >= policy.daily_limit:
        return record, RateLimitResult(
            allowed=False,
            remaining=0,
            reset_time=record.window_reset_at,
            error=daily_error_message(policy),
        )

    updated = RateLimitRecord(
        identifier=identifier,
        count=record.count + 1,
        window_reset_at=record.window_reset_at,
        last_request_at=now,
    )
    return updated, RateLimitResult(
        allowed=True,
        remaining=policy.daily_limit - updated.count,
        reset_time=updated.window_reset_at,
    )


class RateLimitStore(Protocol):
    """Keyed record storage with an atomic read-modify-write."""

    async def get(self, identifier: str) -> RateLimitRecord | None: ...

    async def update(self, identifier: str, now: float, mutate: Mutation) -> RateLimitResult: ...

    async def reset(self, identifier: str) -> None: ...


class InMemoryRateLimitStore:
    """Process-local store, serialized per identifier with an asyncio.Lock.

    Records expire ``grace_seconds`` after their window ends; ``evict_stale``
    reclaims them and is driven by the background scheduler.
    """

    def __init__(self, grace_seconds: float = 0.0) -> None:
        self.grace_seconds = grace_seconds
        self._records: dict[str, RateLimitRecord] = {}
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, identifier: str) -> RateLimitRecord | None:
        return self._records.get(identifier)

    async def update(self, identifier: str, now: float, mutate: Mutation) -> RateLimitResult:
        async with self._locks[identifier]:
            record, result = mutate(self._records.get(identifier))
            self._records[identifier] = record
            return result

    async def reset(self, identifier: str) -> None:
        lock = self._locks[identifier]
        async with lock:
            self._records.pop(identifier, None)
        if not lock.locked() and self._locks.get(identifier) is lock:
            del self._locks[identifier]

    def evict_stale(self, now: float) -> int:
        """Drop records whose window (plus grace) has passed. Returns the count."""
        stale = [
            key for key, record in self._records.items()
            if record.window_reset_at + self.grace_seconds < now
        ]
        evicted = 0
        for key in stale:
            lock = self._locks.get(key)
            if lock is not None and lock.locked():
                continue
            self._records.pop(key, None)
            self._locks.pop(key, None)
            evicted += 1
        if evicted:
            logger.info("Evicted %d stale rate-limit records", evicted)
        return evicted


class RateLimiter:
    """Checks and records requests against a ``RateLimitPolicy``."""

    def __init__(
        self,
        store: RateLimitStore,
        policy: RateLimitPolicy | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.policy = policy or RateLimitPolicy()
        self._clock = clock

    async def check(self, identifier: str) -> RateLimitResult:
        now = self._clock()
        result = await self.store.update(
            identifier,
            now,
            lambda record: apply_rate_limit(record, identifier, now, self.policy),
        )
        if not result.allowed:
            logger.warning(
                "Rate limit denied for %s (remaining=%d): %s",
                identifier, result.remaining, result.error,
            )
        return result
