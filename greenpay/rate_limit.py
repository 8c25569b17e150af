import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any

logger = logging.getLogger(__name__)

MINUTE_WINDOW_S = 60.0
DAY_WINDOW_S = 86400.0

MINUTE_LIMIT_MESSAGE = "Minute limit reached. Please try again in a moment."
DAILY_LIMIT_MESSAGE = "You've used all {limit} daily requests. Please try again tomorrow."


@dataclass(frozen=True)
class LimitConfig:
    minute_limit: int = 10
    daily_limit: int = 5
    max_identities: int = 10000

    def __post_init__(self):
        for name in ("minute_limit", "daily_limit", "max_identities"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass
class UsageRecord:
    minute_count: int
    minute_reset_at: float
    daily_count: int
    daily_reset_at: float


@dataclass(frozen=True)
class Decision:
    allowed: bool
    remaining_requests: int
    error: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "allowed": self.allowed,
            "remainingRequests": self.remaining_requests,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload


class UsageLimiter:
    """Per-identity request budget over a rolling minute and a rolling day.

    Windows start at an identity's first request and are reset lazily when a
    check observes that they have lapsed. Records live in an LRU map capped at
    ``config.max_identities``; an evicted identity simply starts over.
    """

    def __init__(self, config: LimitConfig | None = None):
        self.config = config or LimitConfig()
        self._records: OrderedDict[str, UsageRecord] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def tracked_identities(self) -> int:
        return len(self._records)

    def check_limit(self, identity: str) -> Decision:
        with self._lock:
            now = time.time()
            record = self._record_for(identity, now)

            if now >= record.minute_reset_at:
                record.minute_count = 0
                record.minute_reset_at = now + MINUTE_WINDOW_S
            if now >= record.daily_reset_at:
                record.daily_count = 0
                record.daily_reset_at = now + DAY_WINDOW_S

            if record.minute_count >= self.config.minute_limit:
                logger.debug("usage denied identity=%s reason=minute", identity)
                return Decision(
                    allowed=False,
                    error=MINUTE_LIMIT_MESSAGE,
                    reason="minute",
                    remaining_requests=max(0, self.config.daily_limit - record.daily_count),
                )
            if record.daily_count >= self.config.daily_limit:
                logger.debug("usage denied identity=%s reason=daily", identity)
                return Decision(
                    allowed=False,
                    error=DAILY_LIMIT_MESSAGE.format(limit=self.config.daily_limit),
                    reason="daily",
                    remaining_requests=0,
                )

            record.minute_count += 1
            record.daily_count += 1
            return Decision(
                allowed=True,
                remaining_requests=self.config.daily_limit - record.daily_count,
            )

    def remaining_requests(self, identity: str) -> int:
        """Daily requests left for ``identity`` without spending one."""
        with self._lock:
            record = self._records.get(identity)
            if record is None or time.time() >= record.daily_reset_at:
                return self.config.daily_limit
            return max(0, self.config.daily_limit - record.daily_count)

    def usage(self, identity: str) -> UsageRecord | None:
        with self._lock:
            record = self._records.get(identity)
            return replace(record) if record is not None else None

    def _record_for(self, identity: str, now: float) -> UsageRecord:
        record = self._records.get(identity)
        if record is not None:
            self._records.move_to_end(identity)
            return record
        while len(self._records) >= self.config.max_identities:
            evicted, _ = self._records.popitem(last=False)
            logger.debug("usage record evicted identity=%s", evicted)
        record = UsageRecord(
            minute_count=0,
            minute_reset_at=now + MINUTE_WINDOW_S,
            daily_count=0,
            daily_reset_at=now + DAY_WINDOW_S,
        )
        self._records[identity] = record
        return record
