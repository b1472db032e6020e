"""
In-memory fixed-window rate limiter for the ask endpoint.

Each caller gets a counter that resets once its window has elapsed. A burst
straddling a window boundary can admit up to twice the nominal rate; records
are never evicted and live for the process lifetime.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from ..config import RateLimitConfig

logger = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    """Request count for one caller within its current window."""
    count: int
    window_reset_at: float


class FixedWindowRateLimiter:
    """Per-caller fixed-window admission control."""

    def __init__(
        self,
        config: RateLimitConfig,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = config.window_seconds
        self.max_requests = config.max_requests
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def check(self, caller: str) -> Tuple[bool, float]:
        """Admit or reject one request from ``caller``.

        Returns:
            (allowed, retry_after_seconds)
        """
        with self._lock:
            now = self._clock()
            record = self._records.get(caller)

            if record is None or now > record.window_reset_at:
                self._records[caller] = RateLimitRecord(
                    count=1, window_reset_at=now + self.window_seconds
                )
                return True, 0.0

            if record.count < self.max_requests:
                record.count += 1
                return True, 0.0

            retry_after = max(0.0, record.window_reset_at - now)

        logger.warning(
            "Rate limit hit for %s (%d requests, resets in %.1fs)",
            caller, record.count, retry_after,
        )
        return False, retry_after

    def get_record(self, caller: str):
        """Return the current record for ``caller`` or None."""
        return self._records.get(caller)

    def __len__(self) -> int:
        return len(self._records)
