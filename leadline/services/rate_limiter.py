"""Per-source sliding window rate limiting, persisted in the lead store.

The read-then-write on a window is not atomic, so concurrent bursts from one
source can slip slightly past the limit. Store failures fail open.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError

from leadline.core.errors import RateLimitExceeded, StorageError
from leadline.core.time import utc_now
from leadline.schemas.lead import RateWindow
from leadline.services.lead_store import LeadStore, rate_key_for_ip

logger = logging.getLogger(__name__)


def next_window(
    previous: Optional[RateWindow], now: datetime, window: timedelta, max_requests: int
) -> Optional[RateWindow]:
    """Return the window to persist, or ``None`` when the request must be rejected."""
    in_window = previous is not None and now - previous.window_start_at < window
    if not in_window:
        return RateWindow(window_start_at=now, count=1, last_submit_at=now)
    if previous.count >= max_requests:
        return None
    return RateWindow(window_start_at=previous.window_start_at, count=previous.count + 1, last_submit_at=now)


class RateLimiter:
    def __init__(self, store: LeadStore, window_seconds: int = 600, max_requests: int = 3):
        self.store = store
        self.window = timedelta(seconds=window_seconds)
        self.max_requests = max_requests

    def _load(self, key: str) -> Optional[RateWindow]:
        raw = self.store.get(key)
        if not raw:
            return None
        try:
            return RateWindow.model_validate(raw)
        except ValidationError:
            logger.warning("RATE_LIMIT: discarding malformed window at %s", key)
            return None

    def check(self, ip: str, now: Optional[datetime] = None) -> None:
        """Admit a submission from ``ip`` or raise ``RateLimitExceeded``."""
        key = rate_key_for_ip(ip)
        if not key:
            return
        now = now or utc_now()
        try:
            updated = next_window(self._load(key), now, self.window, self.max_requests)
            if updated is None:
                logger.info("RATE_LIMIT: rejecting submission from %s", key)
                raise RateLimitExceeded("Too many requests")
            self.store.put(key, updated.model_dump(mode="json"))
        except (StorageError, ValueError) as exc:
            logger.warning("RATE_LIMIT: state unavailable for %s, admitting: %s", key, exc)
