from datetime import datetime, timedelta, timezone

import pytest

from leadline.core.errors import RateLimitExceeded, StorageError
from leadline.db.base import Base
from leadline.db.session import SessionLocal, engine
from leadline.schemas.lead import RateWindow
from leadline.services.lead_store import LeadStore
from leadline.services.rate_limiter import RateLimiter, next_window

T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)
WINDOW = timedelta(minutes=10)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store():
    return LeadStore(SessionLocal, "rate-test")


def test_next_window_starts_fresh():
    window = next_window(None, T0, WINDOW, 3)
    assert window == RateWindow(window_start_at=T0, count=1, last_submit_at=T0)


def test_next_window_increments_inside_window():
    previous = RateWindow(window_start_at=T0, count=2, last_submit_at=T0)
    later = T0 + timedelta(minutes=5)
    window = next_window(previous, later, WINDOW, 3)
    assert window.count == 3
    assert window.window_start_at == T0
    assert window.last_submit_at == later


def test_next_window_rejects_at_limit():
    previous = RateWindow(window_start_at=T0, count=3, last_submit_at=T0)
    assert next_window(previous, T0 + timedelta(minutes=9), WINDOW, 3) is None


def test_next_window_resets_after_expiry():
    previous = RateWindow(window_start_at=T0, count=3, last_submit_at=T0)
    later = T0 + WINDOW
    window = next_window(previous, later, WINDOW, 3)
    assert window.count == 1
    assert window.window_start_at == later


def test_limiter_admits_max_then_rejects_then_recovers(store):
    limiter = RateLimiter(store, window_seconds=600, max_requests=3)
    for minute in range(3):
        limiter.check("203.0.113.5", now=T0 + timedelta(minutes=minute))

    with pytest.raises(RateLimitExceeded):
        limiter.check("203.0.113.5", now=T0 + timedelta(minutes=4))

    limiter.check("203.0.113.6", now=T0 + timedelta(minutes=4))

    limiter.check("203.0.113.5", now=T0 + timedelta(minutes=11))
    saved = RateWindow.model_validate(store.get("rate/203.0.113.5"))
    assert saved.count == 1
    assert saved.window_start_at == T0 + timedelta(minutes=11)


def test_limiter_skips_unknown_source(store):
    limiter = RateLimiter(store, max_requests=1)
    for _ in range(5):
        limiter.check("", now=T0)
    assert store.list_keys("rate/") == []


def test_limiter_fails_open_when_store_unavailable(store, monkeypatch):
    def broken_get(key):
        raise StorageError("store offline")

    monkeypatch.setattr(store, "get", broken_get)
    limiter = RateLimiter(store, max_requests=1)
    for _ in range(3):
        limiter.check("203.0.113.7", now=T0)


def test_limiter_ignores_malformed_window(store):
    store.put("rate/203.0.113.8", {"count": "lots"})
    limiter = RateLimiter(store, max_requests=1)
    limiter.check("203.0.113.8", now=T0)
    assert RateWindow.model_validate(store.get("rate/203.0.113.8")).count == 1
