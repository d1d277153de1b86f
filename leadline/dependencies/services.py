"""Per-request service wiring; override these in tests."""

from fastapi import Depends

from leadline.core.settings import Settings, get_settings
from leadline.db.session import SessionLocal
from leadline.services.lead_store import LeadStore
from leadline.services.notifications import NotificationOrchestrator
from leadline.services.rate_limiter import RateLimiter


def get_lead_store(settings: Settings = Depends(get_settings)) -> LeadStore:
    return LeadStore(SessionLocal, settings.store_name)


def get_rate_limiter(
    store: LeadStore = Depends(get_lead_store),
    settings: Settings = Depends(get_settings),
) -> RateLimiter:
    return RateLimiter(
        store,
        window_seconds=settings.rate_limit_window_seconds,
        max_requests=settings.rate_limit_max_requests,
    )


def get_notifier(settings: Settings = Depends(get_settings)) -> NotificationOrchestrator:
    return NotificationOrchestrator(settings)
