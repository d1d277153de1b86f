"""Public lead intake: validate, rate-limit, persist, then notify."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from leadline.core.errors import LeadValidationError
from leadline.core.settings import Settings
from leadline.core.time import truncate_to_millis, utc_now
from leadline.schemas.lead import BookingInfo, LeadMeta, LeadRecord
from leadline.services.lead_store import LeadStore, new_lead_key
from leadline.services.lifecycle import save_lead
from leadline.services.notifications import NotificationOrchestrator
from leadline.services.rate_limiter import RateLimiter
from leadline.services.sanitize import is_honeypot_tripped, validate_lead_payload

logger = logging.getLogger(__name__)


class PayloadTooLarge(LeadValidationError):
    pass


@dataclass(frozen=True)
class RequestContext:
    ip: str = ""
    referrer: str = ""
    user_agent: str = ""
    origin: str = ""

    @property
    def admin_link(self) -> str:
        return f"{self.origin}/admin.html" if self.origin else ""


def payload_size(body: Any) -> int:
    try:
        return len(json.dumps(body if body is not None else "", ensure_ascii=False).encode("utf-8"))
    except (TypeError, ValueError):
        return 0


def submit_lead(
    body: Any,
    context: RequestContext,
    store: LeadStore,
    limiter: RateLimiter,
    notifier: NotificationOrchestrator,
    settings: Settings,
    now: Optional[datetime] = None,
) -> LeadRecord:
    """Create and persist a lead from a parsed request body.

    Raises ``LeadValidationError`` (including ``PayloadTooLarge``) and
    ``RateLimitExceeded`` before anything is written. A returned record is
    durably stored; the SMS alert outcome does not affect it.
    """
    if is_honeypot_tripped(body):
        raise LeadValidationError("Spam detected")
    if payload_size(body) > settings.max_payload_bytes:
        raise PayloadTooLarge("Payload too large")

    lead = validate_lead_payload(body)
    now = truncate_to_millis(now or utc_now())
    limiter.check(context.ip, now=now)

    key = new_lead_key(now)
    suggestion = notifier.suggest(lead)
    record = LeadRecord(
        id=key,
        created_at=now,
        updated_at=now,
        lead=lead,
        suggested_dm=suggestion.text,
        meta=LeadMeta(referrer=context.referrer, user_agent=context.user_agent, ip=context.ip),
        booking=BookingInfo(constraint=settings.booking_constraint, location=settings.booking_location),
    )

    save_lead(store, record)
    logger.info("INTAKE: stored lead %s (generated_dm=%s)", key, suggestion.generated)

    notifier.alert(lead, suggestion.text, admin_link=context.admin_link)
    return record
