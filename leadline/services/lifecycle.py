"""Lead lifecycle: admin patches and filtered, newest-first listing."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from leadline.core.errors import InvalidPatchError
from leadline.core.time import utc_now
from leadline.schemas.lead import LEAD_STATUSES, LeadRecord
from leadline.services.lead_store import LEAD_PREFIX, LeadStore
from leadline.services.sanitize import sanitize_string

logger = logging.getLogger(__name__)

MAX_INTERNAL_NOTES = 2000
MAX_TAG_LENGTH = 40
MAX_TAGS = 25
DEFAULT_LIMIT = 50
MAX_LIMIT = 200

INVALID_STATUS_MESSAGE = f"Invalid status. Must be one of: {', '.join(LEAD_STATUSES)}"


def normalize_status(raw: Any) -> str:
    return sanitize_string(raw, 30).lower()


def validate_status(raw: Any) -> str:
    status = normalize_status(raw)
    if status not in LEAD_STATUSES:
        raise InvalidPatchError(INVALID_STATUS_MESSAGE)
    return status


def apply_patch(existing: LeadRecord, patch: Mapping[str, Any], now: Optional[datetime] = None) -> LeadRecord:
    """Return a patched copy of ``existing``; the original is never modified.

    Lifecycle stamps are first-transition-wins: once set they are kept.
    """
    if not isinstance(patch, Mapping):
        patch = {}
    changes: dict[str, Any] = {}

    if patch.get("status") is not None:
        changes["status"] = validate_status(patch["status"])

    if patch.get("internal_notes") is not None:
        changes["internal_notes"] = sanitize_string(patch["internal_notes"], MAX_INTERNAL_NOTES)

    if patch.get("tags") is not None:
        raw_tags = patch["tags"] if isinstance(patch["tags"], list) else []
        tags = [sanitize_string(tag, MAX_TAG_LENGTH) for tag in raw_tags if isinstance(tag, str)]
        changes["tags"] = [tag for tag in tags if tag][:MAX_TAGS]

    if patch.get("archived") is not None:
        changes["archived"] = bool(patch["archived"])

    # updated_at never moves backwards, even if the clock does
    stamp = max(now or utc_now(), existing.updated_at)
    changes["updated_at"] = stamp

    new_status = changes.get("status", existing.status)
    if new_status != existing.status:
        if new_status == "contacted" and existing.contacted_at is None:
            changes["contacted_at"] = stamp
        if new_status in ("closed", "booked") and existing.closed_at is None:
            changes["closed_at"] = stamp

    return existing.model_copy(update=changes)


@dataclass(frozen=True)
class LeadQuery:
    status: str = ""
    q: str = ""
    archived: str = "false"
    limit: int = DEFAULT_LIMIT
    offset: int = 0

    @classmethod
    def from_params(
        cls,
        status: Optional[str] = None,
        q: Optional[str] = None,
        archived: Optional[str] = None,
        limit: Optional[str] = None,
        offset: Optional[str] = None,
    ) -> "LeadQuery":
        return cls(
            status=(status or "").strip().lower(),
            q=(q or "").strip().lower(),
            archived=(archived or "").strip().lower() or "false",
            limit=min(MAX_LIMIT, max(1, _to_int(limit, DEFAULT_LIMIT))),
            offset=max(0, _to_int(offset, 0)),
        )


def _to_int(raw: Optional[str], default: int) -> int:
    try:
        return int(float(raw)) if raw not in (None, "") else default
    except (ValueError, OverflowError):
        return default


def _haystack(record: LeadRecord) -> str:
    lead = record.lead
    parts = [
        lead.name,
        lead.phone,
        lead.instagram,
        lead.service,
        lead.availability,
        lead.notes,
        record.status,
        record.internal_notes,
        *record.tags,
    ]
    return " ".join(part for part in parts if part).lower()


def matches(record: LeadRecord, query: LeadQuery) -> bool:
    if query.archived == "true" and not record.archived:
        return False
    if query.archived not in ("true", "all") and record.archived:
        return False
    if query.status and record.status != query.status:
        return False
    if query.q and query.q not in _haystack(record):
        return False
    return True


def _to_record(raw: Any) -> Optional[LeadRecord]:
    if not raw:
        return None
    if not isinstance(raw, dict):
        logger.warning("STORE: skipping non-object lead entry")
        return None
    try:
        return LeadRecord.model_validate(raw)
    except ValidationError:
        logger.warning("STORE: skipping malformed lead %s", raw.get("id"))
        return None


def list_leads(store: LeadStore, query: LeadQuery, workers: int = 20) -> tuple[int, list[LeadRecord]]:
    """Return ``(total matches, requested page)`` in newest-first order."""
    keys = sorted(store.list_keys(LEAD_PREFIX), reverse=True)
    records = [_to_record(raw) for raw in store.get_many(keys, workers=workers)]
    filtered = [record for record in records if record is not None and matches(record, query)]
    return len(filtered), filtered[query.offset : query.offset + query.limit]


def get_lead(store: LeadStore, key: str) -> Optional[LeadRecord]:
    try:
        raw = store.get(key)
    except ValueError:
        logger.warning("STORE: unreadable lead %s", key)
        return None
    return _to_record(raw)


def save_lead(store: LeadStore, record: LeadRecord) -> None:
    store.put(record.id, record.model_dump(mode="json"), metadata=record.store_metadata())
