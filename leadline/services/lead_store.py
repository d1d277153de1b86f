"""Key/value lead store over SQLAlchemy.

Keys look like ``leads/<fixed-width ISO timestamp>_<uuid4>``. Because the
timestamp leads and has a fixed width, reverse lexical order of keys is
newest-first order, so listing needs no separate index.
"""

import json
import logging
import re
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leadline.core.errors import StorageError
from leadline.core.time import iso_timestamp, utc_now
from leadline.models.store_entry import StoreEntry
from leadline.services.sanitize import sanitize_string

logger = logging.getLogger(__name__)

LEAD_PREFIX = "leads/"
RATE_PREFIX = "rate/"

# Strict pattern prevents arbitrary entry reads and writes.
LEAD_KEY_RE = re.compile(r"^leads/\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z_[0-9a-fA-F-]{36}$")


def new_lead_key(now: Optional[datetime] = None) -> str:
    return f"{LEAD_PREFIX}{iso_timestamp(now or utc_now())}_{uuid.uuid4()}"


def is_valid_lead_key(key: Any) -> bool:
    return isinstance(key, str) and len(key) < 220 and bool(LEAD_KEY_RE.fullmatch(key))


def rate_key_for_ip(ip: str) -> str:
    cleaned = sanitize_string(ip, 80)
    if not cleaned:
        return ""
    return RATE_PREFIX + re.sub(r"[^a-zA-Z0-9._-]", "_", cleaned)


class LeadStore:
    """Strongly consistent JSON store scoped to one named namespace."""

    def __init__(self, session_factory: Callable[[], Session], name: str):
        self.session_factory = session_factory
        self.name = name

    def put(self, key: str, value: Dict[str, Any], metadata: Optional[Dict[str, str]] = None) -> None:
        """Upsert ``value`` under ``key`` in a single transaction."""
        payload = json.dumps(value, default=str)
        db = self.session_factory()
        try:
            entry = db.get(StoreEntry, (self.name, key))
            if entry is None:
                entry = StoreEntry(store=self.name, key=key, value=payload, entry_metadata=metadata or {})
                db.add(entry)
            else:
                entry.value = payload
                if metadata is not None:
                    entry.entry_metadata = metadata
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("STORE: write failed for %s: %s", key, exc)
            raise StorageError(f"Failed to write {key}") from exc
        finally:
            db.close()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            entry = db.get(StoreEntry, (self.name, key))
            if entry is None:
                return None
            return json.loads(entry.value)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read {key}") from exc
        finally:
            db.close()

    def get_metadata(self, key: str) -> Optional[Dict[str, str]]:
        db = self.session_factory()
        try:
            entry = db.get(StoreEntry, (self.name, key))
            return dict(entry.entry_metadata or {}) if entry is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to read metadata for {key}") from exc
        finally:
            db.close()

    def list_keys(self, prefix: str) -> List[str]:
        db = self.session_factory()
        try:
            rows = (
                db.query(StoreEntry.key)
                .filter(StoreEntry.store == self.name, StoreEntry.key.startswith(prefix, autoescape=True))
                .all()
            )
            return [row.key for row in rows]
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list {prefix}") from exc
        finally:
            db.close()

    def _get_or_none(self, key: str) -> Optional[Dict[str, Any]]:
        try:
            return self.get(key)
        except (StorageError, ValueError) as exc:
            logger.warning("STORE: skipping unreadable entry %s: %s", key, exc)
            return None

    def get_many(self, keys: List[str], workers: int = 20) -> List[Optional[Dict[str, Any]]]:
        """Fetch ``keys`` with at most ``workers`` reads in flight, preserving order.

        A key that is missing or fails to read yields ``None`` in its slot.
        """
        if not keys:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(workers, len(keys)))) as pool:
            return list(pool.map(self._get_or_none, keys))
