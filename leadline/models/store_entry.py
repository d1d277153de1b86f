"""Durable key/value entry backing the lead store and rate windows."""

from sqlalchemy import JSON, Column, DateTime, String, Text

from leadline.db.base_class import Base
from leadline.core.time import utc_now


class StoreEntry(Base):
    __tablename__ = "store_entries"

    store = Column(String(100), primary_key=True)
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    entry_metadata = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)
