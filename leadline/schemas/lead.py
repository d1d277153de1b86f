"""Lead schemas for stored records and API responses."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict


LeadStatus = Literal["new", "contacted", "booked", "closed", "noshow"]
LEAD_STATUSES: tuple[str, ...] = ("new", "contacted", "booked", "closed", "noshow")


class LeadPayload(BaseModel):
    """Canonical contact payload produced by sanitization."""

    name: str
    phone: str = ""
    instagram: str = ""
    service: str = ""
    availability: str = ""
    notes: str = ""
    contact_preference: str = ""
    budget: str = ""
    length: str = ""
    style: str = ""


class LeadMeta(BaseModel):
    referrer: str = ""
    user_agent: str = ""
    ip: str = ""


class BookingInfo(BaseModel):
    constraint: str = ""
    location: str = ""


class LeadRecord(BaseModel):
    id: str
    created_at: datetime
    updated_at: datetime
    status: LeadStatus = "new"
    archived: bool = False
    lead: LeadPayload
    suggested_dm: str = ""
    internal_notes: str = ""
    tags: list[str] = []
    meta: LeadMeta = LeadMeta()
    booking: BookingInfo = BookingInfo()
    contacted_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")

    def store_metadata(self) -> dict[str, str]:
        return {"status": self.status, "archived": "true" if self.archived else "false"}


class RateWindow(BaseModel):
    window_start_at: datetime
    count: int
    last_submit_at: datetime


class LeadCreateResponse(BaseModel):
    ok: bool = True
    id: str
    suggested_dm: str


class LeadListResponse(BaseModel):
    ok: bool = True
    total: int
    offset: int
    limit: int
    leads: list[LeadRecord]


class LeadUpdateResponse(BaseModel):
    ok: bool = True
    lead: LeadRecord
