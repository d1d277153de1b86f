"""Pure sanitization and validation of public lead submissions.

Nothing here touches storage or the network; every function maps raw input to
canonical values or raises ``LeadValidationError``.
"""

import re
from typing import Any, Mapping

from leadline.core.errors import LeadValidationError
from leadline.schemas.lead import LeadPayload

COUNTRY_CODE = "1"
HONEYPOT_KEYS = ("hp", "honeypot", "website", "company", "confirm_email")

FIELD_LIMITS = {
    "name": 80,
    "phone": 50,
    "instagram": 60,
    "service": 100,
    "availability": 160,
    "notes": 1000,
    "contact_preference": 40,
    "budget": 40,
    "length": 40,
    "style": 80,
}

# Alternate field names accepted from older site forms, checked in order.
FIELD_ALIASES = {
    "name": ("name", "full_name"),
    "phone": ("phone", "mobile", "phone_number"),
    "instagram": ("instagram", "ig"),
    "service": ("service", "requested_service"),
    "availability": ("availability", "timeframe"),
    "notes": ("notes", "message", "details"),
}

_E164_RE = re.compile(r"^\+\d{10,15}$")


def sanitize_string(value: Any, max_len: int = 500) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return text[:max_len]


def normalize_instagram(value: Any) -> str:
    handle = sanitize_string(value, FIELD_LIMITS["instagram"])
    if handle.startswith("@"):
        handle = handle[1:]
    return f"@{handle}" if handle else ""


def normalize_phone(value: Any) -> str:
    """Canonicalize to ``+<digits>``; returns ``""`` for anything unusable."""
    raw = sanitize_string(value, FIELD_LIMITS["phone"])
    if not raw:
        return ""

    if raw.startswith("+"):
        candidate = re.sub(r"[^\d+]", "", raw)
        return candidate if _E164_RE.match(candidate) else ""

    digits = re.sub(r"\D", "", raw)
    if len(digits) == 10:
        return f"+{COUNTRY_CODE}{digits}"
    if len(digits) == 11 and digits.startswith(COUNTRY_CODE):
        return f"+{digits}"
    return ""


def _first(body: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_ALIASES.get(field, (field,)):
        value = body.get(key)
        if value:
            return value
    return None


def is_honeypot_tripped(body: Any) -> bool:
    if not isinstance(body, Mapping):
        return False
    return any(sanitize_string(body.get(key), 200) for key in HONEYPOT_KEYS if key in body)


def validate_lead_payload(body: Any) -> LeadPayload:
    if not isinstance(body, Mapping):
        raise LeadValidationError("Invalid JSON body")

    name = sanitize_string(_first(body, "name"), FIELD_LIMITS["name"])
    phone = normalize_phone(_first(body, "phone"))
    instagram = normalize_instagram(_first(body, "instagram"))

    if not name:
        raise LeadValidationError("Missing name")
    if not phone and not instagram:
        raise LeadValidationError("Provide phone or instagram")

    optional = {
        field: sanitize_string(_first(body, field), FIELD_LIMITS[field])
        for field in ("service", "availability", "notes", "contact_preference", "budget", "length", "style")
    }
    return LeadPayload(name=name, phone=phone, instagram=instagram, **optional)
