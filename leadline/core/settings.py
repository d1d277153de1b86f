import os
from typing import Mapping, Optional

from dotenv import load_dotenv

DEFAULT_BOOKING_SCRIPT = (
    "To schedule, call Paul Mitchell Logan Guest Services at (435) 752-3599 or use their "
    "'Book a Service' option online, and request Ashlee Christensen by name."
)


def _split_csv(value: str) -> list[str]:
    return [item.strip().lower() for item in value.split(",") if item.strip()]


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = (environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Settings:
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        env = os.environ if environ is None else environ

        self.app_name = "Leadline"
        self.api_version = "1.0.0"
        self.log_level = (env.get("LOG_LEVEL") or "INFO").upper()
        self.database_url = env.get("DATABASE_URL") or "sqlite:///./leadline.db"
        self.store_name = env.get("LEADS_STORE_NAME") or "leadline-leads"

        self.admin_emails = _split_csv(env.get("ADMIN_EMAILS") or "")
        self.admin_role = (env.get("ADMIN_ROLE") or "").strip()
        self.identity_jwt_secret = env.get("IDENTITY_JWT_SECRET") or ""

        self.openai_api_key = env.get("OPENAI_API_KEY") or ""
        self.openai_model = env.get("OPENAI_MODEL") or "gpt-5.2"

        self.twilio_account_sid = env.get("TWILIO_ACCOUNT_SID") or ""
        self.twilio_auth_token = env.get("TWILIO_AUTH_TOKEN") or ""
        self.twilio_from_number = env.get("TWILIO_FROM_NUMBER") or ""
        self.alert_sms_to = env.get("ALERT_SMS_TO") or ""

        self.site_url = env.get("SITE_URL") or env.get("URL") or env.get("DEPLOY_PRIME_URL") or ""

        self.rate_limit_window_seconds = _int(env, "RATE_LIMIT_WINDOW_SECONDS", 10 * 60)
        self.rate_limit_max_requests = _int(env, "RATE_LIMIT_MAX_REQUESTS", 3)
        self.max_payload_bytes = _int(env, "MAX_PAYLOAD_BYTES", 10000)
        self.list_concurrency = _int(env, "LIST_CONCURRENCY", 20)

        self.business_name = env.get("BUSINESS_NAME") or "Ashlee"
        self.business_description = env.get("BUSINESS_DESCRIPTION") or "a nail business in Logan, Utah"
        self.booking_script = env.get("BOOKING_SCRIPT") or DEFAULT_BOOKING_SCRIPT
        self.booking_phone = env.get("BOOKING_PHONE") or "(435) 752-3599"
        self.booking_constraint = env.get("BOOKING_CONSTRAINT") or "Paul Mitchell clinic only"
        self.booking_location = env.get("BOOKING_LOCATION") or "Logan, UT"

    @property
    def openai_configured(self) -> bool:
        return bool(self.openai_api_key)

    @property
    def twilio_configured(self) -> bool:
        return all(
            [self.twilio_account_sid, self.twilio_auth_token, self.twilio_from_number, self.alert_sms_to]
        )


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance, loading `.env` on first use."""
    global _settings_instance
    if _settings_instance is None:
        load_dotenv()
        _settings_instance = Settings()
    return _settings_instance
