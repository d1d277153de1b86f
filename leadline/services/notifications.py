"""Best-effort outreach suggestion and SMS alert for new leads.

Neither operation raises. Each returns an outcome whose value is always
usable: a suggestion falls back to a fixed template, and an alert reports
whether it went out.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from openai import OpenAI
from twilio.rest import Client

from leadline.core.settings import Settings
from leadline.schemas.lead import LeadPayload
from leadline.services.sanitize import sanitize_string

logger = logging.getLogger(__name__)

MAX_SUGGESTION_CHARS = 550


@dataclass(frozen=True)
class Suggestion:
    text: str
    generated: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class AlertOutcome:
    sent: bool
    error: Optional[str] = None


def fallback_message(name: str, settings: Settings) -> str:
    first = sanitize_string(name, 40) or "there"
    text = (
        f"Hi {first} - thanks for reaching out. What style/length are you wanting, "
        f"and what days/times work best?\n\n{settings.booking_script}"
    )
    return text[:MAX_SUGGESTION_CHARS]


def build_instructions(settings: Settings) -> str:
    return " ".join(
        [
            f"You are {settings.business_name}'s assistant for {settings.business_description}.",
            f"{settings.business_name} can only accept bookings through this process right now: "
            f"{settings.booking_constraint}.",
            "Write a short, professional, friendly Instagram DM (2-4 sentences).",
            "No emojis.",
            "Explain the booking constraint and give a clear next step.",
            f"Keep under {MAX_SUGGESTION_CHARS} characters.",
            "Return only the DM text.",
            "Include this official booking method verbatim: " + settings.booking_script,
            "Do not mention pricing.",
        ]
    )


def build_prompt(lead: LeadPayload, settings: Settings) -> str:
    return "\n".join(
        [
            "Lead details:",
            "Booking script:",
            settings.booking_script,
            f"Name: {lead.name}",
            f"Instagram: {lead.instagram or 'N/A'}",
            f"Phone: {lead.phone or 'N/A'}",
            f"Service: {lead.service or 'N/A'}",
            f"Availability: {lead.availability or 'N/A'}",
            f"Notes: {lead.notes or 'N/A'}",
        ]
    )


def build_alert_body(lead: LeadPayload, suggested_dm: str, settings: Settings, admin_link: str = "") -> str:
    lines = [f"New lead: {lead.name}"]
    if lead.instagram:
        lines.append(f"IG: {lead.instagram}")
    if lead.phone:
        lines.append(f"Phone: {lead.phone}")
    if lead.service:
        lines.append(f"Service: {lead.service}")
    if lead.availability:
        lines.append(f"Avail: {lead.availability}")
    if lead.notes:
        lines.append(f"Notes: {lead.notes}")
    if suggested_dm:
        lines.append(f"Suggested DM: {suggested_dm}")
    lines.append(f"Booking: {settings.booking_script}")
    lines.append(f"Booking phone: {settings.booking_phone}")
    if admin_link:
        lines.append(f"Admin: {admin_link}")
    return "\n".join(lines)


class NotificationOrchestrator:
    """Wraps the generation service and SMS gateway; clients are built lazily.

    Pre-built clients can be passed in, which is how tests substitute fakes.
    """

    def __init__(self, settings: Settings, llm_client: Optional[Any] = None, sms_client: Optional[Any] = None):
        self.settings = settings
        self._llm_client = llm_client
        self._sms_client = sms_client

    @property
    def llm_client(self) -> Any:
        if self._llm_client is None:
            if not self.settings.openai_configured:
                raise RuntimeError("OPENAI_API_KEY missing")
            self._llm_client = OpenAI(api_key=self.settings.openai_api_key)
        return self._llm_client

    @property
    def sms_client(self) -> Any:
        if self._sms_client is None:
            if not self.settings.twilio_configured:
                raise RuntimeError("Twilio settings missing")
            self._sms_client = Client(self.settings.twilio_account_sid, self.settings.twilio_auth_token)
        return self._sms_client

    def suggest(self, lead: LeadPayload) -> Suggestion:
        """Generate an outreach DM, exactly one service call per lead."""
        try:
            response = self.llm_client.responses.create(
                model=self.settings.openai_model,
                instructions=build_instructions(self.settings),
                input=build_prompt(lead, self.settings),
            )
            text = (getattr(response, "output_text", "") or "").strip()
        except Exception as exc:  # noqa: BLE001
            logger.warning("NOTIFY: suggestion generation failed, using template: %s", exc)
            return Suggestion(text=fallback_message(lead.name, self.settings), generated=False, error=str(exc))

        if not text:
            return Suggestion(text=fallback_message(lead.name, self.settings), generated=False, error="Empty result")
        return Suggestion(text=text[:MAX_SUGGESTION_CHARS], generated=True)

    def alert(self, lead: LeadPayload, suggested_dm: str, admin_link: str = "") -> AlertOutcome:
        if not self.settings.twilio_configured and self._sms_client is None:
            logger.info("NOTIFY: SMS alert skipped, gateway not configured")
            return AlertOutcome(sent=False, error="Twilio settings missing")
        try:
            self.sms_client.messages.create(
                from_=self.settings.twilio_from_number,
                to=self.settings.alert_sms_to,
                body=build_alert_body(lead, suggested_dm, self.settings, admin_link),
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("NOTIFY: SMS alert failed: %s", exc)
            return AlertOutcome(sent=False, error=str(exc))
        return AlertOutcome(sent=True)
