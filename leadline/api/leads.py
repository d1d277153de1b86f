"""Lead intake and admin endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool

from leadline.core.errors import InvalidPatchError, LeadValidationError, RateLimitExceeded
from leadline.core.settings import Settings, get_settings
from leadline.dependencies.auth import get_current_admin
from leadline.dependencies.services import get_lead_store, get_notifier, get_rate_limiter
from leadline.schemas.identity import AdminIdentity
from leadline.schemas.lead import LeadCreateResponse, LeadListResponse, LeadUpdateResponse
from leadline.services.intake import PayloadTooLarge, RequestContext, submit_lead
from leadline.services.lead_store import LeadStore, is_valid_lead_key
from leadline.services.lifecycle import (
    LeadQuery,
    apply_patch,
    get_lead,
    list_leads,
    save_lead,
    validate_status,
)
from leadline.services.notifications import NotificationOrchestrator
from leadline.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


def _content_length_exceeds(request: Request, max_bytes: int) -> bool:
    raw = request.headers.get("content-length")
    if not raw:
        return False
    try:
        return int(raw) > max_bytes
    except ValueError:
        return False


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (ValueError, RecursionError):
        return None


def get_client_ip(request: Request) -> str:
    ip = (
        request.headers.get("x-nf-client-connection-ip")
        or request.headers.get("x-forwarded-for")
        or (request.client.host if request.client else "")
    )
    # x-forwarded-for may carry a list; the first hop is the client
    return str(ip).split(",")[0].strip()


def request_context(request: Request) -> RequestContext:
    return RequestContext(
        ip=get_client_ip(request),
        referrer=request.headers.get("referer", ""),
        user_agent=request.headers.get("user-agent", ""),
        origin=str(request.base_url).rstrip("/"),
    )


@router.post("", response_model=LeadCreateResponse)
async def create_lead(
    request: Request,
    settings: Settings = Depends(get_settings),
    store: LeadStore = Depends(get_lead_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
    notifier: NotificationOrchestrator = Depends(get_notifier),
):
    if _content_length_exceeds(request, settings.max_payload_bytes):
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="Payload too large")

    body = await _read_json(request)
    try:
        record = await run_in_threadpool(
            submit_lead, body, request_context(request), store, limiter, notifier, settings
        )
    except PayloadTooLarge as exc:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc))
    except LeadValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except RateLimitExceeded:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail="Too many requests")
    return LeadCreateResponse(id=record.id, suggested_dm=record.suggested_dm)


@router.get("", response_model=LeadListResponse)
def read_leads(
    status: str | None = None,
    q: str | None = None,
    archived: str | None = None,
    limit: str | None = None,
    offset: str | None = None,
    settings: Settings = Depends(get_settings),
    store: LeadStore = Depends(get_lead_store),
    current_admin: AdminIdentity = Depends(get_current_admin),
):
    query = LeadQuery.from_params(status=status, q=q, archived=archived, limit=limit, offset=offset)
    total, page = list_leads(store, query, workers=settings.list_concurrency)
    return LeadListResponse(total=total, offset=query.offset, limit=query.limit, leads=page)


@router.api_route("/update", methods=["POST", "PATCH"], response_model=LeadUpdateResponse)
async def update_lead(
    request: Request,
    store: LeadStore = Depends(get_lead_store),
    current_admin: AdminIdentity = Depends(get_current_admin),
):
    body = await _read_json(request)
    if not isinstance(body, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON body")

    lead_id = body.get("id")
    if not is_valid_lead_key(lead_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid lead id")

    patch = body.get("patch") if isinstance(body.get("patch"), dict) else {}
    try:
        if patch.get("status") is not None:
            validate_status(patch["status"])
    except InvalidPatchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    existing = await run_in_threadpool(get_lead, store, lead_id)
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lead not found")

    try:
        updated = apply_patch(existing, patch)
    except InvalidPatchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    await run_in_threadpool(save_lead, store, updated)
    logger.info("LIFECYCLE: %s updated lead %s", current_admin.email, lead_id)
    return LeadUpdateResponse(lead=updated)
