from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from server.core.config import get_settings
from server.db.session import get_db_session
from server.features.email.errors import EmailTransportError
from server.features.email.transport import EmailTransport
from server.features.shared.auth import get_current_user_id
from server.features.shared.dependencies import get_email_transport

from .dispatch import send_campaign
from .errors import CampaignNotFoundError, CampaignValidationError
from .service import create_campaign, delete_campaign, get_campaign, list_campaigns, update_campaign
from .types import (
    CampaignCreateInput,
    CampaignResponse,
    CampaignSendResult,
    CampaignStatus,
    CampaignUpdateInput,
)

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


def _raise_http_error(exc: Exception) -> None:
    if isinstance(exc, CampaignNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, CampaignValidationError):
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if isinstance(exc, EmailTransportError):
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    raise exc


@router.get("", response_model=list[CampaignResponse])
async def get_campaigns(
    q: str = Query(default=""),
    campaign_status: CampaignStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> list[CampaignResponse]:
    return await list_campaigns(
        session,
        user_id=user_id,
        q=q,
        status=campaign_status,
        limit=limit,
        offset=offset,
    )


@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def post_campaign(
    payload: CampaignCreateInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> CampaignResponse:
    try:
        return await create_campaign(session, user_id=user_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign_by_id(
    campaign_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> CampaignResponse:
    try:
        return await get_campaign(session, user_id=user_id, campaign_id=campaign_id)
    except Exception as exc:
        _raise_http_error(exc)


@router.patch("/{campaign_id}", response_model=CampaignResponse)
async def patch_campaign(
    campaign_id: str,
    payload: CampaignUpdateInput,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> CampaignResponse:
    try:
        return await update_campaign(session, user_id=user_id, campaign_id=campaign_id, payload=payload)
    except Exception as exc:
        _raise_http_error(exc)


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_campaign(
    campaign_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    try:
        await delete_campaign(session, user_id=user_id, campaign_id=campaign_id)
    except Exception as exc:
        _raise_http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{campaign_id}/send", response_model=CampaignSendResult)
async def post_campaign_send(
    campaign_id: str,
    user_id: UUID = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_db_session),
    transport: EmailTransport = Depends(get_email_transport),
) -> CampaignSendResult:
    try:
        return await send_campaign(
            session,
            user_id=user_id,
            campaign_id=campaign_id,
            transport=transport,
            app_base_url=get_settings().app_base_url,
        )
    except Exception as exc:
        _raise_http_error(exc)
