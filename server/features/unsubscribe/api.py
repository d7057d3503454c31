from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse, JSONResponse, Response
from sqlalchemy.ext.asyncio import AsyncSession

from server.db.session import get_db_session

from .errors import UnsubscribeFailedError, UnsubscribeNotFoundError, UnsubscribeValidationError
from .pages import already_unsubscribed_page, error_page, success_page
from .service import parse_link_ids, unsubscribe
from .types import UnsubscribeErrorResponse, UnsubscribeResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["unsubscribe"])

_ERROR_PAGES = {
    400: ("Invalid link", "This unsubscribe link is not valid."),
    404: ("Not found", "We could not find the subscription for this link."),
    500: ("Internal error", "We could not process your unsubscribe request. Please try again later."),
}


def _error_response(status_code: int, error: str, *, as_json: bool, message: str | None = None) -> Response:
    if as_json:
        payload = UnsubscribeErrorResponse(error=error, message=message)
        return JSONResponse(status_code=status_code, content=payload.model_dump(exclude_none=True))
    title, text = _ERROR_PAGES[status_code]
    return HTMLResponse(status_code=status_code, content=error_page(title, text))


@router.get("/unsubscribe")
async def get_unsubscribe(
    contact: str | None = Query(default=None),
    campaign: str | None = Query(default=None),
    response_format: str = Query(default="html", alias="format"),
    session: AsyncSession = Depends(get_db_session),
) -> Response:
    as_json = response_format == "json"
    try:
        contact_id, campaign_id = parse_link_ids(contact, campaign)
        outcome = await unsubscribe(session, contact_id=contact_id, campaign_id=campaign_id)
    except UnsubscribeValidationError as exc:
        logger.warning("Rejected unsubscribe link contact=%r campaign=%r: %s", contact, campaign, exc)
        return _error_response(400, str(exc), as_json=as_json)
    except UnsubscribeNotFoundError as exc:
        return _error_response(404, str(exc), as_json=as_json)
    except UnsubscribeFailedError as exc:
        logger.exception("Unsubscribe failed for contact=%s campaign=%s", contact, campaign)
        return _error_response(500, "Internal server error", as_json=as_json, message=str(exc))

    if as_json:
        payload = UnsubscribeResponse(
            status=outcome.status,
            email=outcome.email,
            campaign_name=outcome.campaign_name,
        )
        return JSONResponse(content=payload.model_dump(exclude_none=True))
    if outcome.status == "already-unsubscribed":
        return HTMLResponse(content=already_unsubscribed_page(outcome.email))
    return HTMLResponse(content=success_page(outcome.email, outcome.campaign_name))
