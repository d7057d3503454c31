from __future__ import annotations

from fastapi import HTTPException


class DomainError(Exception):
    """Base exception for console feature operations."""


class NotFoundError(DomainError):
    pass


class ValidationError(DomainError):
    pass


class ConflictError(DomainError):
    pass


class UpstreamError(DomainError):
    """A third-party service (email provider, WhatsApp Cloud API) failed."""


def to_http_exception(exc: Exception) -> HTTPException | None:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, UpstreamError):
        return HTTPException(status_code=502, detail=str(exc))
    return None


def raise_http_error(exc: Exception) -> None:
    http_exc = to_http_exception(exc)
    if http_exc is not None:
        raise http_exc from exc
    raise exc
