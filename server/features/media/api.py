from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from server.features.shared.dependencies import get_object_storage

from .errors import MediaNotFoundError
from .storage import LocalObjectStorage, guess_content_type

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{path:path}")
async def get_media(
    path: str,
    storage: LocalObjectStorage = Depends(get_object_storage),
) -> FileResponse:
    try:
        file_path = storage.resolve(path)
    except MediaNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return FileResponse(file_path, media_type=guess_content_type(file_path))
