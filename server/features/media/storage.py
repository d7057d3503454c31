from __future__ import annotations

import asyncio
import mimetypes
import re
from pathlib import Path, PurePosixPath

from server.core.config import Settings

from .errors import MediaNotFoundError, MediaValidationError

_UNSAFE_SEGMENT_CHARS = re.compile(r"[^\w.\-]+")

# WhatsApp media types whose mimetypes guess varies across platforms.
_PREFERRED_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "audio/ogg": ".ogg",
    "audio/mpeg": ".mp3",
    "audio/aac": ".aac",
    "video/mp4": ".mp4",
    "video/3gpp": ".3gp",
    "application/pdf": ".pdf",
}


def storage_root(storage_dir: str) -> Path:
    root = Path(storage_dir)
    if not root.is_absolute():
        project_root = Path(__file__).resolve().parents[3]
        root = project_root / root
    return root


def normalize_object_path(path: str) -> str:
    segments: list[str] = []
    for raw in PurePosixPath(path.replace("\\", "/")).parts:
        if raw in {"", "/", ".", ".."}:
            continue
        cleaned = _UNSAFE_SEGMENT_CHARS.sub("_", raw).strip("._")
        if cleaned:
            segments.append(cleaned)
    if not segments:
        raise MediaValidationError("Object path cannot be empty.")
    return "/".join(segments)


class LocalObjectStorage:
    """Public object storage on the local disk, served under ``/media``."""

    def __init__(self, root: Path, *, public_base_url: str) -> None:
        self.root = root
        self.public_base_url = public_base_url.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> LocalObjectStorage:
        return cls(
            storage_root(settings.storage_dir) / "media",
            public_base_url=f"{settings.app_base_url.rstrip('/')}/media",
        )

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{normalize_object_path(path)}"

    def resolve(self, path: str) -> Path:
        try:
            normalized = normalize_object_path(path)
        except MediaValidationError as exc:
            raise MediaNotFoundError(f"Media '{path}' was not found.") from exc
        resolved = (self.root / normalized).resolve()
        if not resolved.is_relative_to(self.root.resolve()) or not resolved.is_file():
            raise MediaNotFoundError(f"Media '{path}' was not found.")
        return resolved

    async def upload(self, path: str, data: bytes) -> str:
        if not data:
            raise MediaValidationError("Cannot store an empty object.")
        normalized = normalize_object_path(path)
        target = self.root / normalized
        await asyncio.to_thread(self._write, target, data)
        return self.public_url(normalized)

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def guess_content_type(path: str | Path) -> str:
    guessed, _ = mimetypes.guess_type(str(path))
    return (guessed or "application/octet-stream").lower()


def extension_for(content_type: str | None) -> str:
    if not content_type:
        return ""
    base = content_type.split(";", 1)[0].strip().lower()
    return _PREFERRED_EXTENSIONS.get(base) or mimetypes.guess_extension(base) or ""
