from __future__ import annotations

from .errors import MediaDomainError, MediaNotFoundError, MediaValidationError
from .storage import (
    LocalObjectStorage,
    extension_for,
    guess_content_type,
    normalize_object_path,
    storage_root,
)

__all__ = [
    "LocalObjectStorage",
    "MediaDomainError",
    "MediaNotFoundError",
    "MediaValidationError",
    "extension_for",
    "guess_content_type",
    "normalize_object_path",
    "storage_root",
]
