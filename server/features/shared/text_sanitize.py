from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SURROGATES = re.compile(r"[\ud800-\udfff]")
_CRLF = re.compile(r"\r\n?")
_WHITESPACE = re.compile(r"\s+")


@dataclass
class SanitizationStats:
    control_removed: int = 0
    surrogates_replaced: int = 0
    newlines_normalized: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.control_removed or self.surrogates_replaced or self.newlines_normalized)


def sanitize_text(value: str, *, strip: bool) -> tuple[str, SanitizationStats]:
    """Drop control characters, replace lone surrogates and normalize newlines."""
    stats = SanitizationStats()
    cleaned, stats.control_removed = _CONTROL_CHARS.subn("", value)
    cleaned, stats.surrogates_replaced = _SURROGATES.subn("\ufffd", cleaned)
    cleaned, stats.newlines_normalized = _CRLF.subn("\n", cleaned)
    if strip:
        cleaned = cleaned.strip()
    return cleaned, stats


def sanitize_optional_text(value: str | None, *, strip: bool) -> tuple[str | None, SanitizationStats]:
    if value is None:
        return None, SanitizationStats()
    cleaned, stats = sanitize_text(value, strip=strip)
    if strip and not cleaned:
        return None, stats
    return cleaned, stats


def strip_html(html: str) -> str:
    """Readable text of an HTML document, without head, script or style content."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    return _WHITESPACE.sub(" ", soup.get_text(separator=" ")).strip()


def log_sanitization_stats(
    logger: logging.Logger,
    *,
    location: str,
    stats: SanitizationStats,
) -> None:
    if not stats.changed:
        return
    logger.debug(
        "Sanitized text write for %s (control_removed=%d, surrogates_replaced=%d, newlines_normalized=%d).",
        location,
        stats.control_removed,
        stats.surrogates_replaced,
        stats.newlines_normalized,
    )


__all__ = [
    "SanitizationStats",
    "log_sanitization_stats",
    "sanitize_optional_text",
    "sanitize_text",
    "strip_html",
]
