"""Text helpers used when preparing captures for the model."""

from __future__ import annotations

from urllib.parse import urlsplit

TRUNCATION_MARKER = "..."


def truncate(text: str, max_chars: int = 2000) -> str:
    """Cut text to ``max_chars`` characters and append a marker when cut."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def is_url(text: str) -> bool:
    """True when the whole text is a single absolute http(s) URL."""
    if not text or any(ch.isspace() for ch in text):
        return False
    try:
        parts = urlsplit(text)
        # Accessing .port validates it and raises ValueError when out of range
        parts.port
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https"):
        return False
    return bool(parts.hostname)


def strip_code_fence(text: str) -> str:
    """Remove a surrounding Markdown code fence, if any."""
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()
    body = lines[1:]
    if body and body[-1].strip().startswith("```"):
        body = body[:-1]
    return "\n".join(body).strip()
