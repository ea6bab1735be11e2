"""Core clipscribe data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union


@dataclass(frozen=True, slots=True)
class TextCapture:
    """Plain text read from the clipboard."""

    plain: str


@dataclass(frozen=True, slots=True)
class ImageCapture:
    """Clipboard image encoded as base64 PNG, with its pixel dimensions."""

    data: str
    width: int
    height: int


Capture = Union[TextCapture, ImageCapture]


def capture_to_dict(capture: Capture) -> Dict[str, Any]:
    """Serialize a capture into the self-describing blob kept in the store."""
    if isinstance(capture, TextCapture):
        return {"type": "text", "content": capture.plain}
    if isinstance(capture, ImageCapture):
        return {
            "type": "image",
            "content": capture.data,
            "width": capture.width,
            "height": capture.height,
        }
    raise TypeError(f"Unsupported capture type: {type(capture).__name__}")


def capture_from_dict(payload: Dict[str, Any]) -> Capture:
    """Inverse of :func:`capture_to_dict`. Unknown kinds raise ``ValueError``."""
    kind = payload.get("type")
    if kind == "text":
        return TextCapture(plain=str(payload.get("content") or ""))
    if kind == "image":
        return ImageCapture(
            data=str(payload.get("content") or ""),
            width=int(payload.get("width") or 0),
            height=int(payload.get("height") or 0),
        )
    raise ValueError(f"Unknown clip type: {kind!r}")


@dataclass(frozen=True, slots=True)
class EnrichmentResult:
    """Category, tags and optional summary produced for one capture.

    ``degraded`` is set when any field came from fallback values instead of
    the model.
    """

    category: str
    tags: Tuple[str, ...]
    summary: Optional[str] = None
    degraded: bool = False


@dataclass(frozen=True, slots=True)
class Record:
    """A persisted, enriched capture."""

    id: str
    capture: Capture
    category: str
    summary: Optional[str]
    tags: Optional[Tuple[str, ...]]
    created_at: datetime


class Modifier(str, Enum):
    META = "meta"
    SHIFT = "shift"
    ALT = "alt"
    CONTROL = "control"


@dataclass(frozen=True, slots=True)
class HotkeyBinding:
    """Parsed form of an accelerator string such as ``Control+Shift+S``."""

    modifiers: FrozenSet[Modifier]
    key: str

    def to_accelerator(self) -> str:
        names = {
            Modifier.META: "Meta",
            Modifier.CONTROL: "Control",
            Modifier.ALT: "Alt",
            Modifier.SHIFT: "Shift",
        }
        parts = [
            names[m]
            for m in (Modifier.META, Modifier.CONTROL, Modifier.ALT, Modifier.SHIFT)
            if m in self.modifiers
        ]
        key = self.key
        if key.startswith("Key") or key.startswith("Digit"):
            key = key[-1]
        parts.append(key)
        return "+".join(parts)
