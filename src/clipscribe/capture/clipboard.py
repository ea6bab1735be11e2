"""Clipboard reading with copy simulation and a stability heuristic.

The copy keystroke is asynchronous at the OS level, so the reader waits a
short settle delay and then polls the clipboard several times. Two
consecutive reads of identical size are treated as a possibly stale buffer
and polled again; the final attempt is always accepted. When the final read
yields nothing, the last successful read is returned instead.
"""

from __future__ import annotations

import base64
import io
import logging
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import numpy as np
import pyperclip
from PIL import Image, ImageGrab

from clipscribe.errors import MalformedImageBuffer
from clipscribe.models import Capture, ImageCapture, TextCapture

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RawImage:
    """Unencoded RGBA pixels as handed over by the clipboard."""

    pixels: bytes
    width: int
    height: int


class ClipboardBackend(Protocol):
    def simulate_copy(self) -> None: ...

    def read_text(self) -> Optional[str]: ...

    def read_image(self) -> Optional[RawImage]: ...


class SystemClipboard:
    """Clipboard access through pyperclip, Pillow and a pynput keyboard."""

    def simulate_copy(self) -> None:
        from pynput.keyboard import Controller, Key  # type: ignore[import-not-found]

        modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
        kbd = Controller()
        kbd.press(modifier)
        try:
            kbd.press("c")
            kbd.release("c")
        finally:
            kbd.release(modifier)

    def read_text(self) -> Optional[str]:
        text = pyperclip.paste()
        return text or None

    def read_image(self) -> Optional[RawImage]:
        grabbed = ImageGrab.grabclipboard()
        if not isinstance(grabbed, Image.Image):
            return None
        rgba = grabbed.convert("RGBA")
        return RawImage(pixels=rgba.tobytes(), width=rgba.width, height=rgba.height)


def encode_image(raw: RawImage) -> ImageCapture:
    """Encode raw RGBA pixels as base64 PNG.

    Raises :class:`MalformedImageBuffer` when the buffer length does not match
    ``width * height * 4``.
    """
    expected = raw.width * raw.height * 4
    if raw.width <= 0 or raw.height <= 0 or len(raw.pixels) != expected:
        raise MalformedImageBuffer(
            f"Pixel buffer of {len(raw.pixels)} bytes does not fit {raw.width}x{raw.height} RGBA"
        )

    array = np.frombuffer(raw.pixels, dtype=np.uint8).reshape((raw.height, raw.width, 4))
    buffer = io.BytesIO()
    Image.fromarray(array).save(buffer, format="PNG")
    data = base64.b64encode(buffer.getvalue()).decode("ascii")
    return ImageCapture(data=data, width=raw.width, height=raw.height)


def payload_size(capture: Capture) -> int:
    if isinstance(capture, TextCapture):
        return len(capture.plain.encode("utf-8"))
    if isinstance(capture, ImageCapture):
        return len(capture.data)
    raise TypeError(f"Unsupported capture type: {type(capture).__name__}")


class ClipboardReader:
    """Produces one normalized capture per hotkey press."""

    def __init__(
        self,
        backend: ClipboardBackend | None = None,
        *,
        settle_delay: float = 0.12,
        attempts: int = 5,
        retry_delay: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.backend = backend or SystemClipboard()
        self.settle_delay = settle_delay
        self.attempts = attempts
        self.retry_delay = retry_delay
        self.sleep = sleep

    def capture(self) -> Optional[Capture]:
        """Copy the active selection and return it, or ``None`` if nothing arrived."""
        try:
            self.backend.simulate_copy()
        except Exception as exc:
            LOGGER.warning("Copy simulation failed: %s", exc)
        self.sleep(self.settle_delay)

        previous_size: Optional[int] = None
        last_read: Optional[Capture] = None
        for attempt in range(self.attempts):
            final = attempt == self.attempts - 1
            capture = self.read_once()
            if capture is not None:
                size = payload_size(capture)
                if final or (previous_size is not None and size != previous_size):
                    LOGGER.debug(
                        "Accepted clipboard payload on attempt %d (%d bytes)", attempt + 1, size
                    )
                    return capture
                previous_size = size
                last_read = capture
            if not final:
                self.sleep(self.retry_delay)

        # Later reads failed or came back empty; keep what was already read
        if last_read is not None:
            LOGGER.debug("Falling back to last successful clipboard read")
        return last_read

    def read_once(self) -> Optional[Capture]:
        """Single clipboard read. Text wins over image."""
        try:
            text = self.backend.read_text()
        except Exception as exc:
            LOGGER.debug("Text clipboard read failed: %s", exc)
            text = None
        if text:
            return TextCapture(plain=text)

        try:
            raw = self.backend.read_image()
        except Exception as exc:
            LOGGER.debug("Image clipboard read failed: %s", exc)
            return None
        if raw is None:
            return None
        return encode_image(raw)
