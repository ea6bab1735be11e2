"""Accelerator parsing and global shortcut registration."""

from __future__ import annotations

import logging
import string
import sys
import threading
from typing import Any, Callable, Dict, Optional

from clipscribe.errors import HotkeyRegistrationError, InvalidHotkeySpec
from clipscribe.models import HotkeyBinding, Modifier

LOGGER = logging.getLogger(__name__)


def _build_key_table() -> Dict[str, str]:
    table = {letter: f"Key{letter}" for letter in string.ascii_uppercase}
    table.update({digit: f"Digit{digit}" for digit in string.digits})
    table.update({f"F{n}": f"F{n}" for n in range(1, 13)})
    table.update({"SPACE": "Space", "ENTER": "Enter", "ESCAPE": "Escape"})
    return table


KEY_CODES = _build_key_table()

_MODIFIER_NAMES = {
    "shift": Modifier.SHIFT,
    "alt": Modifier.ALT,
    "option": Modifier.ALT,
    "control": Modifier.CONTROL,
    "ctrl": Modifier.CONTROL,
    "meta": Modifier.META,
    "cmd": Modifier.META,
    "command": Modifier.META,
    "super": Modifier.META,
}
_PLATFORM_MODIFIER_NAMES = ("commandorcontrol", "cmdorctrl")


def parse_hotkey(spec: str, *, platform: str | None = None) -> HotkeyBinding:
    """Parse an accelerator such as ``CommandOrControl+Shift+S``.

    Modifier and key names are case-insensitive. Exactly one non-modifier key
    from :data:`KEY_CODES` is required.
    """
    platform = platform or sys.platform
    modifiers = set()
    key_code: Optional[str] = None

    for raw in spec.split("+"):
        token = raw.strip()
        lowered = token.lower()
        if lowered in _PLATFORM_MODIFIER_NAMES:
            modifiers.add(Modifier.META if platform == "darwin" else Modifier.CONTROL)
        elif lowered in _MODIFIER_NAMES:
            modifiers.add(_MODIFIER_NAMES[lowered])
        else:
            code = KEY_CODES.get(token.upper())
            if code is None:
                raise InvalidHotkeySpec(f"Unsupported key: {token!r} in {spec!r}")
            if key_code is not None:
                raise InvalidHotkeySpec(f"More than one key specified in hotkey string: {spec!r}")
            key_code = code

    if key_code is None:
        raise InvalidHotkeySpec(f"No key specified in hotkey string: {spec!r}")
    return HotkeyBinding(modifiers=frozenset(modifiers), key=key_code)


def validate_hotkey(spec: str) -> HotkeyBinding:
    """Check an accelerator without registering it."""
    return parse_hotkey(spec)


_PYNPUT_MODIFIERS = {
    Modifier.META: "<cmd>",
    Modifier.CONTROL: "<ctrl>",
    Modifier.ALT: "<alt>",
    Modifier.SHIFT: "<shift>",
}
_PYNPUT_SPECIAL_KEYS = {"Space": "<space>", "Enter": "<enter>", "Escape": "<esc>"}


def to_pynput_hotkey(binding: HotkeyBinding) -> str:
    """Render a binding in ``pynput.keyboard.HotKey.parse`` syntax."""
    parts = [
        _PYNPUT_MODIFIERS[m]
        for m in (Modifier.META, Modifier.CONTROL, Modifier.ALT, Modifier.SHIFT)
        if m in binding.modifiers
    ]
    key = binding.key
    if key in _PYNPUT_SPECIAL_KEYS:
        parts.append(_PYNPUT_SPECIAL_KEYS[key])
    elif key.startswith("Key") or key.startswith("Digit"):
        parts.append(key[-1].lower())
    else:
        parts.append(f"<{key.lower()}>")
    return "+".join(parts)


def _default_listener_factory(hotkeys: Dict[str, Callable[[], None]]) -> Any:
    from pynput import keyboard  # type: ignore[import-not-found]

    return keyboard.GlobalHotKeys(hotkeys)


class HotkeyRegistry:
    """Owns the single active global shortcut listener."""

    def __init__(
        self,
        on_trigger: Callable[[], None],
        *,
        listener_factory: Callable[[Dict[str, Callable[[], None]]], Any] | None = None,
    ) -> None:
        self.on_trigger = on_trigger
        self.listener_factory = listener_factory or _default_listener_factory
        self._listener: Any = None
        self._active: Optional[HotkeyBinding] = None
        self._lock = threading.Lock()

    @property
    def active(self) -> Optional[HotkeyBinding]:
        return self._active

    def register(self, binding: HotkeyBinding) -> None:
        """Replace the active binding. Failures are raised, never retried."""
        with self._lock:
            self._stop_listener()
            combo = to_pynput_hotkey(binding)
            try:
                listener = self.listener_factory({combo: self.on_trigger})
                listener.start()
            except Exception as exc:
                raise HotkeyRegistrationError(
                    f"Failed to register hotkey {binding.to_accelerator()}: {exc}"
                ) from exc
            self._listener = listener
            self._active = binding
        LOGGER.info("Registered global hotkey %s", binding.to_accelerator())

    def unregister(self) -> None:
        with self._lock:
            self._stop_listener()

    def _stop_listener(self) -> None:
        if self._listener is None:
            return
        try:
            self._listener.stop()
        except Exception as exc:
            LOGGER.warning("Failed to stop hotkey listener: %s", exc)
        LOGGER.debug("Unregistered global hotkey")
        self._listener = None
        self._active = None
