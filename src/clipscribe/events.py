"""Synchronous notification bus for the shell around the agent."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, List

LOGGER = logging.getLogger(__name__)

CLIP_SAVED = "clip-saved"
CLIP_DELETED = "clip-deleted"

Listener = Callable[[Any], None]


class EventBus:
    """Fan-out of named events to subscribed callbacks.

    Callbacks run on the emitting thread. A failing subscriber is logged and
    does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, callback: Listener) -> None:
        with self._lock:
            self._subscribers.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: Listener) -> None:
        with self._lock:
            callbacks = self._subscribers.get(event, [])
            if callback in callbacks:
                callbacks.remove(callback)

    def emit(self, event: str, payload: Any = None) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event, []))
        LOGGER.debug("Emitting %s to %d subscriber(s)", event, len(callbacks))
        for callback in callbacks:
            try:
                callback(payload)
            except Exception:
                LOGGER.exception("Subscriber for %s failed", event)
