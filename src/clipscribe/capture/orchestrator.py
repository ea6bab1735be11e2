"""Capture cycle state machine: clipboard -> enrichment -> store -> notify."""

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from clipscribe.capture.clipboard import ClipboardReader
from clipscribe.enrichment.pipeline import EnrichmentPipeline
from clipscribe.errors import ClipboardUnavailable, MalformedImageBuffer, PersistenceFailure
from clipscribe.events import CLIP_SAVED, EventBus
from clipscribe.models import Capture, EnrichmentResult, Record
from clipscribe.store.records import PersistenceStore

LOGGER = logging.getLogger(__name__)


class CycleState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ENRICHING = "enriching"
    PERSISTING = "persisting"
    ABORTED = "aborted"


_TRANSITIONS = {
    CycleState.IDLE: {CycleState.CAPTURING},
    CycleState.CAPTURING: {CycleState.ENRICHING, CycleState.ABORTED},
    CycleState.ENRICHING: {CycleState.PERSISTING},
    CycleState.PERSISTING: {CycleState.IDLE},
    CycleState.ABORTED: set(),
}


@dataclass
class CaptureCycle:
    """One hotkey press worth of work."""

    cycle_id: int
    state: CycleState = CycleState.IDLE
    history: List[CycleState] = field(default_factory=lambda: [CycleState.IDLE])
    result: Optional[EnrichmentResult] = None
    record: Optional[Record] = None
    completion: Optional[Future] = None

    def transition(self, target: CycleState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal cycle transition {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    @property
    def saved(self) -> bool:
        return self.record is not None


class CaptureOrchestrator:
    """Sequences reader, pipeline and store for every trigger.

    ``trigger`` never blocks: clipboard polling runs on a single capture
    worker, and enrichment plus persistence run on a separate pool so the
    next press can be captured while earlier ones are still enriching.
    Cycles are not serialized against each other unless ``max_workers`` is 1.
    """

    def __init__(
        self,
        reader: ClipboardReader,
        pipeline: EnrichmentPipeline,
        store: PersistenceStore,
        events: EventBus,
        *,
        max_workers: int = 4,
    ) -> None:
        self.reader = reader
        self.pipeline = pipeline
        self.store = store
        self.events = events
        self._capture_pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="capture")
        self._cycle_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cycle")
        self._ids = itertools.count(1)
        self._closed = False
        self._lock = threading.Lock()

    def trigger(self) -> Optional[Future]:
        """Hotkey callback. Returns a future resolving to the cycle after capture."""
        with self._lock:
            if self._closed:
                LOGGER.warning("Capture requested after shutdown, ignoring")
                return None
            cycle = CaptureCycle(cycle_id=next(self._ids))
            future = self._capture_pool.submit(self._capture_stage, cycle, True)
        future.add_done_callback(_log_failure)
        return future

    def run_cycle(self) -> CaptureCycle:
        """Run one complete cycle on the calling thread."""
        cycle = CaptureCycle(cycle_id=next(self._ids))
        return self._capture_stage(cycle, False)

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            self._closed = True
        self._capture_pool.shutdown(wait=wait)
        self._cycle_pool.shutdown(wait=wait)

    def _capture_stage(self, cycle: CaptureCycle, dispatch: bool) -> CaptureCycle:
        cycle.transition(CycleState.CAPTURING)
        try:
            capture = self.reader.capture()
            if capture is None:
                raise ClipboardUnavailable("no text or image on the clipboard")
        except ClipboardUnavailable as exc:
            LOGGER.info("Nothing captured (no selection or copy failed): %s", exc)
            cycle.transition(CycleState.ABORTED)
            return cycle
        except MalformedImageBuffer as exc:
            LOGGER.error("Discarding clipboard image: %s", exc)
            cycle.transition(CycleState.ABORTED)
            return cycle
        except Exception:
            LOGGER.exception("Clipboard capture failed")
            cycle.transition(CycleState.ABORTED)
            return cycle

        cycle.transition(CycleState.ENRICHING)
        if not dispatch:
            return self._complete(cycle, capture)

        try:
            cycle.completion = self._cycle_pool.submit(self._complete, cycle, capture)
            cycle.completion.add_done_callback(_log_failure)
        except RuntimeError:
            LOGGER.warning("Worker pool closed, finishing cycle %d inline", cycle.cycle_id)
            self._complete(cycle, capture)
        return cycle

    def _complete(self, cycle: CaptureCycle, capture: Capture) -> CaptureCycle:
        result = self.pipeline.enrich(capture)
        cycle.result = result
        if result.degraded:
            LOGGER.warning("Cycle %d stored with fallback enrichment", cycle.cycle_id)

        cycle.transition(CycleState.PERSISTING)
        try:
            record = self.store.create(capture, result.category, result.summary, list(result.tags))
        except PersistenceFailure as exc:
            LOGGER.error("Failed to save clip: %s", exc)
            cycle.transition(CycleState.IDLE)
            return cycle

        cycle.record = record
        cycle.transition(CycleState.IDLE)
        LOGGER.info(
            "Clip saved to category: %s with tags: %s", record.category, list(record.tags or ())
        )
        self.events.emit(CLIP_SAVED)
        return cycle


def _log_failure(future: Future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        LOGGER.error("Capture cycle failed", exc_info=exc)
