"""Background capture agent: wiring, logging and hotkey reconfiguration."""

from __future__ import annotations

import logging
import os
import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict

from clipscribe.capture.clipboard import ClipboardBackend, ClipboardReader
from clipscribe.capture.hotkey import HotkeyRegistry, parse_hotkey
from clipscribe.capture.orchestrator import CaptureOrchestrator
from clipscribe.config import AppConfig
from clipscribe.enrichment.client import client_from_settings
from clipscribe.enrichment.pipeline import CompletionClient, EnrichmentPipeline
from clipscribe.errors import HotkeyRegistrationError
from clipscribe.events import EventBus
from clipscribe.models import HotkeyBinding
from clipscribe.store.database import Database
from clipscribe.store.records import PersistenceStore
from clipscribe.store.settings import GLOBAL_HOTKEY, LLM_API_KEY, SettingsCache

logger = logging.getLogger(__name__)


def _get_log_file_path() -> Path:
    """Get path to the agent log file."""
    if sys.platform == "win32":
        appdata = os.environ.get("LOCALAPPDATA", os.path.expanduser("~"))
        log_dir = Path(appdata) / "clipscribe" / "logs"
    elif sys.platform == "darwin":
        log_dir = Path.home() / "Library" / "Logs" / "clipscribe"
    else:
        log_dir = Path.home() / ".local" / "share" / "clipscribe" / "logs"

    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "clipscribe.log"


def setup_logging(verbose: bool = False) -> Path:
    """Configure logging to both console and file. Returns the log file path."""
    log_file = _get_log_file_path()

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # File handler - always logs DEBUG level for troubleshooting
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)
    return log_file


class CaptureAgent:
    """Owns every long-lived component of a running capture agent."""

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        clipboard: ClipboardBackend | None = None,
        client_factory: Callable[[], CompletionClient] | None = None,
        listener_factory: Callable[[Dict[str, Callable[[], None]]], Any] | None = None,
        base_dir: Path | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.events = EventBus()

        self.database = Database(self.config.resolve_db_path(base_dir or Path.cwd()))
        self.database.ensure_schema()
        self.settings = SettingsCache(self.database)
        self.settings.initialize()

        self.store = PersistenceStore(self.database, self.events)
        self.pipeline = EnrichmentPipeline(
            client_factory or (lambda: client_from_settings(self.settings, self.config)),
            max_text_chars=self.config.max_text_chars,
        )
        self.reader = ClipboardReader(
            clipboard,
            settle_delay=self.config.settle_delay,
            attempts=self.config.read_attempts,
            retry_delay=self.config.retry_delay,
        )
        self.orchestrator = CaptureOrchestrator(
            self.reader,
            self.pipeline,
            self.store,
            self.events,
            max_workers=self.config.max_workers,
        )
        self.hotkeys = HotkeyRegistry(self._on_hotkey, listener_factory=listener_factory)
        self._stopped = threading.Event()

    def start(self) -> HotkeyBinding:
        """Register the stored hotkey. Invalid or refused bindings raise."""
        hotkey = self.settings.global_hotkey()
        binding = parse_hotkey(hotkey)
        self.hotkeys.register(binding)
        if not self.settings.get(LLM_API_KEY) and not os.environ.get("OPENAI_API_KEY"):
            logger.warning("No OpenAI API key configured; captures will use fallback categories")
        logger.info("Capture agent listening on %s", hotkey)
        return binding

    def set_global_hotkey(self, spec: str) -> HotkeyBinding:
        """Validate, persist and re-register a new accelerator.

        An invalid spec is rejected before anything changes, so the previous
        binding stays active. If the OS refuses the new binding, the stored
        setting and the previous binding are put back before the error is
        raised.
        """
        binding = parse_hotkey(spec)
        previous_spec = self.settings.get(GLOBAL_HOTKEY)
        previous_binding = self.hotkeys.active
        self.settings.set(GLOBAL_HOTKEY, spec)
        try:
            self.hotkeys.register(binding)
        except HotkeyRegistrationError:
            if previous_spec is not None:
                self.settings.set(GLOBAL_HOTKEY, previous_spec)
            if previous_binding is not None:
                try:
                    self.hotkeys.register(previous_binding)
                except HotkeyRegistrationError as exc:
                    logger.error("Could not restore previous hotkey: %s", exc)
            raise
        return binding

    def set_api_key(self, value: str) -> None:
        self.settings.set(LLM_API_KEY, value)

    def run_forever(self) -> None:
        self.start()
        try:
            while not self._stopped.wait(0.5):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted, shutting down...")
        finally:
            self.stop()

    def stop(self) -> None:
        self._stopped.set()
        self.hotkeys.unregister()
        self.orchestrator.shutdown(wait=True)

    def _on_hotkey(self) -> None:
        logger.debug("Global hotkey pressed")
        self.orchestrator.trigger()
