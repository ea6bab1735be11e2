"""Application configuration defaults."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

DEFAULT_MODEL = "gpt-4o"


def _get_app_data_dir() -> Path:
    """Per-user application data directory for the current platform."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA", os.path.expanduser("~"))
        return Path(appdata) / "clipscribe"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "clipscribe"
    return Path.home() / ".local" / "share" / "clipscribe"


def _get_default_db_path() -> Path:
    """Get the default database path based on platform and execution context."""
    user_db = _get_app_data_dir() / "clipscribe.db"

    if getattr(sys, "frozen", False):
        return user_db

    # When running from a source checkout, prefer local data/ if it exists
    local_db = Path("data/clipscribe.db")
    if local_db.exists():
        return local_db

    return user_db


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    model_name: str = DEFAULT_MODEL
    max_output_tokens: int = 100
    max_text_chars: int = 2000
    settle_delay: float = 0.12
    read_attempts: int = 5
    retry_delay: float = 0.05
    max_workers: int = 4
    request_timeout: float = 30.0

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_db_path()

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_db_path()
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path
