"""Exception types raised across the capture pipeline."""

from __future__ import annotations


class ClipscribeError(Exception):
    """Base class for all clipscribe errors."""


class ClipboardUnavailable(ClipscribeError):
    """No clipboard payload was available after all read attempts."""


class MalformedImageBuffer(ClipscribeError):
    """Raw pixel buffer does not match its reported dimensions."""


class EnrichmentServiceFailure(ClipscribeError):
    """The external model could not be reached or returned unusable output."""


class PersistenceFailure(ClipscribeError):
    """A record could not be written to or read from the store."""


class RecordNotFound(PersistenceFailure):
    """No record exists for the requested identifier."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Item not found: {record_id}")
        self.record_id = record_id


class SettingsStoreFailure(ClipscribeError):
    """The settings table could not be read or written."""


class InvalidHotkeySpec(ClipscribeError, ValueError):
    """An accelerator string could not be parsed into a binding."""


class HotkeyRegistrationError(ClipscribeError):
    """The OS-level shortcut listener refused the binding."""
