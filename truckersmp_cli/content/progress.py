"""
The observational progress interface consumed by the downloader and verifier.
"""

import logging
from typing import Any, Protocol

from truckersmp_cli.models.manifest import ManifestEntry

log = logging.getLogger(__name__)


class ProgressSink(Protocol):
    """Receives progress notifications. Implementations must be non-blocking."""

    def batch_total(self, total: int, description: str) -> None: ...

    def entry_started(self, entry: ManifestEntry, total_bytes: int | None) -> None: ...

    def entry_bytes(self, entry: ManifestEntry, n: int) -> None: ...

    def entry_finished(self, entry: ManifestEntry, success: bool) -> None: ...


class NullProgressSink:
    """A sink that ignores every notification."""

    def batch_total(self, total: int, description: str) -> None:
        pass

    def entry_started(self, entry: ManifestEntry, total_bytes: int | None) -> None:
        pass

    def entry_bytes(self, entry: ManifestEntry, n: int) -> None:
        pass

    def entry_finished(self, entry: ManifestEntry, success: bool) -> None:
        pass


def notify(sink: ProgressSink, event: str, *args: Any) -> None:
    """Delivers one notification; a failing sink never affects the caller."""
    try:
        getattr(sink, event)(*args)
    except Exception as e:
        log.debug(f"Progress sink failed on '{event}': {e}")
