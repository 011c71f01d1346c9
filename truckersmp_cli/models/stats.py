"""
Dataclass for tracking sync session statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class SyncStats:
    """Tracks counters for one sync run."""

    files_downloaded: int = 0
    files_failed: int = 0
    bytes_downloaded: int = 0
    files_verified: int = 0
    files_matched: int = 0
    verify_passes: int = 0
    retries_used: int = 0
    started_at: float = field(default_factory=time.monotonic, repr=False)

    def record_download(self, size: int) -> None:
        self.files_downloaded += 1
        self.bytes_downloaded += size

    def record_failure(self) -> None:
        self.files_failed += 1

    def record_verification(self, matched: bool) -> None:
        self.files_verified += 1
        if matched:
            self.files_matched += 1

    def elapsed(self) -> float:
        """Seconds since the run started."""
        return time.monotonic() - self.started_at
