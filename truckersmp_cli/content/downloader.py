"""
Handles the downloading of manifest entries into the content directory under a
concurrency cap.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import aiofiles

from truckersmp_cli.api.client import ContentTransport
from truckersmp_cli.content.progress import NullProgressSink, ProgressSink, notify
from truckersmp_cli.exceptions import BatchDownloadError, TransportError
from truckersmp_cli.models.manifest import ManifestEntry
from truckersmp_cli.models.stats import SyncStats
from truckersmp_cli.utils.admission import AdmissionGate
from truckersmp_cli.utils.path import resolve_under

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadTask:
    """Where one entry comes from and where it goes."""

    source_locator: str
    destination_path: Path


@dataclass(frozen=True)
class DownloadOutcome:
    """The result of downloading one entry."""

    entry: ManifestEntry
    bytes_written: int = 0
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchDownloader:
    """Fetches batches of manifest entries, each entry succeeding or failing on its own."""

    CHUNK_SIZE = 65536  # 64 KB

    def __init__(
        self,
        transport: ContentTransport,
        base_url: str,
        gate: AdmissionGate,
        progress: ProgressSink | None = None,
        fetch_timeout: float | None = None,
        stats: SyncStats | None = None,
    ):
        """
        Args:
            transport: Source of remote bytes.
            base_url: Prefix every entry's relative path is appended to.
            gate: Admission gate bounding simultaneous downloads.
            progress: Optional observer for per-entry and batch progress.
            fetch_timeout: Seconds to wait for a resource to open or for its next
                chunk before the entry is abandoned.
            stats: Optional counters updated as entries complete.
        """
        self.transport = transport
        self.base_url = base_url
        self.gate = gate
        self.progress = progress or NullProgressSink()
        self.fetch_timeout = fetch_timeout
        self.stats = stats

    def build_task(self, entry: ManifestEntry, content_root: Path) -> DownloadTask:
        return DownloadTask(
            source_locator=f"{self.base_url}{entry.relative_path}",
            destination_path=resolve_under(content_root, entry.relative_path),
        )

    async def download_batch(
        self, entries: tuple[ManifestEntry, ...], content_root: Path
    ) -> list[DownloadOutcome]:
        """
        Downloads every entry into the content root, overwriting existing files.

        Returns:
            One outcome per entry, in input order.

        Raises:
            BatchDownloadError: After all entries finished, if any of them failed.
            ConcurrencyAdmissionError: If the admission gate fails.
        """
        notify(self.progress, "batch_total", len(entries), "Downloading")
        log.debug(f"Downloading batch of {len(entries)} file(s) to '{content_root}'")

        results = await asyncio.gather(
            *(self._download_entry(entry, content_root) for entry in entries),
            return_exceptions=True,
        )

        outcomes: list[DownloadOutcome] = []
        for result in results:
            if isinstance(result, BaseException):
                raise result
            outcomes.append(result)

        failures = [o for o in outcomes if not o.ok]
        if failures:
            raise BatchDownloadError(failures)
        return outcomes

    async def _download_entry(
        self, entry: ManifestEntry, content_root: Path
    ) -> DownloadOutcome:
        async with self.gate.admit():
            try:
                task = await asyncio.to_thread(self.build_task, entry, content_root)
                written = await self._fetch_to_file(entry, task)
            except TimeoutError:
                error = TransportError(
                    f"No data received for '{entry.relative_path}' within "
                    f"{self.fetch_timeout}s",
                    locator=f"{self.base_url}{entry.relative_path}",
                )
                return self._failed(entry, error)
            except (TransportError, OSError, ValueError) as e:
                return self._failed(entry, e)

        if self.stats:
            self.stats.record_download(written)
        notify(self.progress, "entry_finished", entry, True)
        log.debug(f"Downloaded '{entry.relative_path}' ({written} bytes)")
        return DownloadOutcome(entry=entry, bytes_written=written)

    async def _fetch_to_file(self, entry: ManifestEntry, task: DownloadTask) -> int:
        """
        Streams one remote resource to disk, returning the number of bytes written.

        The fetch timeout is an idle deadline: it is pushed back every time a
        chunk arrives, so a slow but steady transfer is never cut off.
        """
        await asyncio.to_thread(
            task.destination_path.parent.mkdir, parents=True, exist_ok=True
        )

        written = 0
        async with asyncio.timeout(self.fetch_timeout) as deadline:
            async with self.transport.fetch(task.source_locator) as resource:
                notify(self.progress, "entry_started", entry, resource.content_length)
                async with aiofiles.open(task.destination_path, "wb") as f:
                    async for chunk in resource.iter_chunks(self.CHUNK_SIZE):
                        self._extend(deadline)
                        await f.write(chunk)
                        written += len(chunk)
                        notify(self.progress, "entry_bytes", entry, len(chunk))
                    await f.flush()
        return written

    def _extend(self, deadline: asyncio.Timeout) -> None:
        if self.fetch_timeout is not None:
            deadline.reschedule(asyncio.get_running_loop().time() + self.fetch_timeout)

    def _failed(self, entry: ManifestEntry, error: Exception) -> DownloadOutcome:
        if self.stats:
            self.stats.record_failure()
        notify(self.progress, "entry_finished", entry, False)
        log.warning(
            f"[yellow]✗ Failed to download '{entry.relative_path}': {error}[/yellow]"
        )
        return DownloadOutcome(entry=entry, error=error)
