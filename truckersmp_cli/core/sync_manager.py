"""
The main orchestrator: plans the working set, downloads, verifies and
re-downloads until the content directory matches the manifest.
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from truckersmp_cli.api.client import ContentTransport
from truckersmp_cli.content.downloader import BatchDownloader
from truckersmp_cli.content.integrity import HashVerifier, VerificationResult
from truckersmp_cli.content.progress import ProgressSink
from truckersmp_cli.exceptions import (
    BatchDownloadError,
    ConfigurationError,
    RetryBudgetExhaustedError,
    SyncIncompleteError,
)
from truckersmp_cli.models.config import SyncConfig
from truckersmp_cli.models.manifest import ManifestEntry, parse_manifest
from truckersmp_cli.models.stats import SyncStats
from truckersmp_cli.utils.admission import AdmissionGate
from truckersmp_cli.utils.path import create_dir, is_protected_dir

from .planner import WorkingSet, plan

log = logging.getLogger(__name__)


class SyncState(Enum):
    """States of one sync run."""

    PLANNING = "planning"
    FIRST_DOWNLOAD = "first_download"
    VERIFYING = "verifying"
    RETRY_DOWNLOAD = "retry_download"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RetryBudget:
    """How many verify-then-redownload cycles a run may still perform."""

    attempts_remaining: int
    retry_enabled: bool = True

    @property
    def max_verify_passes(self) -> int:
        return self.attempts_remaining + 1 if self.retry_enabled else 1

    def consume(self) -> bool:
        """Takes one retry if any is left."""
        if not self.retry_enabled or self.attempts_remaining <= 0:
            return False
        self.attempts_remaining -= 1
        return True


@dataclass
class SyncReport:
    """What a sync run did and where it ended."""

    state: SyncState = SyncState.PLANNING
    working_set: WorkingSet = ()
    residual: tuple[ManifestEntry, ...] = ()
    history: list[SyncState] = field(default_factory=list)
    stats: SyncStats = field(default_factory=SyncStats)

    @property
    def residual_paths(self) -> list[str]:
        return [entry.relative_path for entry in self.residual]


class SyncOrchestrator:
    """Drives one sync run to DONE or FAILED."""

    def __init__(
        self,
        config: SyncConfig,
        transport: ContentTransport,
        progress: ProgressSink | None = None,
        verifier: HashVerifier | None = None,
    ):
        self.config = config
        self.transport = transport
        self.content_root = Path(config.content_dir).expanduser()
        self.gate = AdmissionGate(config.concurrency_limit)
        self.verifier = verifier or HashVerifier()
        self.report = SyncReport()
        self.downloader = BatchDownloader(
            transport,
            config.download_url,
            self.gate,
            progress=progress,
            fetch_timeout=config.effective_fetch_timeout,
            stats=self.report.stats,
        )
        self.progress = progress

    @property
    def state(self) -> SyncState:
        return self.report.state

    def _transition(self, state: SyncState) -> None:
        self.report.state = state
        self.report.history.append(state)
        log.debug(f"Sync state -> {state.value}")

    async def run(self) -> SyncReport:
        """
        Runs the sync to completion.

        Returns:
            The report of a run that reached DONE.

        Raises:
            MalformedManifestError: Before any filesystem I/O, if the manifest is invalid.
            SyncIncompleteError: If files remain inconsistent and retries are disabled.
            RetryBudgetExhaustedError: If files remain inconsistent after every retry.
            VerificationIOError: If an existing file could not be read.
            ConfigurationError: If the content directory cannot be prepared.
            ConcurrencyAdmissionError: If the admission gate fails.

        Whatever the error, the run ends in the FAILED state before it propagates.
        """
        try:
            return await self._run()
        except Exception:
            if self.state is not SyncState.FAILED:
                self._transition(SyncState.FAILED)
            raise

    async def _run(self) -> SyncReport:
        self._transition(SyncState.PLANNING)
        raw_manifest = await self.transport.fetch_manifest()
        manifest = parse_manifest(raw_manifest)
        working_set = plan(manifest, self.config.profile)
        self.report.working_set = working_set
        log.info(
            f"Syncing {len(working_set)} files for "
            f"{self.config.profile.display_name} into '{self.content_root}'"
        )

        if await self._prepare_content_root():
            self._transition(SyncState.FIRST_DOWNLOAD)
            await self._download(working_set)

        budget = RetryBudget(self.config.retry_count, self.config.retry_enabled)
        residual: tuple[ManifestEntry, ...] = ()

        for _ in range(budget.max_verify_passes):
            self._transition(SyncState.VERIFYING)
            residual = await self._verify(working_set)
            self.report.residual = residual

            if not residual:
                self._transition(SyncState.DONE)
                log.info("[green]✓ All files verified.[/green]")
                return self.report

            if not budget.consume():
                break

            self.report.stats.retries_used += 1
            log.info(
                f"[yellow]Failed to verify {len(residual)} files. "
                f"Retrying download ({budget.attempts_remaining} retries left)...[/yellow]"
            )
            self._transition(SyncState.RETRY_DOWNLOAD)
            await self._download(residual)

        self._transition(SyncState.FAILED)
        if not self.config.retry_enabled:
            raise SyncIncompleteError(
                f"{len(residual)} file(s) do not match the manifest and retries are "
                "disabled.",
                residual=residual,
                report=self.report,
            )
        raise RetryBudgetExhaustedError(
            f"{len(residual)} file(s) still do not match the manifest after "
            f"{self.config.retry_count} retries.",
            residual=residual,
            report=self.report,
        )

    async def _prepare_content_root(self) -> bool:
        """
        Creates the content root when needed.

        Returns:
            True if every file must be downloaded (new or cleaned directory).

        Raises:
            ConfigurationError: If the root is not a directory, is protected from
            cleaning, or cannot be removed or created.
        """
        root = self.content_root
        exists = await asyncio.to_thread(root.exists)

        if exists and not await asyncio.to_thread(root.is_dir):
            raise ConfigurationError(f"Content directory '{root}' is not a directory.")

        if exists and not self.config.clean:
            return False

        if exists and await asyncio.to_thread(is_protected_dir, root):
            raise ConfigurationError(
                f"Refusing to clean '{root}': it is a filesystem root or home "
                "directory."
            )

        try:
            if exists:
                log.info(f"Cleaning content directory '{root}'")
                await asyncio.to_thread(shutil.rmtree, root)
            await asyncio.to_thread(create_dir, root)
        except OSError as e:
            raise ConfigurationError(
                f"Could not prepare content directory '{root}': {e}"
            ) from e
        return True

    async def _download(self, entries: tuple[ManifestEntry, ...]) -> None:
        try:
            await self.downloader.download_batch(entries, self.content_root)
        except BatchDownloadError as e:
            log.warning(f"[yellow]{e}. They will be checked again.[/yellow]")

    async def _verify(self, working_set: WorkingSet) -> tuple[ManifestEntry, ...]:
        results = await self.verifier.verify_many(
            working_set, self.content_root, self.gate, self.progress
        )
        self.report.stats.verify_passes += 1
        for _, result in results:
            self.report.stats.record_verification(result is VerificationResult.MATCH)
        return tuple(
            entry for entry, result in results if result is not VerificationResult.MATCH
        )
