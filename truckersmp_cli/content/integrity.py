"""
Verifies local content files against the manifest by re-hashing them.
"""

import asyncio
import hashlib
import logging
from enum import Enum
from pathlib import Path

import aiofiles

from truckersmp_cli.content.progress import NullProgressSink, ProgressSink, notify
from truckersmp_cli.exceptions import VerificationIOError
from truckersmp_cli.models.manifest import ManifestEntry
from truckersmp_cli.utils.admission import AdmissionGate
from truckersmp_cli.utils.path import resolve_under

log = logging.getLogger(__name__)


class VerificationResult(Enum):
    """The state of one local file relative to its manifest entry."""

    MATCH = "match"
    MISMATCH = "mismatch"
    MISSING = "missing"


class HashVerifier:
    """Streams local files through MD5 and compares them to the manifest."""

    CHUNK_SIZE = 8192

    def __init__(self, chunk_size: int = CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def hash_file(self, path: Path) -> str:
        """
        Computes the lowercase hex MD5 digest of a file without buffering it whole.
        """
        digest = hashlib.md5()  # noqa: S324
        async with aiofiles.open(path, "rb") as f:
            while chunk := await f.read(self.chunk_size):
                digest.update(chunk)
        return digest.hexdigest()

    async def verify(
        self, entry: ManifestEntry, content_root: Path
    ) -> VerificationResult:
        """
        Checks one entry against the file on disk.

        Args:
            entry: The manifest entry describing the expected file.
            content_root: The directory the entry's relative path is joined to.

        Returns:
            MISSING if no file exists, MATCH if the digest equals the manifest
            hash, MISMATCH otherwise.

        Raises:
            VerificationIOError: If the file exists but cannot be read.
        """
        path = await asyncio.to_thread(resolve_under, content_root, entry.relative_path)

        if not await asyncio.to_thread(path.exists):
            return VerificationResult.MISSING

        try:
            actual = await self.hash_file(path)
        except FileNotFoundError:
            return VerificationResult.MISSING
        except OSError as e:
            raise VerificationIOError(
                f"Could not read '{entry.relative_path}': {e}",
                paths=[entry.relative_path],
            ) from e

        if actual == entry.content_hash:
            return VerificationResult.MATCH

        log.debug(
            f"Hash mismatch for '{entry.relative_path}': "
            f"expected {entry.content_hash}, got {actual}"
        )
        return VerificationResult.MISMATCH

    async def verify_many(
        self,
        entries: tuple[ManifestEntry, ...],
        content_root: Path,
        gate: AdmissionGate,
        progress: ProgressSink | None = None,
    ) -> list[tuple[ManifestEntry, VerificationResult]]:
        """
        Verifies every entry concurrently, bounded by the admission gate.

        Every check runs to completion before any error is reported.

        Raises:
            VerificationIOError: Listing every path that could not be read.
            ConcurrencyAdmissionError: If the gate itself fails.
        """
        progress = progress or NullProgressSink()
        notify(progress, "batch_total", len(entries), "Verifying")

        async def check(entry: ManifestEntry) -> VerificationResult:
            async with gate.admit():
                try:
                    result = await self.verify(entry, content_root)
                except VerificationIOError:
                    notify(progress, "entry_finished", entry, False)
                    raise
                notify(
                    progress,
                    "entry_finished",
                    entry,
                    result is VerificationResult.MATCH,
                )
                return result

        outcomes = await asyncio.gather(
            *(check(entry) for entry in entries), return_exceptions=True
        )

        io_errors: list[VerificationIOError] = []
        results: list[tuple[ManifestEntry, VerificationResult]] = []
        for entry, outcome in zip(entries, outcomes):
            if isinstance(outcome, VerificationIOError):
                io_errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append((entry, outcome))

        if io_errors:
            paths = [p for err in io_errors for p in err.paths]
            for err in io_errors:
                log.error(f"[red]✗ {err}[/red]")
            raise VerificationIOError(
                f"{len(paths)} file(s) could not be read during verification.",
                paths=paths,
            )
        return results
