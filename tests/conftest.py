"""
Shared fixtures: an in-memory transport and manifest builders.
"""

import asyncio
import hashlib
from contextlib import asynccontextmanager
from pathlib import Path

import pytest

from truckersmp_cli.exceptions import TransportError
from truckersmp_cli.models.config import SyncConfig

BASE_URL = "https://download.test/files/"


def md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()  # noqa: S324


def manifest_doc(*files: tuple[str, str, bytes]) -> dict:
    """Builds a files.json document from (category, path, content) triples."""
    return {
        "Files": [
            {"Md5": md5(content), "Type": category, "FilePath": f"/{path}"}
            for category, path, content in files
        ]
    }


class FakeResource:
    def __init__(self, body: bytes, chunk_delay: float = 0.0):
        self.body = body
        self.chunk_delay = chunk_delay

    @property
    def content_length(self) -> int:
        return len(self.body)

    async def iter_chunks(self, chunk_size: int):
        for i in range(0, len(self.body), chunk_size):
            await asyncio.sleep(self.chunk_delay)
            yield self.body[i : i + chunk_size]


class FakeTransport:
    """
    Serves files from a dict keyed by relative path and records every fetch.

    Args:
        manifest: What fetch_manifest returns.
        files: Remote bodies keyed by relative path.
        delay: Seconds each fetch waits before yielding the resource.
        chunk_delay: Seconds between streamed chunks.
        fail_times: Number of leading fetches of a path that raise TransportError.
        corrupt_times: Number of leading fetches of a path that serve wrong bytes.
    """

    def __init__(
        self,
        manifest=None,
        files: dict[str, bytes] | None = None,
        delay: float = 0.0,
        chunk_delay: float = 0.0,
        fail_times: dict[str, int] | None = None,
        corrupt_times: dict[str, int] | None = None,
    ):
        self.manifest = manifest if manifest is not None else {"Files": []}
        self.files = files or {}
        self.delay = delay
        self.chunk_delay = chunk_delay
        self.fail_times = dict(fail_times or {})
        self.corrupt_times = dict(corrupt_times or {})
        self.manifest_calls = 0
        self.fetched: list[str] = []
        self.active = 0
        self.peak = 0

    @property
    def fetched_paths(self) -> list[str]:
        return [locator.removeprefix(BASE_URL) for locator in self.fetched]

    async def fetch_manifest(self):
        self.manifest_calls += 1
        return self.manifest

    @asynccontextmanager
    async def fetch(self, locator: str):
        self.fetched.append(locator)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            path = locator.removeprefix(BASE_URL)
            if self.fail_times.get(path, 0) > 0:
                self.fail_times[path] -= 1
                raise TransportError(f"connection reset for {path}", locator=locator)
            if path not in self.files:
                raise TransportError(f"404 Not Found: {path}", locator=locator)
            body = self.files[path]
            if self.corrupt_times.get(path, 0) > 0:
                self.corrupt_times[path] -= 1
                body = b"corrupted:" + body
            yield FakeResource(body, self.chunk_delay)
        finally:
            self.active -= 1


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    return tmp_path / "content"


@pytest.fixture
def make_config(content_root: Path):
    def _make(**overrides) -> SyncConfig:
        values = {
            "content_dir": str(content_root),
            "download_url": BASE_URL,
            "fetch_timeout": 5.0,
        }
        values.update(overrides)
        return SyncConfig(**values)

    return _make


class FlakySemaphore:
    """An asyncio.Semaphore stand-in whose acquire fails on chosen calls (1-based)."""

    def __init__(self, limit: int, fail_on: set[int]):
        self._inner = asyncio.Semaphore(limit)
        self.fail_on = fail_on
        self.calls = 0

    async def acquire(self):
        self.calls += 1
        if self.calls in self.fail_on:
            raise RuntimeError("semaphore is broken")
        return await self._inner.acquire()

    def release(self):
        self._inner.release()
