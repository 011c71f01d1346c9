"""
Async HTTP client for the TruckersMP update and download servers.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Protocol

import aiohttp
from pydantic import ValidationError

from truckersmp_cli import __version__
from truckersmp_cli.exceptions import TransportError
from truckersmp_cli.models.config import DEFAULT_MANIFEST_URL, DEFAULT_VERSION_URL
from truckersmp_cli.models.version import ModVersionInfo

log = logging.getLogger(__name__)


class RemoteResource(Protocol):
    """An open remote resource whose body can be streamed."""

    @property
    def content_length(self) -> int | None: ...

    def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]: ...


class ContentTransport(Protocol):
    """What the sync core needs from a transport."""

    async def fetch_manifest(self) -> bytes | str | dict[str, Any]: ...

    def fetch(self, locator: str) -> AsyncContextManager[RemoteResource]: ...


class HttpResource:
    """A RemoteResource backed by an aiohttp response."""

    def __init__(self, response: aiohttp.ClientResponse):
        self._response = response

    @property
    def content_length(self) -> int | None:
        return self._response.content_length

    async def iter_chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        async for chunk in self._response.content.iter_chunked(chunk_size):
            yield chunk


class TruckersMPClient:
    """
    Async client for the TruckersMP content servers.

    One instance is created per sync run and closed when the run ends:

        async with TruckersMPClient(max_workers=8) as client:
            raw = await client.fetch_manifest()
    """

    def __init__(
        self,
        manifest_url: str = DEFAULT_MANIFEST_URL,
        version_url: str = DEFAULT_VERSION_URL,
        max_workers: int = 8,
        read_timeout: float | None = 90.0,
    ):
        """
        Initializes the client.

        Args:
            manifest_url: Location of the content manifest (files.json).
            version_url: Location of the mod version endpoint.
            max_workers: The number of concurrent transfers, used to tune the connection pool.
            read_timeout: Seconds a socket read may stall before the fetch fails.
        """
        self.manifest_url = manifest_url
        self.version_url = version_url
        self.max_workers = max_workers
        self.read_timeout = read_timeout
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "TruckersMPClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.max_workers * 2,
                limit_per_host=self.max_workers,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                headers={"User-Agent": f"truckersmp-cli/{__version__}"},
                timeout=aiohttp.ClientTimeout(
                    total=None, sock_connect=15, sock_read=self.read_timeout
                ),
            )
            log.debug(f"Created HTTP session with limit_per_host={self.max_workers}")
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            log.debug("HTTP session closed.")

    async def _get_bytes(self, url: str) -> bytes:
        session = await self._initialize_session()
        try:
            async with session.get(url) as r:
                r.raise_for_status()
                return await r.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(f"Request to '{url}' failed: {e}", locator=url) from e

    async def fetch_manifest(self) -> bytes:
        """Downloads the raw content manifest."""
        log.debug(f"Fetching manifest from {self.manifest_url}")
        return await self._get_bytes(self.manifest_url)

    async def fetch_mod_version(self) -> ModVersionInfo:
        """Fetches the current mod version and supported game versions."""
        body = await self._get_bytes(self.version_url)
        try:
            return ModVersionInfo.model_validate_json(body)
        except ValidationError as e:
            raise TransportError(
                f"Unexpected response from version endpoint: {e}",
                locator=self.version_url,
            ) from e

    @asynccontextmanager
    async def fetch(self, locator: str) -> AsyncIterator[HttpResource]:
        """
        Opens a remote file for streaming.

        Raises:
            TransportError: On connection failures, timeouts and HTTP error statuses.
        """
        session = await self._initialize_session()
        try:
            async with session.get(locator, allow_redirects=True) as response:
                response.raise_for_status()
                yield HttpResource(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(
                f"Failed to fetch '{locator}': {e}", locator=locator
            ) from e
