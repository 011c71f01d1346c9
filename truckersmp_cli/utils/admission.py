"""
Provides a counting admission gate that bounds simultaneous fetch and verify tasks.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from truckersmp_cli.exceptions import ConcurrencyAdmissionError


class AdmissionGate:
    """
    Wraps an asyncio.Semaphore and tracks how many permits are held.

    Waiters are admitted in the order they started waiting.
    """

    def __init__(self, limit: int = 8):
        """
        Args:
            limit: Maximum number of tasks allowed inside the gate at once.
        """
        if limit < 1:
            raise ValueError("Admission limit must be at least 1.")
        self.limit = limit
        self._semaphore = asyncio.Semaphore(limit)
        self.in_flight = 0
        self.peak = 0

    @asynccontextmanager
    async def admit(self) -> AsyncIterator[None]:
        """Holds one permit for the duration of the block."""
        try:
            await self._semaphore.acquire()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ConcurrencyAdmissionError(
                f"Could not acquire a concurrency permit: {e}"
            ) from e

        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            yield
        finally:
            self.in_flight -= 1
            self._semaphore.release()
