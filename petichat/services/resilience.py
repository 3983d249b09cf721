from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from petichat.core.config import get_settings
from petichat.core.errors import ServiceBusyError
from petichat.services.telemetry import increment_counter


def backoff_delay_s(base_ms: int, attempt: int) -> float:
    # Exponential backoff: base, 2*base, 4*base ... for attempt 1, 2, 3 ...
    return (max(base_ms, 0) / 1000.0) * (2 ** max(attempt - 1, 0))


@dataclass
class BulkheadLease:
    # Track bulkhead ownership to avoid double-releasing.
    semaphore: asyncio.Semaphore
    released: bool = False

    def release(self) -> None:
        if self.released:
            return
        self.semaphore.release()
        self.released = True


class Bulkhead:
    def __init__(self, name: str, limit: int) -> None:
        # Use asyncio semaphores to cap concurrency for expensive operations.
        self._name = name
        self._limit = max(1, limit)
        self._sem = asyncio.Semaphore(self._limit)

    @property
    def name(self) -> str:
        return self._name

    @property
    def limit(self) -> int:
        return self._limit

    async def acquire(self) -> BulkheadLease | None:
        # Attempt to acquire immediately; return None if saturated.
        if self._sem.locked():
            return None
        await self._sem.acquire()
        return BulkheadLease(self._sem)


_ai_bulkhead: Bulkhead | None = None


def get_ai_bulkhead() -> Bulkhead:
    # Cap concurrent interactive AI calls per process.
    global _ai_bulkhead
    if _ai_bulkhead is None:
        _ai_bulkhead = Bulkhead("ai", get_settings().ai_max_concurrency)
    return _ai_bulkhead


def reset_bulkheads() -> None:
    # Allow tests to reset bulkhead limits after tweaking settings.
    global _ai_bulkhead
    _ai_bulkhead = None


@asynccontextmanager
async def ai_call_slot() -> AsyncIterator[None]:
    # Reject instead of queueing when the interactive AI path is saturated.
    lease = await get_ai_bulkhead().acquire()
    if lease is None:
        increment_counter("ai_bulkhead_rejected_total")
        raise ServiceBusyError("Serviço de IA ocupado, tente novamente em instantes")
    increment_counter("ai_calls_total")
    try:
        yield
    finally:
        lease.release()
