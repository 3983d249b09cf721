from __future__ import annotations

import pytest

from petichat.core.config import get_settings
from petichat.core.errors import ServiceBusyError
from petichat.services import telemetry
from petichat.services.resilience import ai_call_slot, backoff_delay_s, reset_bulkheads


def test_backoff_doubles_per_attempt() -> None:
    assert backoff_delay_s(1000, 1) == 1.0
    assert backoff_delay_s(1000, 2) == 2.0
    assert backoff_delay_s(1000, 3) == 4.0
    assert backoff_delay_s(-5, 2) == 0.0


@pytest.mark.asyncio
async def test_ai_slot_rejects_when_saturated(monkeypatch) -> None:
    monkeypatch.setenv("AI_MAX_CONCURRENCY", "1")
    get_settings.cache_clear()
    reset_bulkheads()

    async with ai_call_slot():
        with pytest.raises(ServiceBusyError):
            async with ai_call_slot():
                pass

    # The slot is free again once the first call leaves.
    async with ai_call_slot():
        pass
    assert telemetry.counters_snapshot() == {"ai_calls_total": 2, "ai_bulkhead_rejected_total": 1}
