from __future__ import annotations

import os
import tempfile

# Point settings at a throwaway sqlite file before any petichat module builds the engine.
_TEST_DIR = tempfile.mkdtemp(prefix="petichat-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DIR}/petichat.db")
os.environ.setdefault("AI_PROVIDER", "fake")
os.environ.setdefault("JOB_EXECUTION_MODE", "inline")
os.environ.setdefault("AUTH_DEV_BYPASS", "true")
os.environ.setdefault("EXPORT_STORAGE_DIR", os.path.join(_TEST_DIR, "exports"))

import pytest

from petichat.core.config import get_settings
from petichat.domain.models import Base
from petichat.persistence.db import engine
from petichat.services import telemetry
from petichat.services.resilience import reset_bulkheads


@pytest.fixture(autouse=True)
async def reset_database() -> None:
    # Every test starts from an empty schema; sqlite makes this cheap.
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    yield
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_process_state() -> None:
    # Settings, bulkheads and telemetry are process-wide; isolate them per test.
    get_settings.cache_clear()
    reset_bulkheads()
    telemetry.reset()
    yield
    get_settings.cache_clear()
    reset_bulkheads()
