from __future__ import annotations

import logging

from petichat.core.logging import configure_logging
from petichat.providers.ai.registry import ProviderRegistry


logger = logging.getLogger(__name__)


async def startup(ctx) -> None:
    # One provider registry per worker process, shared by every job it runs.
    configure_logging()
    ctx["providers"] = ProviderRegistry()
    logger.info("worker_started ai_provider=%s", ctx["providers"].resolve_name())


async def shutdown(ctx) -> None:
    logger.info("worker_stopped")
