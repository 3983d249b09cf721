from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys

from arq.worker import Worker, create_worker

from petichat.core.config import get_settings
from petichat.core.logging import configure_logging
from petichat.workers import document_worker, embeddings_worker, jurisprudence_worker


logger = logging.getLogger("petichat.workers")

_WORKERS = {
    "generation": document_worker.WorkerSettings,
    "ingestion": jurisprudence_worker.WorkerSettings,
    "embeddings": embeddings_worker.WorkerSettings,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run PetiChat background workers")
    parser.add_argument(
        "--kind",
        choices=sorted([*_WORKERS, "all"]),
        default="all",
        help="Which queue to consume; 'all' runs every worker in this process",
    )
    parser.add_argument(
        "--grace-s",
        type=float,
        default=None,
        help="Seconds to let in-flight jobs finish on shutdown (default: job timeout)",
    )
    return parser


async def _drain(worker: Worker, grace_s: float) -> None:
    # In-flight jobs get the grace window. With handle_signals=False, close() cancels
    # whatever is left and arq requeues those jobs for the next delivery.
    pending = [task for task in worker.tasks.values() if not task.done()]
    if pending:
        logger.info("worker_draining queue=%s in_flight=%s", worker.queue_name, len(pending))
        await asyncio.wait(pending, timeout=grace_s)
    await worker.close()


async def _run(kinds: list[str], grace_s: float) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    workers = [create_worker(_WORKERS[kind], handle_signals=False) for kind in kinds]
    mains = [asyncio.create_task(worker.main()) for worker in workers]
    stop_wait = asyncio.create_task(stop.wait())
    done, _ = await asyncio.wait([*mains, stop_wait], return_when=asyncio.FIRST_COMPLETED)

    exit_code = 0
    for task in mains:
        if task in done and task.exception() is not None:
            # A worker that dies on its own (bad Redis URL, failed startup) fails the process.
            logger.error("worker_crashed error=%s", task.exception())
            exit_code = 1

    logger.info("workers_stopping kinds=%s", ",".join(kinds))
    for task in mains:
        task.cancel()
    await asyncio.gather(*mains, return_exceptions=True)
    stop_wait.cancel()
    await asyncio.gather(*(_drain(worker, grace_s) for worker in workers))
    logger.info("workers_stopped")
    return exit_code


def main() -> int:
    args = _build_parser().parse_args()
    missing = [name for name in ("DATABASE_URL", "REDIS_URL") if not os.getenv(name)]
    if missing:
        print(f"missing required configuration: {', '.join(missing)}", file=sys.stderr)
        return 1
    configure_logging()
    kinds = list(_WORKERS) if args.kind == "all" else [args.kind]
    grace_s = args.grace_s if args.grace_s is not None else float(get_settings().job_timeout_s)
    return asyncio.run(_run(kinds, grace_s))


if __name__ == "__main__":
    sys.exit(main())
