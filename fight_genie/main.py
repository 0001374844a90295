"""Entry point for Fight Genie."""

from __future__ import annotations

import asyncio
import signal
import sys

import structlog

from fight_genie.config import Settings
from fight_genie.jobs.scheduler import MaintenanceJobs, create_scheduler
from fight_genie.service import FightGenie


def configure_logging(level: str) -> None:
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if sys.stderr.isatty() else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog._log_levels.NAME_TO_LEVEL[level.lower()]
        ),
    )


async def run() -> None:
    settings = Settings()  # type: ignore[call-arg]
    configure_logging(settings.log_level)

    log = structlog.get_logger()
    log.info("starting", version="0.1.0")

    genie = await FightGenie.create(settings)
    scheduler = create_scheduler(MaintenanceJobs(settings, genie), settings)

    stop_event = asyncio.Event()

    def handle_shutdown(*_: object) -> None:
        log.info("shutdown_requested")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_shutdown)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler for SIGTERM
            pass

    scheduler.start()
    log.info("scheduler_started", outcome_sync_hour=settings.outcome_sync_hour)

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.shutdown(wait=False)
        await genie.close()
        log.info("shutdown_complete")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
