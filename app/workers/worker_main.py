# app/workers/worker_main.py
"""
Run the retry sweeper outside the web app.

    python -m app.workers.worker_main          # one sweep, then exit
    python -m app.workers.worker_main --loop   # sweep every RETRY_INTERVAL_SECONDS
"""

import argparse
import asyncio
import logging

from app.core.config import settings
from app.services.container import build_services

logger = logging.getLogger(__name__)


async def run(loop: bool) -> None:
    services = build_services(settings)
    if not loop:
        report = await services.sweeper.run()
        logger.info(f"Sweep report: {report}")
        return

    services.scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await services.scheduler.stop()


def main():
    parser = argparse.ArgumentParser(description="Retry failed essay evaluations")
    parser.add_argument("--loop", action="store_true", help="keep running on the configured interval")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    asyncio.run(run(args.loop))


if __name__ == "__main__":
    main()
