"""Run one scheduled appointment job once and print its result."""

import argparse
import asyncio
import sys

from booking_api.config import settings
from booking_api.database import AsyncSessionLocal, engine
from booking_api.middleware.logging import configure_logging
from booking_api.scheduler.jobs import JOBS, JobContext
from booking_api.services.notification_service import EmailNotifier


async def run(job_name: str) -> int:
    ctx = JobContext(
        session_factory=AsyncSessionLocal,
        notifier=EmailNotifier(settings),
        settings=settings,
    )
    try:
        result = await JOBS[job_name](ctx)
    finally:
        await engine.dispose()

    print(result.model_dump_json(indent=2))
    return 1 if result.failed else 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("job", choices=sorted(JOBS), help="Job to run")
    args = parser.parse_args()

    configure_logging(log_format="console")
    sys.exit(asyncio.run(run(args.job)))


if __name__ == "__main__":
    main()
