"""
Daily carpool proof dispatch job.

Generates the theoretical proofs of the period for rides that were not
certified live, then sends every pending proof to the registry.
Without dates, the period is the whole previous day.

Usage:
    python scripts/send_proofs.py
    python scripts/send_proofs.py --from-date 2024-03-01 --to-date 2024-03-07
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from carpool_backend.app.core.observability import configure_logging
from carpool_backend.app.core.redis_client import redis_client
from carpool_backend.app.db.session import AsyncSessionLocal, session_scope
from carpool_backend.app.domain.proofs.proof_batch import ProofBatchGenerator
from carpool_backend.app.domain.proofs.proof_dispatcher import ProofDispatcher
from carpool_backend.app.services.locks import job_lock, JobAlreadyRunningError
from carpool_backend.app.services.registry_client import get_registry_client

logger = logging.getLogger("carpool.jobs")

JOB_NAME = "send_proofs"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Generate and send carpool proofs")
    parser.add_argument("--from-date", type=datetime.fromisoformat, default=None,
                        help="Start of the period (ISO date), defaults to yesterday 00:00")
    parser.add_argument("--to-date", type=datetime.fromisoformat, default=None,
                        help="End of the period (ISO date), defaults to yesterday 23:59:59")
    return parser.parse_args(argv)


async def send_proofs(from_date: datetime = None, to_date: datetime = None) -> int:
    # A bare end date covers its whole day
    if to_date is not None and to_date.time() == time(0, 0):
        to_date = datetime.combine(to_date.date(), time(23, 59, 59, 999999))
    
    try:
        async with job_lock(redis_client, JOB_NAME):
            async with session_scope(AsyncSessionLocal) as db:
                dispatcher = ProofDispatcher(db, ProofBatchGenerator(db), get_registry_client())
                report = await dispatcher.dispatch(from_date, to_date)
    except JobAlreadyRunningError as e:
        logger.warning("%s, exiting", e)
        return 1
    
    logger.info("Done: %d sent, %d errors", len(report.sent), len(report.errors))
    return 0


def main(argv=None) -> int:
    configure_logging()
    args = parse_args(argv)
    return asyncio.run(send_proofs(args.from_date, args.to_date))


if __name__ == "__main__":
    sys.exit(main())
