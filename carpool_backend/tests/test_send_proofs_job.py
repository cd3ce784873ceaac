"""
Dispatch job entry point tests.
"""

import pytest
from datetime import datetime

from scripts import send_proofs as job
from carpool_backend.app.services.locks import job_lock


@pytest.fixture
def wired_job(mocker, session_factory, mock_redis, registry):
    """Point the job at the test database, Redis and registry."""
    mocker.patch.object(job, "AsyncSessionLocal", session_factory)
    mocker.patch.object(job, "redis_client", mock_redis)
    mocker.patch.object(job, "get_registry_client", return_value=registry)
    return registry


def test_parse_args():
    args = job.parse_args(["--from-date", "2024-03-01", "--to-date", "2024-03-07T12:00"])
    
    assert args.from_date == datetime(2024, 3, 1)
    assert args.to_date == datetime(2024, 3, 7, 12, 0)


def test_parse_args_defaults():
    args = job.parse_args([])
    
    assert args.from_date is None
    assert args.to_date is None


@pytest.mark.asyncio
async def test_job_sends_pending_proofs(wired_job, ride_factory):
    """A bare end date covers the whole day."""
    await ride_factory()
    
    code = await job.send_proofs(datetime(2024, 3, 1), datetime(2024, 3, 1))
    
    assert code == 0
    assert wired_job.submitted == [1]


@pytest.mark.asyncio
async def test_job_refuses_overlapping_run(wired_job, mock_redis, ride_factory):
    await ride_factory()
    
    async with job_lock(mock_redis, job.JOB_NAME):
        code = await job.send_proofs(datetime(2024, 3, 1), datetime(2024, 3, 1))
    
    assert code == 1
    assert wired_job.submitted == []
