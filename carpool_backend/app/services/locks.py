"""
Redis-backed locks.

Serializes certifications of the same proof by the same actor, and keeps
two scheduled dispatch runs from overlapping.
"""

import logging
import uuid
from contextlib import asynccontextmanager

from carpool_backend.app.core.config import settings
from carpool_backend.app.core.exceptions import CertificationInProgressError

logger = logging.getLogger("carpool.locks")

# Redis key prefixes
CERTIFICATION_LOCK_PREFIX = "lock:proof:"
JOB_LOCK_PREFIX = "lock:job:"


class JobAlreadyRunningError(Exception):
    pass


async def _acquire(redis, key: str, ttl_seconds: int) -> str | None:
    token = str(uuid.uuid4())
    acquired = await redis.set(key, token, ex=ttl_seconds, nx=True)
    return token if acquired else None


async def _release(redis, key: str, token: str) -> None:
    # Only the holder releases; an expired lock may belong to someone else now
    if await redis.get(key) == token:
        await redis.delete(key)


@asynccontextmanager
async def certification_lock(redis, proof_id: int, actor: str, ttl_seconds: int = None):
    """
    Hold the (proof, actor) lock for the duration of one certification.
    
    Raises:
        CertificationInProgressError: the same actor is already certifying
    """
    key = f"{CERTIFICATION_LOCK_PREFIX}{proof_id}:{actor}"
    token = await _acquire(redis, key, ttl_seconds or settings.certification_lock_ttl_seconds)
    if token is None:
        raise CertificationInProgressError(proof_id, actor)
    try:
        yield
    finally:
        await _release(redis, key, token)


@asynccontextmanager
async def job_lock(redis, name: str, ttl_seconds: int = None):
    """
    Hold a named job lock.
    
    Raises:
        JobAlreadyRunningError: another run holds the lock
    """
    key = f"{JOB_LOCK_PREFIX}{name}"
    token = await _acquire(redis, key, ttl_seconds or settings.dispatch_lock_ttl_seconds)
    if token is None:
        raise JobAlreadyRunningError(f"Job '{name}' is already running")
    logger.info("Job lock '%s' acquired", name)
    try:
        yield
    finally:
        await _release(redis, key, token)
