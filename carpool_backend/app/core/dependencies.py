"""
Service dependencies for FastAPI.

Wires the proof services to the request's database session and to the
configured clock, geocoder, registry and Redis clients.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.core.clock import Clock, system_clock
from carpool_backend.app.core.redis_client import get_redis
from carpool_backend.app.db.session import get_db
from carpool_backend.app.domain.proofs.proof_batch import ProofBatchGenerator
from carpool_backend.app.domain.proofs.proof_dispatcher import ProofDispatcher
from carpool_backend.app.domain.proofs.proof_service import ProofService
from carpool_backend.app.services.geo_lookup import GeoLookup, get_geo_lookup
from carpool_backend.app.services.registry_client import RegistryClient, get_registry_client


def get_clock() -> Clock:
    return system_clock


async def get_proof_service(
    db: AsyncSession = Depends(get_db),
    geo_lookup: GeoLookup = Depends(get_geo_lookup),
    clock: Clock = Depends(get_clock),
    redis=Depends(get_redis),
) -> ProofService:
    return ProofService(db, geo_lookup, clock=clock, redis=redis)


async def get_proof_dispatcher(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    registry_client: RegistryClient = Depends(get_registry_client),
) -> ProofDispatcher:
    return ProofDispatcher(db, ProofBatchGenerator(db, clock=clock), registry_client)
