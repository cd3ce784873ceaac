"""
Proof Batch Generator (Domain Logic).

Backfills theoretical proofs for accepted ride agreements that were not
certified live, using the contractual schedule instead of GPS fixes.
Meant to run once a day on the previous day.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.core.clock import Clock, system_clock
from carpool_backend.app.core.config import settings
from carpool_backend.app.core.exceptions import AppException, ProofValidationError
from carpool_backend.app.domain.proofs.schedule import iter_days, resolve_window, theoretical_start
from carpool_backend.app.models.proof import Proof
from carpool_backend.app.models.proof_enums import Frequency, ProofStatus, WaypointRole
from carpool_backend.app.models.ride_agreement import RideAgreement
from carpool_backend.app.repositories.proof_repository import ProofRepository
from carpool_backend.app.repositories.ride_agreement_repository import RideAgreementRepository
from carpool_backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("carpool.proofs.batch")


class RidePath:
    """Origin/destination waypoints of both paths of a ride agreement."""

    def __init__(self, driver_origin, driver_destination, pickup, dropoff):
        self.driver_origin = driver_origin
        self.driver_destination = driver_destination
        self.pickup = pickup
        self.dropoff = dropoff


class ProofBatchGenerator:

    def __init__(self, db: AsyncSession, clock: Clock = system_clock, proof_type: str = None):
        self.db = db
        self.clock = clock
        self.proof_type = proof_type or settings.proof_type
        self.proofs = ProofRepository(db)
        self.ride_agreements = RideAgreementRepository(db)

    async def generate_pending(
        self,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None
    ) -> list[Proof]:
        """
        Create the missing proofs of the period and return every pending proof.

        Flow:
        1. Resolve the period (default: yesterday, whole day)
        2. Fetch ride agreements accepted for the period
        3. Build one proof per ride and carpool day not covered yet
        4. Persist the batch
        5. Return all PENDING proofs, including older ones not sent yet

        A ride agreement that cannot produce a proof is logged and skipped.
        """
        from_date, to_date = resolve_window(self.clock, from_date, to_date)
        ride_agreements = await self.ride_agreements.find_accepted_for_period(from_date, to_date)

        created: list[Proof] = []
        for ride_agreement in ride_agreements:
            try:
                created.extend(await self._proofs_for_ride(ride_agreement, from_date, to_date))
            except AppException as e:
                logger.warning("Ride agreement %s skipped: %s", ride_agreement.id, e.message)
            except (TypeError, ValueError, AttributeError) as e:
                logger.error("Ride agreement %s skipped, invalid schedule: %s", ride_agreement.id, e)

        if created:
            await self._persist(created)
            await log_event(
                self.db,
                action=AuditAction.PROOFS_GENERATED,
                metadata={
                    "from_date": from_date.isoformat(),
                    "to_date": to_date.isoformat(),
                    "count": len(created),
                }
            )
            await self.db.commit()

        logger.info(
            "Generated %d proofs for %d ride agreements between %s and %s",
            len(created), len(ride_agreements), from_date, to_date
        )
        return await self.proofs.list_by_status(ProofStatus.PENDING)

    async def _proofs_for_ride(
        self,
        ride_agreement: RideAgreement,
        from_date: datetime,
        to_date: datetime
    ) -> list[Proof]:
        path = await self._load_path(ride_agreement)
        criteria = ride_agreement.criteria

        if criteria.frequency == Frequency.PUNCTUAL:
            candidates = [datetime.combine(criteria.from_date, datetime.min.time())]
        else:
            candidates = [
                day for day in iter_days(from_date, to_date)
                if self._within_validity(criteria, day.date())
            ]

        proofs = []
        for day in candidates:
            start = theoretical_start(criteria, day)
            if start is None:
                continue
            if await self.proofs.find_by_ride_and_date(ride_agreement.id, day):
                continue
            proofs.append(self._build_proof(ride_agreement, path, day.date(), start))
        return proofs

    @staticmethod
    def _within_validity(criteria, day: date) -> bool:
        if day < criteria.from_date:
            return False
        return criteria.to_date is None or day <= criteria.to_date

    async def _load_path(self, ride_agreement: RideAgreement) -> RidePath:
        repo = self.ride_agreements
        path = RidePath(
            driver_origin=await repo.find_min_waypoint(ride_agreement.id, WaypointRole.DRIVER),
            driver_destination=await repo.find_max_waypoint(ride_agreement.id, WaypointRole.DRIVER),
            pickup=await repo.find_min_waypoint(ride_agreement.id, WaypointRole.PASSENGER),
            dropoff=await repo.find_max_waypoint(ride_agreement.id, WaypointRole.PASSENGER),
        )
        missing = [name for name, waypoint in vars(path).items() if waypoint is None]
        if missing:
            raise ProofValidationError(
                f"Ride agreement {ride_agreement.id} is missing waypoints: {', '.join(missing)}",
                details={"ride_agreement_id": ride_agreement.id, "missing": missing}
            )
        return path

    def _build_proof(self, ride_agreement: RideAgreement, path: RidePath, day: date, start: datetime) -> Proof:
        return Proof(
            status=ProofStatus.PENDING,
            type=self.proof_type,
            ride_agreement=ride_agreement,
            ride_agreement_id=ride_agreement.id,
            driver_id=ride_agreement.driver_id,
            passenger_id=ride_agreement.passenger_id,
            proof_date=day,
            origin_driver_address=path.driver_origin.address.clone(),
            destination_driver_address=path.driver_destination.address.clone(),
            pickup_passenger_address=path.pickup.address.clone(),
            dropoff_passenger_address=path.dropoff.address.clone(),
            start_driver_date=start,
            end_driver_date=start + timedelta(seconds=path.driver_destination.duration),
            pickup_passenger_date=start + timedelta(seconds=path.pickup.duration),
            dropoff_passenger_date=start + timedelta(seconds=path.dropoff.duration),
        )

    async def _persist(self, proofs: list[Proof]) -> None:
        """Save the batch; on a key conflict, insert proof by proof and skip the taken days."""
        try:
            await self.proofs.save(proofs, commit=False)
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Concurrent proof generation detected, inserting one by one")
            for proof in proofs:
                try:
                    async with self.db.begin_nested():
                        self.db.add(proof)
                except IntegrityError:
                    logger.info(
                        "Proof for ride agreement %s on %s already exists, skipped",
                        proof.ride_agreement_id, proof.proof_date
                    )
