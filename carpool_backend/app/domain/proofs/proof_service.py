"""
Proof Service (Domain Logic).

Live certification of a shared ride. The driver and the passenger each
send their own GPS fixes; every fix after the first one of a leg must be
corroborated by the counterpart's fix within a distance tolerance.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.ext.asyncio import AsyncSession

from carpool_backend.app.core.clock import Clock, system_clock
from carpool_backend.app.core.exceptions import (
    AlreadyCertifiedError,
    CertificationInProgressError,
    DuplicateProofError,
    OrderingViolationError,
    ProofValidationError,
    ResourceNotFoundError,
    ToleranceExceededError,
)
from carpool_backend.app.domain.proofs.schedule import (
    punctual_start,
    resolve_departure_time,
    with_departure_time,
)
from carpool_backend.app.models.direction import Direction
from carpool_backend.app.models.proof import Proof
from carpool_backend.app.models.proof_enums import Actor, Frequency, Leg, ProofStatus, WaypointRole
from carpool_backend.app.models.ride_agreement import RideAgreement
from carpool_backend.app.models.user import User
from carpool_backend.app.repositories.proof_repository import ProofRepository
from carpool_backend.app.repositories.ride_agreement_repository import RideAgreementRepository
from carpool_backend.app.services.audit import log_event, AuditAction
from carpool_backend.app.services.geo import haversine_distance
from carpool_backend.app.services.geo_lookup import GeoLookup
from carpool_backend.app.services.locks import certification_lock

logger = logging.getLogger("carpool.proofs")

# Reads of a proof that changed before the write are replayed this many times
CERTIFICATION_ATTEMPTS = 3


def resolve_actor(author_id: int, passenger_id: int) -> Actor:
    """Role of the author within a ride: passenger if it is the passenger, else driver."""
    return Actor.PASSENGER if author_id == passenger_id else Actor.DRIVER


class ProofService:

    def __init__(
        self,
        db: AsyncSession,
        geo_lookup: GeoLookup,
        clock: Clock = system_clock,
        redis=None,
    ):
        self.db = db
        self.geo_lookup = geo_lookup
        self.clock = clock
        self.redis = redis
        self.proofs = ProofRepository(db)
        self.ride_agreements = RideAgreementRepository(db)

    async def get_proof(self, proof_id: int) -> Proof:
        proof = await self.proofs.find_by_id(proof_id)
        if proof is None:
            raise ResourceNotFoundError("Proof", proof_id)
        return proof

    async def get_proof_for_date(self, ride_agreement: RideAgreement, day: date) -> Optional[Proof]:
        return await self.proofs.find_by_ride_and_date(ride_agreement.id, day)

    def _driver_start(self, ride_agreement: RideAgreement) -> datetime:
        criteria = ride_agreement.criteria
        if criteria.frequency == Frequency.PUNCTUAL:
            return punctual_start(criteria)

        now = self.clock.now()
        departure = resolve_departure_time(criteria, now.date())
        if departure is None:
            # Not a carpool day: the wall-clock time is kept as start
            logger.warning(
                "Ride agreement %s is not scheduled on %s, using wall-clock start",
                ride_agreement.id, now.date()
            )
        return with_departure_time(now, departure)

    async def create_proof(
        self,
        ride_agreement: RideAgreement,
        longitude: float,
        latitude: float,
        proof_type: str,
        actor: Actor,
        driver: User,
        passenger: User,
    ) -> Proof:
        """
        Create a real-time proof from the first fix of a ride.

        The author's pickup is certified immediately with the given
        coordinates. The status stays unset until both actors have
        certified their dropoff.

        Raises:
            ProofValidationError: the driver path has no waypoints
            DuplicateProofError: a proof already exists for the day
            GeoResolutionError: the coordinates cannot be resolved
        """
        origin = await self.ride_agreements.find_min_waypoint(ride_agreement.id, WaypointRole.DRIVER)
        destination = await self.ride_agreements.find_max_waypoint(ride_agreement.id, WaypointRole.DRIVER)
        if origin is None or destination is None:
            raise ProofValidationError(
                f"Ride agreement {ride_agreement.id} has no driver waypoints",
                details={"ride_agreement_id": ride_agreement.id}
            )

        start_date = self._driver_start(ride_agreement)
        if await self.proofs.find_by_ride_and_date(ride_agreement.id, start_date):
            raise DuplicateProofError(ride_agreement.id, start_date.date())

        address = await self.geo_lookup.resolve(latitude, longitude)

        proof = Proof(
            type=proof_type,
            ride_agreement=ride_agreement,
            driver_id=driver.id,
            passenger_id=passenger.id,
            proof_date=start_date.date(),
            # Own copies: the waypoint addresses may change later
            origin_driver_address=origin.address.clone(),
            destination_driver_address=destination.address.clone(),
            start_driver_date=start_date,
            end_driver_date=start_date + timedelta(seconds=destination.duration),
            direction=Direction(distance=0, duration=0, format="Dynamic", points=[]),
        )
        proof.certify(actor, Leg.PICKUP, self.clock.now(), address)

        self.db.add(proof)
        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateProofError(ride_agreement.id, start_date.date())

        await log_event(
            self.db,
            action=AuditAction.PROOF_CREATED,
            actor_id=driver.id if actor == Actor.DRIVER else passenger.id,
            proof_id=proof.id,
            metadata={"actor": actor.value, "type": proof_type}
        )
        await self.db.commit()

        logger.info("Proof %s created by %s for ride agreement %s", proof.id, actor.value, ride_agreement.id)
        return proof

    async def update_proof(
        self,
        proof_id: int,
        longitude: float,
        latitude: float,
        actor: Actor,
        tolerance_meters: float,
    ) -> Proof:
        """
        Certify the next leg of ``actor`` on a proof.

        Raises:
            ResourceNotFoundError: unknown proof
            OrderingViolationError: dropoff before the counterpart's pickup
            AlreadyCertifiedError: dropoff already certified
            ToleranceExceededError: fix too far from the counterpart's
            CertificationInProgressError: same actor already certifying
        """
        if self.redis is None:
            return await self._update_proof(proof_id, longitude, latitude, actor, tolerance_meters)
        async with certification_lock(self.redis, proof_id, actor.value):
            return await self._update_proof(proof_id, longitude, latitude, actor, tolerance_meters)

    async def _update_proof(
        self,
        proof_id: int,
        longitude: float,
        latitude: float,
        actor: Actor,
        tolerance_meters: float,
    ) -> Proof:
        # Driver and passenger certify concurrently: each attempt works on a
        # locked, fresh row and its write fails if the counterpart got first
        for attempt in range(1, CERTIFICATION_ATTEMPTS + 1):
            try:
                return await self._certify_next_leg(proof_id, longitude, latitude, actor, tolerance_meters)
            except StaleDataError:
                await self.db.rollback()
                logger.info(
                    "Proof %s changed during %s certification, replaying (attempt %d)",
                    proof_id, actor.value, attempt
                )
        raise CertificationInProgressError(proof_id, actor.value)

    async def _certify_next_leg(
        self,
        proof_id: int,
        longitude: float,
        latitude: float,
        actor: Actor,
        tolerance_meters: float,
    ) -> Proof:
        proof = await self.proofs.find_by_id(proof_id, for_update=True)
        if proof is None:
            raise ResourceNotFoundError("Proof", proof_id)
        counterpart = actor.counterpart

        if proof.is_certified(actor, Leg.PICKUP) and not proof.is_certified(counterpart, Leg.PICKUP):
            raise OrderingViolationError(actor.value, counterpart.value)

        if proof.is_certified(actor, Leg.PICKUP):
            leg = Leg.DROPOFF
            if proof.is_certified(actor, Leg.DROPOFF):
                raise AlreadyCertifiedError(actor.value, leg.value)
            completes_pair = proof.is_certified(counterpart, Leg.DROPOFF)
            if completes_pair:
                self._check_distance(proof, actor, leg, latitude, longitude, tolerance_meters)
            await self._certify(proof, actor, leg, latitude, longitude)
            if completes_pair:
                # Both actors certified: ready for the registry
                proof.status = ProofStatus.PENDING
            if actor == Actor.PASSENGER:
                self._finish_ride_request(proof)
        elif proof.is_certified(counterpart, Leg.PICKUP):
            leg = Leg.PICKUP
            self._check_distance(proof, actor, leg, latitude, longitude, tolerance_meters)
            await self._certify(proof, actor, leg, latitude, longitude)
        else:
            leg = Leg.PICKUP
            await self._certify(proof, actor, leg, latitude, longitude)

        await log_event(
            self.db,
            action=AuditAction.PROOF_CERTIFIED,
            proof_id=proof.id,
            actor_id=proof.passenger_id if actor == Actor.PASSENGER else proof.driver_id,
            metadata={"actor": actor.value, "leg": leg.value}
        )
        await self.db.commit()

        logger.info("Proof %s: %s %s certified", proof.id, actor.value, leg.value)
        return proof

    def _check_distance(
        self,
        proof: Proof,
        actor: Actor,
        leg: Leg,
        latitude: float,
        longitude: float,
        tolerance_meters: float,
    ) -> None:
        reference = proof.slot_address(actor.counterpart, leg)
        distance = haversine_distance(latitude, longitude, reference.latitude, reference.longitude)
        if distance > tolerance_meters:
            logger.info(
                "Proof %s: %s %s rejected, %.1fm from counterpart (tolerance %sm)",
                proof.id, actor.value, leg.value, distance, tolerance_meters
            )
            raise ToleranceExceededError(actor.value, leg.value, distance, tolerance_meters)

    async def _certify(self, proof: Proof, actor: Actor, leg: Leg, latitude: float, longitude: float) -> None:
        address = await self.geo_lookup.resolve(latitude, longitude)
        proof.certify(actor, leg, self.clock.now(), address)

    def _finish_ride_request(self, proof: Proof) -> None:
        ride_request = proof.ride_agreement.ride_request if proof.ride_agreement else None
        if ride_request is not None and ride_request.dynamic:
            ride_request.finished = True

    async def reset_proof(self, proof_id: int, actor_id: Optional[int] = None) -> Proof:
        """
        Put a proof rejected by the registry back in the dispatch queue.

        Only ``ERROR`` proofs are reset; any other status is left untouched.
        """
        proof = await self.get_proof(proof_id)
        if proof.status != ProofStatus.ERROR:
            return proof

        proof.status = ProofStatus.PENDING
        await log_event(
            self.db,
            action=AuditAction.PROOF_RESET,
            actor_id=actor_id,
            proof_id=proof.id
        )
        await self.db.commit()

        logger.info("Proof %s reset to pending", proof.id)
        return proof
