"""
Proof certification tests.

Two-party handshake: each fix after the first of a leg must match the
counterpart's fix within the tolerance.
"""

import pytest
from datetime import timedelta

from carpool_backend.app.core.exceptions import (
    AlreadyCertifiedError,
    OrderingViolationError,
    ResourceNotFoundError,
    ToleranceExceededError,
)
from carpool_backend.app.domain.proofs.proof_service import ProofService
from carpool_backend.app.models.proof_enums import Actor, Leg, ProofStatus, ProofType
from carpool_backend.app.services.audit import AuditAction, get_proof_audit_trail
from carpool_backend.app.services.geo import haversine_distance
from carpool_backend.tests.points import NOW, ORIGIN, north_of

TOLERANCE = 50

# Dropoff area, 9km north of the origin
DROPOFF = north_of(ORIGIN, 9000)


@pytest.fixture
def service(db_session, geo_lookup, clock):
    return ProofService(db_session, geo_lookup, clock=clock)


@pytest.fixture
async def started_proof(service, ride_factory, users):
    """Proof started by the driver at ORIGIN."""
    driver, passenger = users
    ride = await ride_factory(dynamic=True)
    return await service.create_proof(
        ride_agreement=ride,
        longitude=ORIGIN[1],
        latitude=ORIGIN[0],
        proof_type=ProofType.REALTIME.value,
        actor=Actor.DRIVER,
        driver=driver,
        passenger=passenger,
    )


async def certify(service, proof, actor, point, tolerance=TOLERANCE):
    lat, lon = point
    return await service.update_proof(proof.id, longitude=lon, latitude=lat, actor=actor, tolerance_meters=tolerance)


@pytest.fixture
async def picked_up_proof(service, started_proof):
    """Both pickups certified (scenario C)."""
    return await certify(service, started_proof, Actor.PASSENGER, north_of(ORIGIN, 40))


# TEST 1: Unknown proof
@pytest.mark.asyncio
async def test_update_unknown_proof(service, users):
    with pytest.raises(ResourceNotFoundError):
        await service.update_proof(999, longitude=0.0, latitude=0.0, actor=Actor.DRIVER, tolerance_meters=TOLERANCE)


# TEST 2: Ordering
@pytest.mark.asyncio
async def test_driver_dropoff_before_passenger_pickup_fails(service, started_proof):
    """The driver cannot certify its dropoff while the passenger has not picked up."""
    with pytest.raises(OrderingViolationError):
        await certify(service, started_proof, Actor.DRIVER, DROPOFF)
    
    assert started_proof.dropoff_driver_address is None


@pytest.mark.asyncio
async def test_passenger_dropoff_before_driver_pickup_fails(service, ride_factory, users):
    """Symmetric rule for the passenger."""
    driver, passenger = users
    ride = await ride_factory()
    proof = await service.create_proof(
        ride_agreement=ride, longitude=ORIGIN[1], latitude=ORIGIN[0],
        proof_type="realtime", actor=Actor.PASSENGER, driver=driver, passenger=passenger,
    )
    
    with pytest.raises(OrderingViolationError):
        await certify(service, proof, Actor.PASSENGER, DROPOFF)


# TEST 3: Pickup corroboration (scenario C)
@pytest.mark.asyncio
async def test_passenger_pickup_within_tolerance(picked_up_proof):
    """Passenger certifies 40m from the driver's pickup with tolerance 50."""
    proof = picked_up_proof
    
    assert proof.pickup_driver_address is not None
    assert proof.pickup_passenger_address is not None
    assert proof.dropoff_driver_address is None
    assert proof.dropoff_passenger_address is None
    # Not ready for the registry until both dropoffs are certified
    assert proof.status is None
    assert len(proof.direction.points) == 2


@pytest.mark.asyncio
async def test_passenger_pickup_too_far(service, started_proof):
    with pytest.raises(ToleranceExceededError) as exc_info:
        await certify(service, started_proof, Actor.PASSENGER, north_of(ORIGIN, 75))
    
    error = exc_info.value
    assert error.leg == "pickup"
    assert error.distance_meters == pytest.approx(75, abs=1e-3)
    assert error.tolerance_meters == TOLERANCE
    assert started_proof.pickup_passenger_address is None


@pytest.mark.asyncio
async def test_first_pickup_is_trusted(service, ride_factory, users):
    """Without any certification, the first fix is accepted wherever it is."""
    driver, passenger = users
    ride = await ride_factory()
    proof = await service.create_proof(
        ride_agreement=ride, longitude=ORIGIN[1], latitude=ORIGIN[0],
        proof_type="realtime", actor=Actor.PASSENGER, driver=driver, passenger=passenger,
    )
    # Simulate a proof whose creation fix was not kept
    proof.pickup_passenger_address = None
    proof.pickup_passenger_date = None
    
    proof = await certify(service, proof, Actor.DRIVER, north_of(ORIGIN, 5000))
    
    assert proof.pickup_driver_address.latitude == pytest.approx(north_of(ORIGIN, 5000)[0])


# TEST 4: Dropoff (scenario D)
@pytest.mark.asyncio
async def test_first_dropoff_is_trusted(service, picked_up_proof):
    """The first dropoff of the pair is accepted without distance check."""
    proof = await certify(service, picked_up_proof, Actor.DRIVER, DROPOFF)
    
    assert proof.dropoff_driver_address is not None
    assert proof.status is None


@pytest.mark.asyncio
async def test_dropoff_handshake(service, picked_up_proof):
    """Passenger dropoff 60m away is rejected, 20m away is accepted and completes the proof."""
    proof = await certify(service, picked_up_proof, Actor.DRIVER, DROPOFF)
    
    with pytest.raises(ToleranceExceededError) as exc_info:
        await certify(service, proof, Actor.PASSENGER, north_of(DROPOFF, 60))
    assert exc_info.value.leg == "dropoff"
    assert proof.dropoff_passenger_address is None
    assert proof.status is None
    
    proof = await certify(service, proof, Actor.PASSENGER, north_of(DROPOFF, 20))
    
    assert proof.dropoff_passenger_address is not None
    assert proof.status == ProofStatus.PENDING
    assert len(proof.direction.points) == 4


@pytest.mark.asyncio
async def test_driver_dropoff_completes_proof(service, picked_up_proof):
    """Passenger drops off first, the driver's matching dropoff completes the proof."""
    proof = await certify(service, picked_up_proof, Actor.PASSENGER, DROPOFF)
    proof = await certify(service, proof, Actor.DRIVER, north_of(DROPOFF, 10))
    
    assert proof.status == ProofStatus.PENDING


@pytest.mark.asyncio
async def test_passenger_dropoff_finishes_dynamic_request(service, picked_up_proof):
    proof = await certify(service, picked_up_proof, Actor.PASSENGER, DROPOFF)
    
    assert proof.ride_agreement.ride_request.finished is True


@pytest.mark.asyncio
async def test_driver_dropoff_keeps_request_open(service, picked_up_proof):
    proof = await certify(service, picked_up_proof, Actor.DRIVER, DROPOFF)
    
    assert proof.ride_agreement.ride_request.finished is False


# TEST 5: No double certification
@pytest.mark.asyncio
@pytest.mark.parametrize("actor", [Actor.DRIVER, Actor.PASSENGER])
async def test_second_dropoff_fails(service, picked_up_proof, actor):
    """Once the dropoff slot is set, any further fix of the same actor fails."""
    proof = await certify(service, picked_up_proof, actor, DROPOFF)
    recorded = proof.slot_date(actor, Leg.DROPOFF)
    
    for point in (DROPOFF, ORIGIN, north_of(DROPOFF, 5)):
        with pytest.raises(AlreadyCertifiedError):
            await certify(service, proof, actor, point)
    
    assert proof.slot_date(actor, Leg.DROPOFF) == recorded


# TEST 6: Tolerance boundary
@pytest.mark.asyncio
async def test_tolerance_boundary_is_inclusive(service, picked_up_proof):
    """A fix exactly at the tolerance is accepted, just beyond is rejected."""
    proof = await certify(service, picked_up_proof, Actor.DRIVER, DROPOFF)
    reference = proof.dropoff_driver_address
    target = north_of(DROPOFF, 30)
    distance = haversine_distance(target[0], target[1], reference.latitude, reference.longitude)
    
    with pytest.raises(ToleranceExceededError):
        await certify(service, proof, Actor.PASSENGER, target, tolerance=distance - 1e-6)
    
    proof = await certify(service, proof, Actor.PASSENGER, target, tolerance=distance)
    assert proof.status == ProofStatus.PENDING


# TEST 7: Audit
@pytest.mark.asyncio
async def test_certifications_are_audited(service, picked_up_proof, db_session):
    proof = await certify(service, picked_up_proof, Actor.DRIVER, DROPOFF)
    
    trail = await get_proof_audit_trail(db_session, proof.id)
    actions = [(entry.action, (entry.meta_data or {}).get("leg")) for entry in trail]
    assert actions == [
        (AuditAction.PROOF_CREATED, None),
        (AuditAction.PROOF_CERTIFIED, "pickup"),
        (AuditAction.PROOF_CERTIFIED, "dropoff"),
    ]


# TEST 8: Reset
@pytest.mark.asyncio
async def test_reset_error_proof(service, picked_up_proof, db_session):
    picked_up_proof.status = ProofStatus.ERROR
    await db_session.commit()
    
    proof = await service.reset_proof(picked_up_proof.id)
    
    assert proof.status == ProofStatus.PENDING


@pytest.mark.asyncio
async def test_reset_ignores_sent_proof(service, picked_up_proof, db_session):
    picked_up_proof.status = ProofStatus.SENT
    await db_session.commit()
    
    proof = await service.reset_proof(picked_up_proof.id)
    
    assert proof.status == ProofStatus.SENT


@pytest.mark.asyncio
async def test_slots_record_clock_time(service, started_proof, clock):
    """Each slot is stamped with the certification instant."""
    clock.advance(timedelta(minutes=2))
    proof = await certify(service, started_proof, Actor.PASSENGER, north_of(ORIGIN, 10))
    clock.advance(timedelta(minutes=25))
    proof = await certify(service, proof, Actor.DRIVER, DROPOFF)
    
    assert proof.pickup_driver_date == NOW
    assert proof.pickup_passenger_date == NOW + timedelta(minutes=2)
    assert proof.dropoff_driver_date == NOW + timedelta(minutes=27)
