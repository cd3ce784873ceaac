"""
Centralized Test Configuration.
"""

import pytest
from datetime import date, time
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from carpool_backend.app.main import app
from carpool_backend.app.db.session import get_db, Base
from carpool_backend.app.core.clock import FixedClock
from carpool_backend.app.core.dependencies import get_clock
from carpool_backend.app.core.redis_client import get_redis
from carpool_backend.app.models.address import Address
from carpool_backend.app.models.proof_enums import Frequency, RideAgreementStatus, WaypointRole
from carpool_backend.app.models.ride_agreement import Criteria, RideAgreement, RideRequest
from carpool_backend.app.models.user import User
from carpool_backend.app.models.waypoint import Waypoint
from carpool_backend.app.services.geo_lookup import CoordinateGeoLookup, get_geo_lookup
from carpool_backend.app.services.registry_client import get_registry_client
from carpool_backend.tests.points import NOW, ORIGIN, north_of

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    async def delete(self, key):
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        return 1 if key in self.store else 0

    async def flushdb(self):
        self.store = {}


class FakeRegistry:
    """Registry client answering from a per-proof table (default: accept)."""

    def __init__(self, rejected=None):
        self.rejected = set(rejected or [])
        self.submitted = []

    async def submit(self, proof):
        self.submitted.append(proof.id)
        return proof.id not in self.rejected


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def geo_lookup():
    return CoordinateGeoLookup()


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
async def client(session_factory, clock, mock_redis, registry):
    """Async client for testing, wired to the test database and fakes."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: mock_redis
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_geo_lookup] = lambda: CoordinateGeoLookup()
    app.dependency_overrides[get_registry_client] = lambda: registry

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
async def users(db_session):
    driver = User(email="driver@test.com", username="driver", given_name="Dana", family_name="Driver")
    passenger = User(email="passenger@test.com", username="passenger", given_name="Paul", family_name="Passenger")
    db_session.add_all([driver, passenger])
    await db_session.commit()
    return driver, passenger


@pytest.fixture
def ride_factory(db_session, users):
    """
    Build an accepted ride agreement with its waypoints.

    Driver path: ORIGIN -> 10km north (``destination_duration`` seconds).
    Passenger path: 1km north (600s) -> 9km north (1500s).
    ``weekly`` maps weekday prefixes ("mon", ...) to departure times.
    """
    driver, passenger = users

    async def make_ride(
        frequency=Frequency.PUNCTUAL,
        from_date=date(2024, 3, 1),
        from_time=time(8, 0),
        to_date=None,
        weekly=None,
        destination_duration=1800,
        dynamic=False,
        with_waypoints=True,
        status=RideAgreementStatus.ACCEPTED,
    ):
        criteria = Criteria(frequency=frequency, from_date=from_date, from_time=from_time, to_date=to_date)
        for prefix, departure in (weekly or {}).items():
            setattr(criteria, f"{prefix}_check", True)
            setattr(criteria, f"{prefix}_time", departure)
        ride_request = RideRequest(user_id=passenger.id, dynamic=dynamic, finished=False)
        ride = RideAgreement(
            driver=driver,
            passenger=passenger,
            criteria=criteria,
            ride_request=ride_request,
            status=status,
        )
        db_session.add(ride)
        await db_session.flush()

        if with_waypoints:
            stops = [
                (WaypointRole.DRIVER, 0, ORIGIN, 0),
                (WaypointRole.DRIVER, 1, north_of(ORIGIN, 10000), destination_duration),
                (WaypointRole.PASSENGER, 0, north_of(ORIGIN, 1000), 600),
                (WaypointRole.PASSENGER, 1, north_of(ORIGIN, 9000), 1500),
            ]
            for role, position, (lat, lon), duration in stops:
                db_session.add(Waypoint(
                    ride_agreement_id=ride.id,
                    role=role,
                    position=position,
                    duration=duration,
                    address=Address(latitude=lat, longitude=lon, locality="Lyon"),
                ))
        await db_session.commit()
        return ride

    return make_ride
