"""
Registry submission client.

Posts finalized proofs to the external mobility registry. A submission
either succeeds or fails: timeouts, transport errors, rejections and an
open circuit are all reported as ``False`` and never raised.
"""

import logging
import datetime as dt
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel

from carpool_backend.app.core.config import settings
from carpool_backend.app.core.exceptions import RegistrySubmissionError
from carpool_backend.app.core.reliability import CircuitBreaker, CircuitOpenError, registry_circuit_breaker
from carpool_backend.app.models.proof import Proof
from carpool_backend.app.models.proof_enums import Actor, Leg, ProofType

logger = logging.getLogger("carpool.registry")

# Registry proof classes: A = declarative, C = certified by both phones
OPERATOR_CLASSES = {
    ProofType.THEORETICAL.value: "A",
    ProofType.REALTIME.value: "C",
}


class RegistryClient(Protocol):
    async def submit(self, proof: Proof) -> bool:
        ...


class RegistryPoint(BaseModel):
    datetime: Optional[dt.datetime] = None
    lat: Optional[float] = None
    lon: Optional[float] = None


class RegistryPerson(BaseModel):
    identity: dict
    start: RegistryPoint
    end: RegistryPoint


class RegistryProofPayload(BaseModel):
    """Shape of a journey as expected by the registry."""
    journey_id: str
    operator_class: str
    driver: RegistryPerson
    passenger: RegistryPerson
    
    @classmethod
    def from_proof(cls, proof: Proof) -> "RegistryProofPayload":
        ride_agreement = proof.ride_agreement
        driver = ride_agreement.driver if ride_agreement else None
        passenger = ride_agreement.passenger if ride_agreement else None
        
        return cls(
            journey_id=str(proof.id),
            operator_class=OPERATOR_CLASSES.get(proof.type, "A"),
            driver=RegistryPerson(
                identity=_identity(driver, proof.driver_id),
                start=_point(
                    proof.pickup_driver_date or proof.start_driver_date,
                    proof.pickup_driver_address or proof.origin_driver_address,
                ),
                end=_point(
                    proof.dropoff_driver_date or proof.end_driver_date,
                    proof.dropoff_driver_address or proof.destination_driver_address,
                ),
            ),
            passenger=RegistryPerson(
                identity=_identity(passenger, proof.passenger_id),
                start=_point(proof.slot_date(Actor.PASSENGER, Leg.PICKUP), proof.pickup_passenger_address),
                end=_point(proof.slot_date(Actor.PASSENGER, Leg.DROPOFF), proof.dropoff_passenger_address),
            ),
        )


def _identity(user, user_id: int) -> dict:
    if user is None:
        return {"id": user_id}
    return {
        "id": user.id,
        "firstname": user.given_name,
        "lastname": user.family_name,
        "phone": user.phone,
    }


def _point(when: Optional[dt.datetime], address) -> RegistryPoint:
    if address is None:
        return RegistryPoint(datetime=when)
    return RegistryPoint(datetime=when, lat=address.latitude, lon=address.longitude)


class BetaGouvRegistryClient:
    """Client for the national carpool proof registry."""
    
    def __init__(
        self,
        uri: str,
        token: str,
        timeout: float = 10.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.uri = uri.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.circuit_breaker = circuit_breaker or registry_circuit_breaker
        self._client = client
    
    async def _post(self, proof_id: int, payload: dict) -> httpx.Response:
        url = f"{self.uri}/journeys"
        headers = {"Authorization": f"Bearer {self.token}"}
        if self._client is not None:
            response = await self._client.post(url, json=payload, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        # Rejections count as circuit failures too
        if not response.is_success:
            raise RegistrySubmissionError(proof_id, f"{response.status_code} {response.text[:200]}")
        return response
    
    async def submit(self, proof: Proof) -> bool:
        payload = RegistryProofPayload.from_proof(proof).model_dump(mode="json")
        try:
            await self.circuit_breaker.call(self._post, proof.id, payload)
        except CircuitOpenError:
            logger.warning("Registry circuit open, proof %s not submitted", proof.id)
            return False
        except RegistrySubmissionError as e:
            logger.warning("%s", e.message)
            return False
        except httpx.HTTPError as e:
            logger.warning("Registry unreachable for proof %s: %s", proof.id, e)
            return False
        
        logger.info("Proof %s accepted by registry", proof.id)
        return True


def get_registry_client() -> RegistryClient:
    """Build the registry client configured by settings."""
    if settings.registry_provider.lower() != "betagouv":
        raise ValueError(f"Unknown registry provider: {settings.registry_provider}")
    return BetaGouvRegistryClient(
        uri=settings.registry_uri,
        token=settings.registry_token,
        timeout=settings.registry_timeout_seconds,
    )
