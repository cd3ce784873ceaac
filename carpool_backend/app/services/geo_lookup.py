"""
Address resolution for certification fixes.

Turns the raw coordinates sent by a phone into an Address row stored on
the proof slot.
"""

import logging
from typing import Optional, Protocol

import httpx

from carpool_backend.app.core.config import settings
from carpool_backend.app.core.exceptions import GeoResolutionError
from carpool_backend.app.models.address import Address

logger = logging.getLogger("carpool.geo")


class GeoLookup(Protocol):
    async def resolve(self, latitude: float, longitude: float) -> Address:
        ...


def _check_coordinates(latitude: float, longitude: float) -> None:
    if not (-90 <= latitude <= 90) or not (-180 <= longitude <= 180):
        raise GeoResolutionError(latitude, longitude, "coordinates out of range")


class CoordinateGeoLookup:
    """Keeps the raw fix as the address, without a remote geocoder."""
    
    async def resolve(self, latitude: float, longitude: float) -> Address:
        _check_coordinates(latitude, longitude)
        return Address(latitude=latitude, longitude=longitude)


class ReverseGeocoder:
    """
    Reverse geocoding over HTTP.
    
    Expects a Nominatim-like endpoint answering ``?lat=..&lon=..&format=json``
    with an ``address`` object.
    """
    
    def __init__(self, base_url: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url
        self.timeout = timeout
        self._client = client
    
    async def _get(self, params: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(self.base_url, params=params, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(self.base_url, params=params)
    
    async def resolve(self, latitude: float, longitude: float) -> Address:
        _check_coordinates(latitude, longitude)
        params = {"lat": latitude, "lon": longitude, "format": "json"}
        try:
            response = await self._get(params)
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Reverse geocoding failed for (%s, %s): %s", latitude, longitude, e)
            raise GeoResolutionError(latitude, longitude, str(e)) from e
        
        details = payload.get("address") if isinstance(payload, dict) else None
        if not details:
            raise GeoResolutionError(latitude, longitude, "no address in geocoder response")
        
        return Address(
            house_number=details.get("house_number"),
            street=details.get("road"),
            postal_code=details.get("postcode"),
            locality=details.get("city") or details.get("town") or details.get("village"),
            country=details.get("country"),
            latitude=latitude,
            longitude=longitude,
        )


def get_geo_lookup() -> GeoLookup:
    """FastAPI dependency returning the configured lookup."""
    if settings.geocoder_url:
        return ReverseGeocoder(settings.geocoder_url, timeout=settings.geocoder_timeout_seconds)
    return CoordinateGeoLookup()
