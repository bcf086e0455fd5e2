"""
Forward geocoding via the MapQuest geocoding API.

``geocode(address)`` resolves a free-form address (a zipcode is enough) to
a list of ``GeoResult`` candidates, best match first. An empty list means
the provider answered but found nothing; transport or provider errors
raise ``UpstreamFailure``.
"""

from dataclasses import dataclass
from typing import List, Optional

import httpx

import config
from errors import UpstreamFailure
from logging_config import get_logger

logger = get_logger(__name__)

MAPQUEST_URL = "https://www.mapquestapi.com/geocoding/v1/address"
_TIMEOUT_SECONDS = 5


@dataclass
class GeoResult:
    latitude: float
    longitude: float
    formatted_address: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipcode: Optional[str] = None
    country: Optional[str] = None


def _format_address(loc: dict) -> str:
    parts = [
        loc.get("street"),
        loc.get("adminArea5"),
        " ".join(p for p in (loc.get("adminArea3"), loc.get("postalCode")) if p),
        loc.get("adminArea1"),
    ]
    return ", ".join(p for p in parts if p)


def _parse_locations(data: dict) -> List[GeoResult]:
    results = []
    for result in data.get("results", []):
        for loc in result.get("locations", []):
            lat_lng = loc.get("latLng") or {}
            if "lat" not in lat_lng or "lng" not in lat_lng:
                continue
            results.append(GeoResult(
                latitude=float(lat_lng["lat"]),
                longitude=float(lat_lng["lng"]),
                formatted_address=_format_address(loc) or None,
                street=loc.get("street") or None,
                city=loc.get("adminArea5") or None,
                state=loc.get("adminArea3") or None,
                zipcode=loc.get("postalCode") or None,
                country=loc.get("adminArea1") or None,
            ))
    return results


def geocode(address: str) -> List[GeoResult]:
    if config.GEOCODER_PROVIDER != "mapquest":
        raise UpstreamFailure(f"Unsupported geocoder provider {config.GEOCODER_PROVIDER}")
    if not config.GEOCODER_API_KEY:
        raise UpstreamFailure("Geocoder is not configured")

    try:
        resp = httpx.get(
            MAPQUEST_URL,
            params={"key": config.GEOCODER_API_KEY, "location": address, "maxResults": 5},
            timeout=_TIMEOUT_SECONDS,
        )
    except httpx.HTTPError as exc:
        logger.warning("Geocoder network error for %r: %s", address, exc)
        raise UpstreamFailure("Problem with geocoding")

    if resp.status_code != 200:
        logger.warning("Geocoder returned status %d for %r", resp.status_code, address)
        raise UpstreamFailure("Problem with geocoding")

    data = resp.json()
    status = data.get("info", {}).get("statuscode", 0)
    if status != 0:
        logger.warning("Geocoder statuscode %s for %r: %s", status, address, data["info"].get("messages"))
        raise UpstreamFailure("Problem with geocoding")

    return _parse_locations(data)
