# gta_watch/services/geocoding.py

import asyncio
import logging
from typing import List, Optional

import httpx
from pydantic import ValidationError

from ..schemas import EmergencyService
from ..utils import format_coordinates, haversine_m

log = logging.getLogger(__name__)

DEFAULT_RADIUS_M = 5000
PER_CATEGORY_LIMIT = 5

# Geoapify place category -> our service type
SERVICE_CATEGORIES = [
    ("healthcare.hospital", "hospital"),
    ("service.police", "police"),
    ("service.fire_station", "fire"),
]


def _features(payload) -> list:
    """The GeoJSON feature dicts in a Geoapify body; anything else is dropped."""
    if not isinstance(payload, dict):
        return []
    features = payload.get("features")
    if not isinstance(features, list):
        return []
    return [f for f in features if isinstance(f, dict)]


def _properties(feature: dict) -> dict:
    props = feature.get("properties")
    return props if isinstance(props, dict) else {}


class GeocodingClient:
    """
    Geoapify reverse geocoding and nearby-place search.

    Nothing here raises on network trouble or odd payloads: reverse lookups
    fall back to the coordinate string and a failed place category just
    contributes nothing.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str = "https://api.geoapify.com",
    ):
        if not api_key:
            log.warning("GEOAPIFY_KEY not configured; geocoding calls will fall back")
        self._http = http
        self._api_key = api_key or ""
        self._base_url = base_url.rstrip("/")

    async def reverse_geocode(self, lat: float, lon: float) -> str:
        params = {"lat": lat, "lon": lon, "apiKey": self._api_key}
        try:
            resp = await self._http.get(f"{self._base_url}/v1/geocode/reverse", params=params)
            resp.raise_for_status()
            features = _features(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            log.error("Reverse geocoding error: %s", e)
            return format_coordinates(lat, lon)

        if features:
            props = _properties(features[0])
            label = props.get("formatted") or props.get("address_line1")
            if isinstance(label, str) and label.strip():
                return label

        return format_coordinates(lat, lon)

    def _parse_service(self, feature: dict, service_type: str, lat: float, lon: float) -> EmergencyService:
        props = _properties(feature)
        geometry = feature.get("geometry")
        coords = geometry.get("coordinates") if isinstance(geometry, dict) else None
        s_lon, s_lat = float(coords[0]), float(coords[1])

        distance = props.get("distance")
        if distance is None:
            distance = haversine_m(lat, lon, s_lat, s_lon)

        return EmergencyService(
            name=props.get("name") or props.get("address_line1") or "Emergency Service",
            type=service_type,
            address=props.get("formatted") or props.get("address_line1") or "Address unavailable",
            distance=float(distance),
            latitude=s_lat,
            longitude=s_lon,
        )

    async def _search_category(
        self,
        category: str,
        service_type: str,
        lat: float,
        lon: float,
        radius_m: int,
    ) -> List[EmergencyService]:
        params = {
            "categories": category,
            "filter": f"circle:{lon},{lat},{radius_m}",
            "limit": PER_CATEGORY_LIMIT,
            "apiKey": self._api_key,
        }
        try:
            resp = await self._http.get(f"{self._base_url}/v2/places", params=params)
            resp.raise_for_status()
            features = _features(resp.json())
        except (httpx.HTTPError, ValueError) as e:
            log.warning("Place search for %s failed: %s", category, e)
            return []

        services = []
        for feature in features[:PER_CATEGORY_LIMIT]:
            try:
                services.append(self._parse_service(feature, service_type, lat, lon))
            except (IndexError, TypeError, ValueError, ValidationError) as e:
                log.warning("Skipping malformed %s place: %s", category, e)
        return services

    async def find_nearby_services(
        self,
        lat: float,
        lon: float,
        radius_m: int = DEFAULT_RADIUS_M,
    ) -> List[EmergencyService]:
        """
        Hospitals, police and fire stations within `radius_m`, nearest first.
        """
        batches = await asyncio.gather(
            *(
                self._search_category(category, service_type, lat, lon, radius_m)
                for category, service_type in SERVICE_CATEGORIES
            )
        )
        results = [s for batch in batches for s in batch]
        return sorted(results, key=lambda s: s.distance)
