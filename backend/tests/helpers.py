from typing import List, Optional

import httpx

from gta_watch.models.incidents import IncidentCategory
from gta_watch.schemas import EmergencyService, IncidentCreate

FAKE_ADDRESS = "100 Queen St W, Toronto, ON M5H 2N2, Canada"


class FakeGeocoder:
    def __init__(self, address: str = FAKE_ADDRESS, services: Optional[List[EmergencyService]] = None):
        self.address = address
        self.services = services or []
        self.reverse_calls = []
        self.nearby_calls = []

    async def reverse_geocode(self, lat: float, lon: float) -> str:
        self.reverse_calls.append((lat, lon))
        return self.address

    async def find_nearby_services(self, lat, lon, radius_m=5000):
        self.nearby_calls.append((lat, lon, radius_m))
        return list(self.services)


def make_incident(category=IncidentCategory.FIRE, lat=43.6532, lon=-79.3832, description=None, label="Somewhere"):
    return IncidentCreate(
        category=category,
        description=description,
        latitude=lat,
        longitude=lon,
        location_label=label,
    )


def mock_http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
