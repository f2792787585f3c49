# gta_watch/services/map_view.py

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from ..models.incidents import IncidentCategory
from ..schemas import IncidentOut
from ..utils import TORONTO_CENTER, round_coordinates
from .incident_store import IncidentStore, StoreError

log = logging.getLogger(__name__)

DEFAULT_ZOOM = 11
FIT_PADDING = (50, 50)   # px on each side
FIT_MAX_ZOOM = 13
TILE_SIZE = 256
MAX_LATITUDE = 85.0511287798

TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_ATTRIBUTION = '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a>'

CATEGORY_COLORS = {
    IncidentCategory.SHOOTING: "#DC2626",
    IncidentCategory.MEDICAL: "#F59E0B",
    IncidentCategory.FIRE: "#EF4444",
    IncidentCategory.ACCIDENT: "#FBBF24",
    IncidentCategory.ASSAULT: "#7C3AED",
    IncidentCategory.SUSPICIOUS: "#3B82F6",
    IncidentCategory.THEFT: "#8B5CF6",
    IncidentCategory.OTHER: "#6B7280",
}

PIN_COLOR = "#0EA5A4"


def _project(lat: float, lon: float) -> Tuple[float, float]:
    """Spherical Mercator pixel coordinates at zoom 0."""
    lat = max(min(lat, MAX_LATITUDE), -MAX_LATITUDE)
    siny = math.sin(math.radians(lat))
    x = (lon + 180.0) / 360.0 * TILE_SIZE
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * TILE_SIZE
    return x, y


def _unproject(x: float, y: float) -> Tuple[float, float]:
    lon = x / TILE_SIZE * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / TILE_SIZE
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lon


@dataclass
class Viewport:
    center: Tuple[float, float]
    zoom: int
    bounds: Optional[Tuple[Tuple[float, float], Tuple[float, float]]] = None
    padding: Tuple[int, int] = FIT_PADDING
    max_zoom: int = FIT_MAX_ZOOM

    def to_dict(self) -> dict:
        return {
            "center": list(self.center),
            "zoom": self.zoom,
            "bounds": [list(c) for c in self.bounds] if self.bounds else None,
            "padding": list(self.padding),
            "max_zoom": self.max_zoom,
        }


def fit_bounds(
    points: Iterable[Tuple[float, float]],
    size: Tuple[int, int] = (1024, 768),
    padding: Tuple[int, int] = FIT_PADDING,
    max_zoom: int = FIT_MAX_ZOOM,
) -> Viewport:
    """
    Center and zoom that fit every point inside a `size` viewport, leaving
    `padding` pixels on each side and never zooming past `max_zoom`.
    """
    points = list(points)
    if not points:
        return Viewport(center=TORONTO_CENTER, zoom=DEFAULT_ZOOM, padding=padding, max_zoom=max_zoom)

    south = min(p[0] for p in points)
    north = max(p[0] for p in points)
    west = min(p[1] for p in points)
    east = max(p[1] for p in points)

    x0, y0 = _project(north, west)
    x1, y1 = _project(south, east)
    dx, dy = x1 - x0, y1 - y0

    avail_w = max(size[0] - 2 * padding[0], 1)
    avail_h = max(size[1] - 2 * padding[1], 1)

    scales = []
    if dx > 0:
        scales.append(avail_w / dx)
    if dy > 0:
        scales.append(avail_h / dy)

    if scales:
        zoom = int(math.floor(math.log2(min(scales))))
        zoom = max(0, min(zoom, max_zoom))
    else:
        zoom = max_zoom

    center = _unproject((x0 + x1) / 2, (y0 + y1) / 2)
    return Viewport(
        center=(round(center[0], 6), round(center[1], 6)),
        zoom=zoom,
        bounds=((south, west), (north, east)),
        padding=padding,
        max_zoom=max_zoom,
    )


def incident_feature(incident: IncidentOut) -> dict:
    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            "coordinates": [incident.longitude, incident.latitude],
        },
        "properties": {
            "id": incident.id,
            "category": incident.category.value,
            "color": CATEGORY_COLORS.get(incident.category, CATEGORY_COLORS[IncidentCategory.OTHER]),
            "description": incident.description,
            "location_label": incident.location_label,
            "created_at": incident.created_at.isoformat(),
        },
    }


class DisplayMap:
    """
    Display mode: every incident as a colored marker.

    Owns the in-memory incident list. Pass `incidents` to render a fixed set
    (controlled mode); otherwise call load() and attach() to follow the store.
    Markers are not clustered, so this is only suitable for small point counts.
    """

    def __init__(self, store: Optional[IncidentStore] = None, incidents: Optional[List[IncidentOut]] = None):
        self._store = store
        self.incidents: List[IncidentOut] = list(incidents) if incidents is not None else []
        self._subscription = None

    def load(self) -> List[IncidentOut]:
        if self._store is None:
            return self.incidents
        try:
            self.incidents = self._store.list_all()
        except StoreError as e:
            log.error("Failed to load incidents: %s", e)
            self.incidents = []
        return self.incidents

    def attach(self):
        if self._store is not None and self._subscription is None:
            self._subscription = self._store.subscribe_inserts(self.prepend)

    def close(self):
        if self._subscription is not None:
            self._subscription.release()
            self._subscription = None

    def prepend(self, incident: IncidentOut):
        self.incidents.insert(0, incident)

    def recent(self, n: int = 6) -> List[IncidentOut]:
        return self.incidents[:n]

    def markers(self) -> dict:
        return {
            "type": "FeatureCollection",
            "features": [incident_feature(i) for i in self.incidents],
        }

    def viewport(self, size: Tuple[int, int] = (1024, 768)) -> Viewport:
        return fit_bounds(((i.latitude, i.longitude) for i in self.incidents), size=size)

    def render(self, size: Tuple[int, int] = (1024, 768)) -> dict:
        return {
            "tiles": {"url": TILE_URL, "attribution": TILE_ATTRIBUTION},
            "markers": self.markers(),
            "viewport": self.viewport(size).to_dict(),
        }


class PickerMap:
    """
    Picking mode: one draggable marker.

    A drag release or a tap anywhere moves the marker to the rounded point and
    notifies `on_change(lat, lon)`.
    """

    def __init__(
        self,
        position: Tuple[float, float] = TORONTO_CENTER,
        on_change: Optional[Callable[[float, float], None]] = None,
    ):
        self.position = round_coordinates(*position)
        self._on_change = on_change

    def _relocate(self, lat: float, lon: float) -> Tuple[float, float]:
        self.position = round_coordinates(lat, lon)
        if self._on_change is not None:
            self._on_change(*self.position)
        return self.position

    def drag_end(self, lat: float, lon: float) -> Tuple[float, float]:
        return self._relocate(lat, lon)

    def tap(self, lat: float, lon: float) -> Tuple[float, float]:
        return self._relocate(lat, lon)

    def marker(self) -> dict:
        lat, lon = self.position
        return {
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [lon, lat]},
            "properties": {"draggable": True, "color": PIN_COLOR},
        }
