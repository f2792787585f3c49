# gta_watch/routers/places.py

from fastapi import APIRouter, Depends, Query

from ..deps import get_geocoder
from ..services.geocoding import DEFAULT_RADIUS_M, GeocodingClient
from ..utils import round_coordinates

router = APIRouter()


@router.get("/geocode/reverse")
async def reverse_geocode(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    lat, lon = round_coordinates(lat, lon)
    address = await geocoder.reverse_geocode(lat, lon)
    return {"latitude": lat, "longitude": lon, "address": address}


@router.get("/services/nearby")
async def nearby_services(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius: int = Query(DEFAULT_RADIUS_M, ge=100, le=50000),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    """
    Hospitals, police and fire stations near a point, nearest first.
    """
    lat, lon = round_coordinates(lat, lon)
    services = await geocoder.find_nearby_services(lat, lon, radius)
    return {"items": [s.model_dump() for s in services]}
