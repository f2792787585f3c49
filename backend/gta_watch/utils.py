import math
from datetime import datetime, timezone
from typing import Optional, Tuple

COORD_PRECISION = 5
_SCALE = 10 ** COORD_PRECISION

# Toronto's geographic center; used whenever the device gives no position
TORONTO_CENTER: Tuple[float, float] = (43.6532, -79.3832)


def round5(value: float) -> float:
    """
    Round one coordinate to 5 decimal places (about 1.1 m).

    Half-way values round toward +infinity, the same as the browser's
    Math.round, so coordinates computed client-side and server-side agree.
    """
    return math.floor(value * _SCALE + 0.5) / _SCALE


def round_coordinates(lat: float, lon: float) -> Tuple[float, float]:
    return round5(lat), round5(lon)


def format_coordinates(lat: float, lon: float) -> str:
    """Placeholder label used when an address can't be resolved."""
    return f"{lat:.{COORD_PRECISION}f}, {lon:.{COORD_PRECISION}f}"


def ensure_utc(ts: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def format_time_ago(ts: datetime, now: Optional[datetime] = None) -> str:
    """
    Relative time like '2 minutes ago' for incident lists.
    """
    now = now or datetime.now(timezone.utc)
    seconds = int((ensure_utc(now) - ensure_utc(ts)).total_seconds())

    if seconds < 0:
        return "just now"
    if seconds < 45:
        return "less than a minute ago"

    minutes = round(seconds / 60)
    if minutes < 45:
        return "1 minute ago" if minutes == 1 else f"{minutes} minutes ago"

    hours = round(seconds / 3600)
    if hours < 24:
        return "about 1 hour ago" if hours == 1 else f"about {hours} hours ago"

    days = round(seconds / 86400)
    return "1 day ago" if days == 1 else f"{days} days ago"


def haversine_m(lat1, lon1, lat2, lon2) -> float:
    """Straight-line distance in meters."""
    R = 6371000.0
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = phi2 - phi1
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi/2)**2 + math.cos(phi1)*math.cos(phi2)*math.sin(dlambda/2)**2
    return 2 * R * math.asin(math.sqrt(a))


def maps_search_url(lat: float, lon: float) -> str:
    """Google Maps search link centred on a point; doubles as a directions link."""
    return f"https://www.google.com/maps/search/?api=1&query={lat},{lon}"
