# gta_watch/routers/dashboard.py

from fastapi import APIRouter, Depends, Query

from ..deps import get_store
from ..models.incidents import CATEGORY_LABELS
from ..services.incident_store import IncidentStore
from ..services.map_view import CATEGORY_COLORS, DisplayMap
from ..utils import format_time_ago

router = APIRouter()

RECENT_LIMIT = 6


@router.get("/categories")
def list_categories():
    return {
        "items": [
            {"value": cat.value, "label": label, "color": CATEGORY_COLORS[cat]}
            for cat, label in CATEGORY_LABELS.items()
        ]
    }


@router.get("/dashboard")
def dashboard(
    width: int = Query(1024, ge=100, le=8192),
    height: int = Query(768, ge=100, le=8192),
    store: IncidentStore = Depends(get_store),
):
    """
    Live dashboard snapshot: alert count, the latest few incidents with
    relative times, and the map payload.
    """
    view = DisplayMap(store)
    view.load()

    recent = []
    for inc in view.recent(RECENT_LIMIT):
        item = inc.model_dump(mode="json")
        item["time_ago"] = format_time_ago(inc.created_at)
        item["summary"] = inc.description or inc.location_label
        recent.append(item)

    return {
        "active_alerts": len(view.incidents),
        "recent": recent,
        "map": view.render((width, height)),
    }
