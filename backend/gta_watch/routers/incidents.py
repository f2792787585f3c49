# gta_watch/routers/incidents.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from ..deps import get_store
from ..schemas import IncidentOut
from ..services.incident_store import IncidentStore, StoreError
from ..services.map_view import DisplayMap
from ..utils import format_time_ago, maps_search_url

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
def list_incidents(store: IncidentStore = Depends(get_store)):
    """
    Every incident, newest first. A store failure shows up as an empty list.
    """
    try:
        incidents = store.list_all()
    except StoreError as e:
        log.error("Error fetching incidents: %s", e)
        incidents = []

    return {"items": [i.model_dump(mode="json") for i in incidents]}


@router.get("/map")
def incident_map(
    width: int = Query(1024, ge=100, le=8192),
    height: int = Query(768, ge=100, le=8192),
    store: IncidentStore = Depends(get_store),
):
    """
    Markers (GeoJSON) plus the viewport that fits them.
    """
    view = DisplayMap(store)
    view.load()
    return view.render((width, height))


@router.get("/stream")
async def stream_incidents(request: Request, store: IncidentStore = Depends(get_store)):
    """Server-Sent Events: one `data:` frame per newly inserted incident."""

    async def event_generator():
        inserts = store.stream_inserts()
        try:
            async for incident in inserts:
                if await request.is_disconnected():
                    break
                yield f"event: insert\ndata: {incident.model_dump_json()}\n\n"
        finally:
            await inserts.aclose()

    return StreamingResponse(event_generator(), media_type="text/event-stream")


def share_text(incident: IncidentOut) -> str:
    return (
        f"GTA Watch incident: {incident.category.value}\n"
        f"{incident.location_label}\n"
        f"Reported {format_time_ago(incident.created_at)}\n"
        f"Map: {maps_search_url(incident.latitude, incident.longitude)}"
    )


@router.get("/{incident_id}")
def get_incident(incident_id: str, store: IncidentStore = Depends(get_store)):
    """
    One incident for the detail panel, with its relative time, a maps link
    and ready-to-share text.
    """
    try:
        incident = store.get(incident_id)
    except StoreError:
        raise HTTPException(status_code=503, detail="Incident store unavailable")
    if incident is None:
        raise HTTPException(status_code=404, detail="Incident not found")

    item = incident.model_dump(mode="json")
    item["time_ago"] = format_time_ago(incident.created_at)
    item["maps_url"] = maps_search_url(incident.latitude, incident.longitude)
    item["share_text"] = share_text(incident)
    return item
