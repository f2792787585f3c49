import asyncio
import json
import uuid
from urllib.parse import parse_qs, urlsplit

import pytest

from gta_watch.deps import get_store
from gta_watch.main import app
from gta_watch.models.incidents import IncidentCategory
from gta_watch.routers.incidents import stream_incidents
from gta_watch.schemas import EmergencyService
from gta_watch.services.guidance import FALLBACK_GUIDANCE

from helpers import FAKE_ADDRESS, make_incident


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_categories(client):
    items = client.get("/categories").json()["items"]
    assert [i["value"] for i in items] == [c.value for c in IncidentCategory]
    assert items[2] == {"value": "fire", "label": "Fire / Smoke", "color": "#EF4444"}


def test_full_report_flow_with_defaults(client, store):
    resp = client.post("/report", json={"category": "fire"})
    assert resp.status_code == 200
    next_url = resp.json()["next"]
    assert next_url == "/report/description?category=fire"

    resp = client.post(next_url, json={"skip": True})
    next_url = resp.json()["next"]
    assert next_url == "/report/location?category=fire"

    resp = client.get(next_url)
    body = resp.json()
    assert body["step"] == 3
    assert (body["latitude"], body["longitude"]) == (43.6532, -79.3832)
    assert body["location_label"] == FAKE_ADDRESS

    resp = client.post(body["next"])
    assert resp.status_code == 201
    incident = resp.json()["incident"]
    assert incident["category"] == "fire"
    assert incident["description"] is None
    assert incident["latitude"] == 43.6532
    assert incident["longitude"] == -79.3832
    assert incident["location_label"] == FAKE_ADDRESS

    assert len(store.list_all()) == 1


def test_description_is_carried_trimmed(client):
    resp = client.post("/report/description?category=medical", json={"description": "  fainted on the platform  "})
    query = parse_qs(urlsplit(resp.json()["next"]).query)
    assert query == {"category": ["medical"], "description": ["fainted on the platform"]}


def test_description_too_long_is_rejected(client):
    resp = client.post("/report/description?category=medical", json={"description": "x" * 201})
    assert resp.status_code == 422


def test_location_uses_device_position_when_given(client, geocoder):
    resp = client.get(
        "/report/location",
        params={"category": "theft", "device_lat": 43.66123456, "device_lon": -79.39543219},
    )
    body = resp.json()
    assert (body["latitude"], body["longitude"]) == (43.66123, -79.39543)
    assert geocoder.reverse_calls == [(43.66123, -79.39543)]


def test_pin_move_rounds_and_echoes_sequence(client, geocoder):
    resp = client.post(
        "/report/location/pin?category=fire",
        json={"latitude": 43.70000049, "longitude": -79.41111111, "event": "tap", "seq": 7},
    )
    body = resp.json()
    assert (body["latitude"], body["longitude"]) == (43.7, -79.41111)
    assert body["seq"] == 7
    assert body["marker"]["geometry"]["coordinates"] == [-79.41111, 43.7]
    assert parse_qs(urlsplit(body["next"]).query)["location_label"] == [FAKE_ADDRESS]


def test_steps_without_category_redirect_to_start(client):
    for method, url in [
        ("get", "/report/description"),
        ("get", "/report/location?latitude=43.7&longitude=-79.4"),
        ("post", "/report/confirmation?latitude=43.7&longitude=-79.4&location_label=x"),
        ("get", "/report/location?category=earthquake"),
    ]:
        resp = getattr(client, method)(url, follow_redirects=False)
        assert resp.status_code == 303, url
        assert resp.headers["location"] == "/report"


def test_confirmation_without_coordinates_redirects(client, store):
    resp = client.post("/report/confirmation?category=fire", follow_redirects=False)
    assert resp.status_code == 303
    assert store.list_all() == []


def test_confirmation_failure_offers_retry(client, broken_store):
    app.dependency_overrides[get_store] = lambda: broken_store
    resp = client.post("/report/confirmation?category=fire&latitude=43.7&longitude=-79.4&location_label=x")
    assert resp.status_code == 503
    body = resp.json()
    assert body["status"] == "error"
    assert body["retry"].startswith("/report/confirmation?category=fire")


def test_incident_list_newest_first(client, store):
    a = store.insert(make_incident(IncidentCategory.FIRE))
    b = store.insert(make_incident(IncidentCategory.MEDICAL))
    items = client.get("/incidents").json()["items"]
    assert [i["id"] for i in items] == [b.id, a.id]


def test_incident_list_is_empty_on_store_failure(client, broken_store):
    app.dependency_overrides[get_store] = lambda: broken_store
    resp = client.get("/incidents")
    assert resp.status_code == 200
    assert resp.json() == {"items": []}


def test_incident_map(client, store):
    store.insert(make_incident(IncidentCategory.FIRE, lat=43.70, lon=-79.40))
    store.insert(make_incident(IncidentCategory.THEFT, lat=43.60, lon=-79.50))
    body = client.get("/incidents/map", params={"width": 800, "height": 600}).json()
    assert len(body["markers"]["features"]) == 2
    assert body["viewport"]["max_zoom"] == 13
    assert body["viewport"]["padding"] == [50, 50]
    assert body["viewport"]["bounds"] == [[43.6, -79.5], [43.7, -79.4]]


def test_dashboard(client, store):
    for _ in range(8):
        store.insert(make_incident(IncidentCategory.ACCIDENT, description="fender bender"))
    body = client.get("/dashboard").json()
    assert body["active_alerts"] == 8
    assert len(body["recent"]) == 6
    assert body["recent"][0]["time_ago"] == "less than a minute ago"
    assert body["recent"][0]["summary"] == "fender bender"


def test_guidance_requires_category(client):
    resp = client.post("/api/guidance", json={"latitude": 43.7, "longitude": -79.4})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Category is required"}


def test_guidance_rejects_unknown_category(client):
    resp = client.post("/api/guidance", json={"category": "earthquake", "latitude": 43.7, "longitude": -79.4})
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_guidance_without_key_uses_static_text(client):
    resp = client.post("/api/guidance", json={"category": "medical", "latitude": 43.7, "longitude": -79.4})
    assert resp.status_code == 200
    assert resp.json() == {"guidance": FALLBACK_GUIDANCE[IncidentCategory.MEDICAL]}


def test_reverse_geocode_endpoint_rounds(client, geocoder):
    body = client.get("/geocode/reverse", params={"lat": 43.65321234, "lon": -79.38321234}).json()
    assert body == {"latitude": 43.65321, "longitude": -79.38321, "address": FAKE_ADDRESS}


def test_nearby_services_endpoint(client, geocoder):
    geocoder.services = [
        EmergencyService(name="St. Mike's", type="hospital", address="30 Bond St", distance=120.5, latitude=43.6533, longitude=-79.3767),
    ]
    body = client.get("/services/nearby", params={"lat": 43.6532, "lon": -79.3832}).json()
    assert body["items"][0]["name"] == "St. Mike's"
    assert body["items"][0]["type"] == "hospital"


def test_nearby_services_endpoint_rounds_coordinates(client, geocoder):
    client.get("/services/nearby", params={"lat": 43.65321234, "lon": -79.38321234, "radius": 2000})
    assert geocoder.nearby_calls == [(43.65321, -79.38321, 2000)]


def test_incident_detail(client, store):
    inc = store.insert(make_incident(IncidentCategory.FIRE, lat=43.7, lon=-79.4, label="Queen St W & Bay St"))

    body = client.get(f"/incidents/{inc.id}").json()

    maps_url = "https://www.google.com/maps/search/?api=1&query=43.7,-79.4"
    assert body["id"] == inc.id
    assert body["time_ago"] == "less than a minute ago"
    assert body["maps_url"] == maps_url
    assert body["share_text"] == (
        "GTA Watch incident: fire\n"
        "Queen St W & Bay St\n"
        "Reported less than a minute ago\n"
        f"Map: {maps_url}"
    )


@pytest.mark.parametrize("incident_id", [str(uuid.uuid4()), "not-a-uuid"])
def test_incident_detail_not_found(client, incident_id):
    assert client.get(f"/incidents/{incident_id}").status_code == 404


def test_incident_detail_store_failure(client, broken_store):
    app.dependency_overrides[get_store] = lambda: broken_store
    assert client.get(f"/incidents/{uuid.uuid4()}").status_code == 503


class _Request:
    def __init__(self, disconnected=False):
        self.disconnected = disconnected

    async def is_disconnected(self):
        return self.disconnected


@pytest.mark.anyio
async def test_stream_route_sends_one_frame_per_insert(store):
    resp = await stream_incidents(_Request(), store)
    assert resp.media_type == "text/event-stream"

    frames = resp.body_iterator
    pending = asyncio.ensure_future(frames.__anext__())
    await asyncio.sleep(0)
    assert store.broadcaster.subscriber_count == 1

    inserted = store.insert(make_incident(IncidentCategory.SHOOTING, lat=43.70011, lon=-79.41234))
    frame = await asyncio.wait_for(pending, timeout=2)

    assert frame.endswith("\n\n")
    event, data = frame.rstrip("\n").split("\n")
    assert event == "event: insert"
    assert data.startswith("data: ")
    payload = json.loads(data[len("data: "):])
    assert payload["id"] == inserted.id
    assert payload["category"] == "shooting"
    assert (payload["latitude"], payload["longitude"]) == (43.70011, -79.41234)

    await frames.aclose()
    assert store.broadcaster.subscriber_count == 0


@pytest.mark.anyio
async def test_stream_route_stops_after_disconnect(store):
    resp = await stream_incidents(_Request(disconnected=True), store)
    pending = asyncio.ensure_future(resp.body_iterator.__anext__())
    await asyncio.sleep(0)

    store.insert(make_incident())

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(pending, timeout=2)
    assert store.broadcaster.subscriber_count == 0
