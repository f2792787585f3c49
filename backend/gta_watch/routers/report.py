# gta_watch/routers/report.py
#
# The report wizard over HTTP. Each step reads the draft from the query
# string, runs the step guard, and answers with the URL of the next step.

from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..deps import get_geocoder, get_store
from ..models.incidents import CATEGORY_LABELS
from ..schemas import DESCRIPTION_MAX_LENGTH
from ..services.geocoding import GeocodingClient
from ..services.incident_store import IncidentStore
from ..services.map_view import CATEGORY_COLORS
from ..services.wizard import (
    STEP_NUMBERS,
    LocationStep,
    ReportDraft,
    Submission,
    WizardStep,
    describe,
    enter,
    select_category,
    skip_description,
)

router = APIRouter()

TOTAL_STEPS = len(WizardStep)


class CategoryChoice(BaseModel):
    category: Optional[str] = None


class DescriptionInput(BaseModel):
    description: Optional[str] = None
    skip: bool = False


class PinMove(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    event: Literal["drag", "tap"] = "drag"
    # Client-side lookup counter, echoed so the browser can drop stale answers
    seq: int = 0


def _draft(request: Request) -> ReportDraft:
    return ReportDraft.from_query(request.query_params)


def _progress(step: WizardStep) -> dict:
    n = STEP_NUMBERS[step]
    return {"step": n, "total_steps": TOTAL_STEPS, "percent": n * 100 // TOTAL_STEPS}


@router.get("")
def category_step():
    return {
        **_progress(WizardStep.CATEGORY_SELECTION),
        "categories": [
            {"value": cat.value, "label": label, "color": CATEGORY_COLORS[cat]}
            for cat, label in CATEGORY_LABELS.items()
        ],
    }


@router.post("")
def choose_category(choice: CategoryChoice):
    draft = select_category(choice.category)
    return {"draft": draft.to_query(), "next": draft.url_for(WizardStep.DESCRIPTION_ENTRY)}


@router.get("/description")
def description_step(request: Request):
    draft = enter(WizardStep.DESCRIPTION_ENTRY, _draft(request))
    return {**_progress(WizardStep.DESCRIPTION_ENTRY), "draft": draft.to_query(), "max_length": DESCRIPTION_MAX_LENGTH}


@router.post("/description")
def submit_description(body: DescriptionInput, request: Request):
    draft = _draft(request)
    if body.skip:
        draft = skip_description(draft)
    else:
        try:
            draft = describe(draft, body.description)
        except ValueError as e:
            raise HTTPException(status_code=422, detail=str(e))
    return {"draft": draft.to_query(), "next": draft.url_for(WizardStep.LOCATION_CONFIRMATION)}


def _location_payload(step: LocationStep, seq: int) -> dict:
    confirmed = step.confirm()
    lat, lon = step.position
    return {
        **_progress(WizardStep.LOCATION_CONFIRMATION),
        "latitude": lat,
        "longitude": lon,
        "location_label": step.address,
        "seq": seq,
        "marker": step.picker.marker(),
        "draft": confirmed.to_query(),
        "next": confirmed.url_for(WizardStep.SUBMISSION),
    }


@router.get("/location")
async def location_step(
    request: Request,
    device_lat: Optional[float] = Query(None, ge=-90, le=90),
    device_lon: Optional[float] = Query(None, ge=-180, le=180),
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    """
    Starting pin: the device position when the browser shared one, otherwise
    Toronto's center.
    """
    device = None
    if device_lat is not None and device_lon is not None:
        device = (device_lat, device_lon)

    step = LocationStep(_draft(request), device)
    seq = await step.refresh_address(geocoder)
    return _location_payload(step, seq)


@router.post("/location/pin")
async def move_pin(
    move: PinMove,
    request: Request,
    geocoder: GeocodingClient = Depends(get_geocoder),
):
    step = LocationStep(_draft(request))
    seq = step.move_pin(move.latitude, move.longitude, tapped=move.event == "tap")
    lat, lon = step.position
    step.apply_address(seq, await geocoder.reverse_geocode(lat, lon))
    return _location_payload(step, move.seq)


@router.post("/confirmation")
def confirm_report(request: Request, store: IncidentStore = Depends(get_store)):
    """
    Final step: one insert attempt. On failure the body carries a retry URL;
    posting to it again is the only recovery.
    """
    submission = Submission(_draft(request), store)
    incident = submission.submit()
    if incident is None:
        return JSONResponse(
            status_code=503,
            content={
                **_progress(WizardStep.SUBMISSION),
                "status": "error",
                "message": "Unable to submit your report. Please try again.",
                "retry": submission.draft.url_for(WizardStep.SUBMISSION),
            },
        )

    return JSONResponse(
        status_code=201,
        content={
            **_progress(WizardStep.SUBMISSION),
            "status": "submitted",
            "incident": incident.model_dump(mode="json"),
        },
    )
