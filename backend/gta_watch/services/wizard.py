# gta_watch/services/wizard.py
"""
Four-step report wizard: category -> description -> location -> submission.

Between steps the whole draft travels in the query string, so every field is
plain text. Each step re-validates the draft on entry and bounces back to
category selection when the category (or, for submission, the location) is
missing.
"""

import enum
import logging
import math
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Tuple
from urllib.parse import urlencode

from pydantic import ValidationError

from ..models.incidents import IncidentCategory, parse_category
from ..schemas import DESCRIPTION_MAX_LENGTH, IncidentCreate, IncidentOut, clean_description
from ..utils import TORONTO_CENTER, format_coordinates
from .incident_store import IncidentStore, StoreError
from .map_view import PickerMap

log = logging.getLogger(__name__)


class WizardStep(str, enum.Enum):
    CATEGORY_SELECTION = "category"
    DESCRIPTION_ENTRY = "description"
    LOCATION_CONFIRMATION = "location"
    SUBMISSION = "confirmation"


STEP_PATHS = {
    WizardStep.CATEGORY_SELECTION: "/report",
    WizardStep.DESCRIPTION_ENTRY: "/report/description",
    WizardStep.LOCATION_CONFIRMATION: "/report/location",
    WizardStep.SUBMISSION: "/report/confirmation",
}

STEP_NUMBERS = {step: i + 1 for i, step in enumerate(WizardStep)}


class WizardRedirect(Exception):
    """Raised when a step is entered without the fields it needs."""

    def __init__(self, reason: str, step: WizardStep = WizardStep.CATEGORY_SELECTION):
        super().__init__(reason)
        self.step = step
        self.reason = reason

    @property
    def location(self) -> str:
        return STEP_PATHS[self.step]


def _parse_coord(value: Optional[str]) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


@dataclass(frozen=True)
class ReportDraft:
    category: Optional[IncidentCategory] = None
    description: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_label: Optional[str] = None

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "ReportDraft":
        """
        Rebuild a draft from query parameters.

        Unknown categories and unparseable coordinates come back as None so
        the step guard can redirect. A carried description is trimmed and
        cut to the maximum length.
        """
        description = clean_description(params.get("description"))
        if description is not None:
            description = clean_description(description[:DESCRIPTION_MAX_LENGTH])

        return cls(
            category=parse_category(params.get("category")),
            description=description,
            latitude=_parse_coord(params.get("latitude")),
            longitude=_parse_coord(params.get("longitude")),
            location_label=params.get("location_label") or None,
        )

    def to_query(self) -> dict:
        params = {}
        if self.category is not None:
            params["category"] = self.category.value
        if self.description:
            params["description"] = self.description
        # repr() of a float is the shortest string that parses back exactly
        if self.latitude is not None:
            params["latitude"] = repr(self.latitude)
        if self.longitude is not None:
            params["longitude"] = repr(self.longitude)
        if self.location_label:
            params["location_label"] = self.location_label
        return params

    def url_for(self, step: WizardStep) -> str:
        query = urlencode(self.to_query())
        path = STEP_PATHS[step]
        return f"{path}?{query}" if query else path

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


def enter(step: WizardStep, draft: ReportDraft) -> ReportDraft:
    """Guard run on entry to every step."""
    if step == WizardStep.CATEGORY_SELECTION:
        return draft
    if draft.category is None:
        raise WizardRedirect(f"category is required for the {step.value} step")
    if step == WizardStep.SUBMISSION and not draft.has_location:
        raise WizardRedirect("a location is required before submitting")
    return draft


def select_category(value) -> ReportDraft:
    category = parse_category(value)
    if category is None:
        raise WizardRedirect(f"unknown category {value!r}")
    return ReportDraft(category=category)


def describe(draft: ReportDraft, text: Optional[str]) -> ReportDraft:
    """
    Attach a description. Blank text is the same as skipping the step.
    """
    enter(WizardStep.DESCRIPTION_ENTRY, draft)
    description = clean_description(text)
    if description is not None and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValueError(
            f"description must be at most {DESCRIPTION_MAX_LENGTH} characters"
        )
    return replace(draft, description=description)


def skip_description(draft: ReportDraft) -> ReportDraft:
    enter(WizardStep.DESCRIPTION_ENTRY, draft)
    return replace(draft, description=None)


class LocationStep:
    """
    Pin placement with reverse-geocoded address.

    Lookups are fire-and-forget relative to pin movement, so their results can
    arrive out of order. Each lookup carries a sequence number and a result
    older than the one on display is dropped.
    """

    PENDING_ADDRESS = "Fetching address..."

    def __init__(self, draft: ReportDraft, device_position: Optional[Tuple[float, float]] = None):
        self.draft = enter(WizardStep.LOCATION_CONFIRMATION, draft)
        self.picker = PickerMap(device_position or TORONTO_CENTER)
        self.address = self.PENDING_ADDRESS
        self._issued = 0
        self._shown = 0

    @property
    def position(self) -> Tuple[float, float]:
        return self.picker.position

    def begin_lookup(self) -> int:
        self._issued += 1
        return self._issued

    def move_pin(self, lat: float, lon: float, tapped: bool = False) -> int:
        """Drag release or tap. Returns the sequence number for the new lookup."""
        if tapped:
            self.picker.tap(lat, lon)
        else:
            self.picker.drag_end(lat, lon)
        return self.begin_lookup()

    def apply_address(self, seq: int, label: str) -> bool:
        if seq < self._shown:
            log.debug("Dropping stale address lookup %s (showing %s)", seq, self._shown)
            return False
        self._shown = seq
        self.address = label
        return True

    async def refresh_address(self, geocoder) -> int:
        seq = self.begin_lookup()
        lat, lon = self.position
        label = await geocoder.reverse_geocode(lat, lon)
        self.apply_address(seq, label)
        return seq

    def confirm(self) -> ReportDraft:
        lat, lon = self.position
        label = self.address
        if not label or label == self.PENDING_ADDRESS:
            label = format_coordinates(lat, lon)
        return replace(self.draft, latitude=lat, longitude=lon, location_label=label)


class Submission:
    """
    Final step: one insert per submit() call.

    A failed attempt leaves the submission in the error state; calling
    submit() again is the manual retry.
    """

    def __init__(self, draft: ReportDraft, store: IncidentStore):
        self.draft = enter(WizardStep.SUBMISSION, draft)
        try:
            self.payload = self._to_create(self.draft)
        except ValidationError as e:
            raise WizardRedirect(f"invalid report: {e.error_count()} field error(s)") from e
        self._store = store
        self.incident: Optional[IncidentOut] = None
        self.error = False

    @property
    def submitted(self) -> bool:
        return self.incident is not None

    @staticmethod
    def _to_create(d: ReportDraft) -> IncidentCreate:
        return IncidentCreate(
            category=d.category,
            description=d.description,
            latitude=d.latitude,
            longitude=d.longitude,
            location_label=d.location_label or format_coordinates(d.latitude, d.longitude),
        )

    def submit(self) -> Optional[IncidentOut]:
        if self.submitted:
            return self.incident

        self.error = False
        try:
            self.incident = self._store.insert(self.payload)
        except StoreError as e:
            log.error("Error submitting incident: %s", e)
            self.error = True
            return None
        return self.incident
