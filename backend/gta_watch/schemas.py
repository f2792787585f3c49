from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.incidents import IncidentCategory
from .utils import round5

DESCRIPTION_MAX_LENGTH = 200


def clean_description(value: Optional[str]) -> Optional[str]:
    """Trim a description; blank means no description at all."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class IncidentCreate(BaseModel):
    """Row as submitted by the wizard; the store assigns id and created_at."""

    category: IncidentCategory
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    location_label: str

    @field_validator("description", mode="before")
    @classmethod
    def _trim_description(cls, v):
        return clean_description(v)

    @field_validator("latitude", "longitude")
    @classmethod
    def _round(cls, v: float) -> float:
        return round5(v)


class IncidentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category: IncidentCategory
    description: Optional[str] = None
    latitude: float
    longitude: float
    location_label: str
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, v):
        return str(v)


class EmergencyService(BaseModel):
    name: str
    type: Literal["hospital", "police", "fire"]
    address: str
    distance: float  # meters from the query point
    latitude: float
    longitude: float


class GuidanceRequest(BaseModel):
    # Left loose so a missing/unknown category gets our own 400 body
    category: Optional[str] = None
    description: Optional[str] = None
    latitude: float = 0.0
    longitude: float = 0.0


class GuidanceResponse(BaseModel):
    guidance: str

