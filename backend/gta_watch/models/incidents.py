import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Text, Uuid, func

from ..db import Base


class IncidentCategory(str, enum.Enum):
    SHOOTING = "shooting"
    MEDICAL = "medical"
    FIRE = "fire"
    ACCIDENT = "accident"
    ASSAULT = "assault"
    SUSPICIOUS = "suspicious"
    THEFT = "theft"
    OTHER = "other"


# Labels shown on the category picker, in display order
CATEGORY_LABELS = {
    IncidentCategory.SHOOTING: "Shooting",
    IncidentCategory.MEDICAL: "Medical",
    IncidentCategory.FIRE: "Fire / Smoke",
    IncidentCategory.ACCIDENT: "Collision",
    IncidentCategory.ASSAULT: "Assault",
    IncidentCategory.SUSPICIOUS: "Suspicious",
    IncidentCategory.THEFT: "Theft",
    IncidentCategory.OTHER: "Other",
}


def parse_category(value) -> IncidentCategory | None:
    """Return the matching category, or None for anything outside the set."""
    if isinstance(value, IncidentCategory):
        return value
    if not isinstance(value, str):
        return None
    try:
        return IncidentCategory(value.strip().lower())
    except ValueError:
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_category_values = ", ".join(f"'{c.value}'" for c in IncidentCategory)


class Incident(Base):
    __tablename__ = "incidents"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    category = Column(Text, nullable=False, index=True)
    description = Column(Text)

    # Rounded to 5 decimals before they get here
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    location_label = Column(Text, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        index=True,
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            f"category IN ({_category_values})",
            name="ck_incidents_category",
        ),
    )
