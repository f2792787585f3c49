from .incidents import CATEGORY_LABELS, Incident, IncidentCategory, parse_category

__all__ = [
    "CATEGORY_LABELS",
    "Incident",
    "IncidentCategory",
    "parse_category",
]
