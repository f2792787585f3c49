# gta_watch/services/incident_store.py

import logging
import uuid
from typing import AsyncIterator, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.incidents import Incident
from ..schemas import IncidentCreate, IncidentOut
from .broadcast import Broadcaster, Subscription

log = logging.getLogger(__name__)


class StoreError(Exception):
    """Any failure talking to the incidents table."""


class IncidentStore:
    """
    Insert/select/subscribe over the `incidents` table.

    The adapter never retries. A retry after an ambiguous failure (commit
    succeeded but the caller saw an error) can write a duplicate row, since
    there is no idempotency key.
    """

    def __init__(self, session_factory: sessionmaker, broadcaster: Optional[Broadcaster] = None):
        self._session_factory = session_factory
        self.broadcaster = broadcaster or Broadcaster()

    def insert(self, data: IncidentCreate) -> IncidentOut:
        db = self._session_factory()
        try:
            row = Incident(
                category=data.category.value,
                description=data.description,
                latitude=data.latitude,
                longitude=data.longitude,
                location_label=data.location_label,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            incident = IncidentOut.model_validate(row)
        except SQLAlchemyError as e:
            db.rollback()
            log.error("Incident insert failed: %s", e)
            raise StoreError("Unable to save incident") from e
        finally:
            db.close()

        log.info("Stored %s incident %s", incident.category.value, incident.id)
        self.broadcaster.publish(incident)
        return incident

    def list_all(self) -> List[IncidentOut]:
        """Every row, newest first. No paging, no time window."""
        db = self._session_factory()
        try:
            rows = (
                db.query(Incident)
                .order_by(Incident.created_at.desc())
                .all()
            )
            return [IncidentOut.model_validate(r) for r in rows]
        except SQLAlchemyError as e:
            log.error("Incident fetch failed: %s", e)
            raise StoreError("Unable to load incidents") from e
        finally:
            db.close()

    def get(self, incident_id: str) -> Optional[IncidentOut]:
        """One row by id, or None when no such incident exists."""
        try:
            key = uuid.UUID(str(incident_id))
        except ValueError:
            return None

        db = self._session_factory()
        try:
            row = db.get(Incident, key)
            return IncidentOut.model_validate(row) if row is not None else None
        except SQLAlchemyError as e:
            log.error("Incident lookup failed: %s", e)
            raise StoreError("Unable to load incident") from e
        finally:
            db.close()

    def subscribe_inserts(self, on_insert: Callable[[IncidentOut], None]) -> Subscription:
        """
        Deliver each row inserted through this store to `on_insert` once.

        Release the returned subscription when the view goes away.
        """
        return self.broadcaster.subscribe(on_insert)

    def stream_inserts(self) -> AsyncIterator[IncidentOut]:
        """Async iterator flavour of subscribe_inserts, for SSE."""
        return self.broadcaster.stream()
