"""
Revision Domain Service.

Keeps one monotonically increasing counter per entity and queues the
matching outbox event in the same transaction. Replaces a shared
"last updated" timestamp: consumers compare revisions per entity.
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront_api.models import EntityRevision
from storefront_api.services.events.outbox_service import write_outbox_event
from shared.config.logging import get_logger

logger = get_logger(__name__)


class RevisionService:
    """Per-entity revision counters."""

    def __init__(self, db: Session):
        self._db = db

    def bump(
        self,
        entity_type: str,
        entity_key: str | int,
        event_type: str,
        payload: dict[str, Any] | None = None,
    ) -> int:
        """
        Increment the revision for an entity and queue an outbox event.

        Does not commit. Callers bump while holding the lock that guards the
        entity, so the read-increment cannot interleave.
        """
        key = str(entity_key)
        self._db.flush()
        row = self._db.get(
            EntityRevision, (entity_type, key), with_for_update=True, populate_existing=True
        )
        if row is None:
            row = EntityRevision(entity_type=entity_type, entity_key=key, revision=0)
            self._db.add(row)
        row.revision += 1
        # Flush so a second bump in the same transaction finds the row
        self._db.flush()

        write_outbox_event(
            self._db,
            event_type=event_type,
            aggregate_type=entity_type,
            aggregate_key=key,
            revision=row.revision,
            payload=payload or {},
        )
        return row.revision

    def get(self, entity_type: str, entity_key: str | int) -> int:
        """Current revision, 0 if the entity never changed."""
        row = self._db.get(EntityRevision, (entity_type, str(entity_key)))
        return row.revision if row else 0

    def list_revisions(self, entity_type: str | None = None) -> list[EntityRevision]:
        query = select(EntityRevision).order_by(
            EntityRevision.entity_type, EntityRevision.entity_key
        )
        if entity_type:
            query = query.where(EntityRevision.entity_type == entity_type)
        return list(self._db.execute(query).scalars().all())
