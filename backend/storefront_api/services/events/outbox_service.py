"""
Outbox service for transactional event publishing.

Events are written to the outbox table in the same transaction as the
business change. The processor then publishes them asynchronously.

Usage in services:
    1. Perform the business change (adjust stock, place order, ...)
    2. Bump the entity revision, which calls write_outbox_event()
       with the same db session
    3. Commit once: the change, the revision and the event land together
"""

import json
from typing import Any

from sqlalchemy.orm import Session

from storefront_api.models import OutboxEvent, OutboxStatus
from shared.config.logging import get_logger
from shared.infrastructure.correlation import get_request_id
from shared.infrastructure.events import ALL_EVENT_TYPES

logger = get_logger(__name__)


def write_outbox_event(
    db: Session,
    event_type: str,
    aggregate_type: str,
    aggregate_key: str,
    revision: int,
    payload: dict[str, Any],
) -> OutboxEvent:
    """
    Write an event to the outbox table.

    MUST be called within the same transaction as the business operation.
    Does not flush or commit; the caller owns the transaction. The current
    correlation ID, if any, is recorded with the event.

    Args:
        db: SQLAlchemy session (same session as business operation)
        event_type: Event type constant (e.g., STOCK_ADJUSTED, ORDER_PLACED)
        aggregate_type: Revision entity type (e.g., "stock_item", "order")
        aggregate_key: Entity key within that type (stock item name, order id)
        revision: Revision number the change produced
        payload: Event payload as dict (will be JSON serialized)
    """
    if event_type not in ALL_EVENT_TYPES:
        raise ValueError(f"Unknown event type '{event_type}'")

    outbox_event = OutboxEvent(
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_key=aggregate_key,
        revision=revision,
        payload=json.dumps(payload, default=str),
        status=OutboxStatus.PENDING,
        retry_count=0,
        request_id=get_request_id() or None,
    )
    db.add(outbox_event)
    logger.debug(
        "Outbox event queued",
        event_type=event_type,
        aggregate_type=aggregate_type,
        aggregate_key=aggregate_key,
        revision=revision,
    )
    return outbox_event
