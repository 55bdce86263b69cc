"""Transactional outbox: write events with the business change, publish later."""

from .outbox_service import write_outbox_event
from .outbox_processor import (
    OutboxProcessor,
    get_outbox_processor,
    process_pending_events_once,
    start_outbox_processor,
    stop_outbox_processor,
)

__all__ = [
    "write_outbox_event",
    "OutboxProcessor",
    "get_outbox_processor",
    "process_pending_events_once",
    "start_outbox_processor",
    "stop_outbox_processor",
]
