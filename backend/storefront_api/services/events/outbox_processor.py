"""
Outbox processor for publishing events from the outbox table.

Reads PENDING events and publishes them to Redis:
- Batch processing
- Retry on failures, FAILED after outbox_max_retries
- PROCESSING status prevents double publishing across workers

Runs as a background task started from the FastAPI lifespan, or once on
demand via process_pending_events_once().
"""

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timezone

import redis.asyncio as redis
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront_api.models import OutboxEvent, OutboxStatus
from shared.config.constants import RevisionEntity
from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.correlation import correlation_scope, get_request_id
from shared.infrastructure.db import SessionLocal
from shared.infrastructure.events import (
    Event,
    channel_customer,
    channel_for_entity,
    get_redis_pool,
    publish_event,
)

logger = get_logger(__name__)

# Entities whose events are also sent to the owning customer's channel
_CUSTOMER_SCOPED = {RevisionEntity.ORDER, RevisionEntity.CUSTOMER_CLAIMS}


class OutboxProcessor:
    """
    Processes outbox events and publishes them to Redis.

    Status transitions: PENDING -> PROCESSING -> PUBLISHED / FAILED.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        redis_factory: Callable = get_redis_pool,
        batch_size: int | None = None,
        max_retries: int | None = None,
        poll_interval: float | None = None,
    ):
        self._session_factory = session_factory
        self._redis_factory = redis_factory
        self._batch_size = batch_size or settings.outbox_batch_size
        self._max_retries = max_retries or settings.outbox_max_retries
        self._poll_interval = poll_interval or settings.outbox_poll_interval
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the processor loop."""
        if self._running:
            logger.warning("Outbox processor already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Outbox processor started")

    async def stop(self) -> None:
        """Stop the processor gracefully."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Outbox processor stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                processed = await self.process_batch()
                if processed == 0:
                    await asyncio.sleep(self._poll_interval)
            except (SQLAlchemyError, redis.RedisError, OSError) as e:
                logger.error("Outbox processor error", error=str(e))
                await asyncio.sleep(self._poll_interval)

    async def process_batch(self) -> int:
        """
        Process one batch of PENDING events.

        Returns:
            Number of events published
        """
        db = self._session_factory()
        try:
            events = db.execute(
                select(OutboxEvent)
                .where(OutboxEvent.status == OutboxStatus.PENDING)
                .order_by(OutboxEvent.id.asc())
                .limit(self._batch_size)
                .with_for_update(skip_locked=True)
            ).scalars().all()

            if not events:
                return 0

            event_ids = [e.id for e in events]
            db.execute(
                update(OutboxEvent)
                .where(OutboxEvent.id.in_(event_ids))
                .values(status=OutboxStatus.PROCESSING)
            )
            db.commit()

            published = 0
            for event in events:
                if await self._publish_event(event):
                    event.status = OutboxStatus.PUBLISHED
                    event.processed_at = datetime.now(timezone.utc)
                    published += 1
                else:
                    event.retry_count += 1
                    if event.retry_count >= self._max_retries:
                        event.status = OutboxStatus.FAILED
                        logger.error(
                            "Outbox event failed after max retries",
                            event_id=event.id,
                            event_type=event.event_type,
                        )
                    else:
                        event.status = OutboxStatus.PENDING

            db.commit()
            logger.info("Outbox batch processed", total=len(events), published=published)
            return published

        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Outbox batch processing failed", error=str(e))
            return 0
        finally:
            db.close()

    async def _publish_event(self, event: OutboxEvent) -> bool:
        """Publish a single event. Returns False and records the error on failure."""
        with correlation_scope(event.request_id, prefix="outbox"):
            return await self._publish_in_scope(event)

    async def _publish_in_scope(self, event: OutboxEvent) -> bool:
        try:
            payload = json.loads(event.payload)
            message = Event(
                type=event.event_type,
                entity_type=event.aggregate_type,
                entity_key=event.aggregate_key,
                revision=event.revision,
                entity=payload,
                actor={"user_id": payload.get("actor_id")} if payload.get("actor_id") else {},
                request_id=get_request_id(),
            )
            redis_client = await self._redis_factory()

            await publish_event(redis_client, channel_for_entity(event.aggregate_type), message)
            customer_id = payload.get("customer_id")
            if event.aggregate_type in _CUSTOMER_SCOPED and customer_id:
                await publish_event(redis_client, channel_customer(customer_id), message)
            return True

        except (redis.RedisError, OSError, ValueError) as e:
            event.last_error = str(e)
            logger.error(
                "Failed to publish outbox event",
                event_id=event.id,
                event_type=event.event_type,
                error=str(e),
            )
            return False


# Singleton instance
_processor: OutboxProcessor | None = None


def get_outbox_processor() -> OutboxProcessor:
    """Get the singleton outbox processor instance."""
    global _processor
    if _processor is None:
        _processor = OutboxProcessor()
    return _processor


async def start_outbox_processor() -> None:
    """Start the outbox processor (call in FastAPI lifespan startup)."""
    await get_outbox_processor().start()


async def stop_outbox_processor() -> None:
    """Stop the outbox processor (call in FastAPI lifespan shutdown)."""
    await get_outbox_processor().stop()


async def process_pending_events_once() -> int:
    """Process pending outbox events once (manual triggering)."""
    return await get_outbox_processor().process_batch()
