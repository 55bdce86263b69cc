"""
Per-entity revision counters.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class EntityRevision(Base):
    """
    Monotonically increasing revision number for one entity.

    Clients poll these (or subscribe to the matching outbox events) to know
    when a stock item, menu item, order or claim list changed.
    """

    __tablename__ = "entity_revision"

    entity_type: Mapped[str] = mapped_column(String(40), primary_key=True)
    entity_key: Mapped[str] = mapped_column(String(120), primary_key=True)
    revision: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
