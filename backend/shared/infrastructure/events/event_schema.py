"""
Event Schema.

Defines the unified Event dataclass for all revision events.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """
    Unified event schema.

    entity_type/entity_key name the entity whose revision changed and
    revision carries the new value, so a subscriber that sees revision N
    can ignore anything lower. 'entity' holds event-specific data and
    request_id ties the event to the request that made the change.
    """

    type: str
    entity_type: str
    entity_key: str
    revision: int
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None
    ts: str | None = None
    v: int = 1  # Schema version for future compatibility

    def __post_init__(self) -> None:
        """Reject malformed events before they reach Redis."""
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if not self.entity_type or not isinstance(self.entity_type, str):
            raise ValueError("Event entity_type must be a non-empty string")

        if not isinstance(self.entity_key, str) or not self.entity_key:
            raise ValueError("Event entity_key must be a non-empty string")

        if not isinstance(self.revision, int) or self.revision <= 0:
            raise ValueError("Event revision must be a positive integer")

        if self.entity is not None and not isinstance(self.entity, dict):
            raise ValueError("Event entity must be a dict or None")

        if self.actor is not None and not isinstance(self.actor, dict):
            raise ValueError("Event actor must be a dict or None")

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        data = asdict(self)
        data["entity"] = data["entity"] or {}
        data["actor"] = data["actor"] or {}
        data["ts"] = data["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        """Deserialize event from JSON string. Validation runs in __post_init__."""
        data = json.loads(json_str)
        return cls(**data)
