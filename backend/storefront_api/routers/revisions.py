"""
Revisions router.
Per-entity change counters. Clients poll these (or subscribe to the Redis
channels) and refetch only what moved.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.utils.schemas import RevisionOutput
from storefront_api.services.domain import RevisionService


router = APIRouter(prefix="/api/revisions", tags=["revisions"])


@router.get("", response_model=list[RevisionOutput])
def list_revisions(
    entity_type: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[RevisionOutput]:
    rows = RevisionService(db).list_revisions(entity_type)
    return [RevisionOutput.model_validate(row) for row in rows]


@router.get("/{entity_type}/{entity_key}", response_model=RevisionOutput)
def get_revision(
    entity_type: str,
    entity_key: str,
    db: Session = Depends(get_db),
) -> RevisionOutput:
    """Current revision of one entity, 0 if it never changed."""
    revision = RevisionService(db).get(entity_type, entity_key)
    return RevisionOutput(entity_type=entity_type, entity_key=entity_key, revision=revision)
