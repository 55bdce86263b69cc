"""
Stock router (staff only).
Listing, manual adjustments and physical counts for the two storage sites.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import require_admin
from shared.utils.schemas import (
    AdjustStockRequest,
    CreateStockItemRequest,
    CurrentUser,
    StockCountRequest,
    StockItemOutput,
    UpdateStockItemRequest,
)
from storefront_api.models import StockItem
from storefront_api.services.domain import StockLedger


router = APIRouter(prefix="/api/admin/stock", tags=["stock"])


def _to_output(item: StockItem) -> StockItemOutput:
    output = StockItemOutput.model_validate(item)
    output.is_low = item.total_quantity < settings.low_stock_threshold
    return output


@router.get("", response_model=list[StockItemOutput])
def list_stock(
    low_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> list[StockItemOutput]:
    """All stock items with totals. low_only limits to items under the threshold."""
    ledger = StockLedger(db)
    items = ledger.low_stock() if low_only else ledger.list_all()
    return [_to_output(item) for item in items]


@router.get("/{name}", response_model=StockItemOutput)
def get_stock_item(
    name: str,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> StockItemOutput:
    return _to_output(StockLedger(db).get(name))


@router.post("", response_model=StockItemOutput, status_code=status.HTTP_201_CREATED)
def create_stock_item(
    body: CreateStockItemRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> StockItemOutput:
    item = StockLedger(db).create_item(
        name=body.name,
        category=body.category,
        reserve_quantity=body.reserve_quantity,
        active_quantity=body.active_quantity,
        supplier=body.supplier,
        notes=body.notes,
        actor_id=user.id,
    )
    return _to_output(item)


@router.post("/{name}/adjust", response_model=StockItemOutput)
def adjust_stock(
    name: str,
    body: AdjustStockRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> StockItemOutput:
    """Apply signed deltas to each site. Results floor at zero."""
    item = StockLedger(db).adjust(name, body.reserve_delta, body.active_delta, actor_id=user.id)
    return _to_output(item)


@router.post("/{name}/count", response_model=StockItemOutput)
def record_stock_count(
    name: str,
    body: StockCountRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> StockItemOutput:
    """Set absolute counts from a stock take, with the counters' sign-off."""
    item = StockLedger(db).set_counts(
        name,
        reserve_quantity=body.reserve_quantity,
        active_quantity=body.active_quantity,
        signed_reserve_by=body.signed_reserve_by,
        signed_active_by=body.signed_active_by,
        actor_id=user.id,
    )
    return _to_output(item)


@router.patch("/{name}", response_model=StockItemOutput)
def update_stock_item(
    name: str,
    body: UpdateStockItemRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> StockItemOutput:
    item = StockLedger(db).update_metadata(
        name,
        category=body.category,
        supplier=body.supplier,
        notes=body.notes,
        actor_id=user.id,
    )
    return _to_output(item)
