"""
Menu router.
Public availability snapshot and staff controls for the enable bit and
stock requirements.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import require_admin
from shared.utils.schemas import (
    CurrentUser,
    MenuItemDetailOutput,
    MenuItemOutput,
    RequirementOutput,
    SetEnabledRequest,
    SetRequirementsRequest,
)
from storefront_api.services.catalog import Requirement
from storefront_api.services.domain import AvailabilityService


router = APIRouter(tags=["menu"])


def _detail(service: AvailabilityService, item) -> MenuItemDetailOutput:
    output = MenuItemDetailOutput.model_validate(item, from_attributes=True)
    output.requirements = [
        RequirementOutput(stock_item_name=r.stock_item_name, quantity_per_unit=r.quantity_per_unit)
        for r in service._requirements_of(item)
    ]
    return output


@router.get("/api/menu", response_model=list[MenuItemOutput])
def get_menu(db: Session = Depends(get_db)) -> list[MenuItemOutput]:
    """Menu items customers can see, each with its stored availability flag."""
    items = AvailabilityService(db).menu_availability(include_hidden=False)
    return [MenuItemOutput.model_validate(item) for item in items]


# =============================================================================
# Admin
# =============================================================================


@router.get("/api/admin/menu", response_model=list[MenuItemDetailOutput])
def get_admin_menu(
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> list[MenuItemDetailOutput]:
    """Full menu including hidden items, with effective requirements."""
    service = AvailabilityService(db)
    return [_detail(service, item) for item in service.menu_availability(include_hidden=True)]


@router.patch("/api/admin/menu/{menu_item_id}/enabled", response_model=MenuItemOutput)
def set_menu_item_enabled(
    menu_item_id: int,
    body: SetEnabledRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> MenuItemOutput:
    item = AvailabilityService(db).set_admin_enabled(menu_item_id, body.enabled, actor_id=user.id)
    return MenuItemOutput.model_validate(item)


@router.put("/api/admin/menu/{menu_item_id}/requirements", response_model=MenuItemDetailOutput)
def set_menu_item_requirements(
    menu_item_id: int,
    body: SetRequirementsRequest,
    db: Session = Depends(get_db),
    user: CurrentUser = Depends(require_admin),
) -> MenuItemDetailOutput:
    """Replace the item's requirements. An empty list falls back to the built-in table."""
    service = AvailabilityService(db)
    item = service.set_requirements(
        menu_item_id,
        [Requirement(r.stock_item_name, r.quantity_per_unit) for r in body.requirements],
        actor_id=user.id,
    )
    return _detail(service, item)
