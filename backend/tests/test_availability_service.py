"""
Tests for AvailabilityService: derived sellable flags and requirement upkeep.
"""

import pytest

from storefront_api.services.catalog import Requirement, default_requirements_for
from storefront_api.services.domain import AvailabilityService, RevisionService, StockLedger, is_sellable
from shared.config.constants import MENU_AVAILABILITY_KEY, RevisionEntity
from shared.utils.exceptions import MenuItemNotFoundError, ValidationError
from tests.conftest import menu_item, set_stock


class TestIsSellable:
    """The pure rule behind every stored flag."""

    def test_disabled_item_never_sellable(self):
        assert is_sellable(False, [], {}) is False

    def test_item_without_requirements_is_sellable_when_enabled(self):
        assert is_sellable(True, [], {}) is True

    def test_every_requirement_must_be_covered(self):
        reqs = [Requirement("Steaks", 1), Requirement("Fries", 2)]

        assert is_sellable(True, reqs, {"Steaks": 1, "Fries": 2}) is True
        assert is_sellable(True, reqs, {"Steaks": 1, "Fries": 1}) is False

    def test_unknown_stock_item_counts_as_zero(self):
        assert is_sellable(True, [Requirement("Truffle", 1)], {"Steaks": 9}) is False


class TestRecompute:
    def test_recompute_uses_reserve_plus_active(self, seeded):
        """Stock in the reserve site alone should keep an item sellable."""
        set_stock(seeded, "Steaks", reserve=1, active=0)

        changed = AvailabilityService(seeded).recompute_all()
        seeded.commit()

        assert menu_item(seeded, "Steak Only").id in changed
        assert menu_item(seeded, "Steak Only").is_available is True
        assert menu_item(seeded, "Steak & Fries").is_available is False

    def test_recompute_without_changes_returns_empty(self, seeded):
        assert AvailabilityService(seeded).recompute_all() == []

    def test_recompute_bumps_menu_revision_only_on_change(self, seeded):
        revisions = RevisionService(seeded)
        before = revisions.get(RevisionEntity.MENU, MENU_AVAILABILITY_KEY)

        service = AvailabilityService(seeded)
        service.recompute_all()
        assert revisions.get(RevisionEntity.MENU, MENU_AVAILABILITY_KEY) == before

        set_stock(seeded, "Fries", reserve=3, active=0)
        service.recompute_all()
        seeded.commit()

        assert revisions.get(RevisionEntity.MENU, MENU_AVAILABILITY_KEY) == before + 1

    def test_hidden_items_excluded_from_customer_snapshot(self, seeded):
        names = {item.name for item in AvailabilityService(seeded).menu_availability()}
        staff_names = {
            item.name for item in AvailabilityService(seeded).menu_availability(include_hidden=True)
        }

        assert "£1 Steak Cone" not in names
        assert "£1 Steak Cone" in staff_names


class TestAdminControls:
    def test_disable_overrides_stock(self, seeded):
        set_stock(seeded, "Steaks", reserve=5, active=5)
        service = AvailabilityService(seeded)
        service.recompute_all()
        seeded.commit()
        steak = menu_item(seeded, "Steak Only")
        assert steak.is_available is True

        service.set_admin_enabled(steak.id, False, actor_id="staff-1")

        assert menu_item(seeded, "Steak Only").is_available is False

    def test_reenable_restores_derived_flag(self, seeded):
        set_stock(seeded, "Steaks", reserve=5, active=5)
        service = AvailabilityService(seeded)
        steak_id = menu_item(seeded, "Steak Only").id
        service.set_admin_enabled(steak_id, False)

        service.set_admin_enabled(steak_id, True)

        assert menu_item(seeded, "Steak Only").is_available is True

    def test_set_requirements_replaces_and_recomputes(self, seeded):
        set_stock(seeded, "Steaks", reserve=0, active=1)
        service = AvailabilityService(seeded)
        service.recompute_all()
        seeded.commit()
        steak_id = menu_item(seeded, "Steak Only").id

        service.set_requirements(steak_id, [Requirement("Steaks", 2)], actor_id="staff-1")

        assert service.requirements_for(steak_id) == [Requirement("Steaks", 2)]
        assert menu_item(seeded, "Steak Only").is_available is False

    def test_empty_requirements_fall_back_to_builtin_table(self, seeded):
        service = AvailabilityService(seeded)
        fries_id = menu_item(seeded, "Signature Fries").id

        service.set_requirements(fries_id, [])

        assert service.requirements_for(fries_id) == default_requirements_for("Signature Fries")

    def test_duplicate_requirement_rejected(self, seeded):
        steak_id = menu_item(seeded, "Steak Only").id

        with pytest.raises(ValidationError):
            AvailabilityService(seeded).set_requirements(
                steak_id, [Requirement("Steaks", 1), Requirement("Steaks", 2)]
            )

    def test_non_positive_requirement_rejected(self, seeded):
        steak_id = menu_item(seeded, "Steak Only").id

        with pytest.raises(ValidationError):
            AvailabilityService(seeded).set_requirements(steak_id, [Requirement("Steaks", 0)])

    def test_unknown_menu_item(self, seeded):
        with pytest.raises(MenuItemNotFoundError):
            AvailabilityService(seeded).set_admin_enabled(999_999, True)


class TestAdjustmentSymmetry:
    def test_stock_change_and_undo_restore_flags(self, seeded):
        """Adjusting stock and then reversing it should leave every flag as before."""
        set_stock(seeded, "Steaks", reserve=1, active=0)
        AvailabilityService(seeded).recompute_all()
        seeded.commit()
        before = {item.name: item.is_available for item in AvailabilityService(seeded).menu_availability(True)}

        ledger = StockLedger(seeded)
        ledger.adjust("Steaks", delta_reserve=-1, delta_active=0)
        ledger.adjust("Steaks", delta_reserve=1, delta_active=0)

        after = {item.name: item.is_available for item in AvailabilityService(seeded).menu_availability(True)}
        assert after == before
