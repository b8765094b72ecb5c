"""Inventory ledger tests.

Consumption add / remove / update against a live session, stock
movement logging, restocking and low-stock reporting.
"""
import pytest

from billing.errors import (
    ValidationError, InventoryItemNotFound, ConsumptionNotFound,
    InsufficientStock, AlreadyClosed,
)
from database.models import InventoryConsumption, InventoryLog


@pytest.fixture
def open_session(billing, customer, desk):
    """An active session on the desk."""
    return billing.start_session(customer.id, desk.id)


def _consumptions(base_crud, session_id):
    return base_crud.get_all(InventoryConsumption, filters={"session_id": session_id})


class TestAddConsumption:
    """Tests for add_inventory_consumption."""

    def test_add_moves_stock_and_total(self, billing, temp_db, open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 3)

        assert temp_db.inventory_items.get(coffee.id).quantity == 7
        assert billing.sessions.get_session(open_session).inventory_total == 4500

    def test_insufficient_stock_changes_nothing(self, billing, temp_db, base_crud,
                                                open_session, coffee):
        with pytest.raises(InsufficientStock) as exc_info:
            billing.add_inventory_consumption(open_session, coffee.id, 11)

        assert exc_info.value.available == 10
        assert exc_info.value.requested == 11
        assert temp_db.inventory_items.get(coffee.id).quantity == 10
        assert billing.sessions.get_session(open_session).inventory_total == 0
        assert _consumptions(base_crud, open_session) == []
        assert base_crud.count(InventoryLog) == 0

    def test_non_positive_quantity(self, billing, open_session, coffee):
        with pytest.raises(ValidationError):
            billing.add_inventory_consumption(open_session, coffee.id, 0)

    def test_non_positive_quantity_checked_before_session_state(self, billing,
                                                                open_session, coffee):
        billing.end_session(open_session)
        with pytest.raises(ValidationError):
            billing.add_inventory_consumption(open_session, coffee.id, 0)

    def test_unknown_item(self, billing, open_session):
        with pytest.raises(InventoryItemNotFound):
            billing.add_inventory_consumption(open_session, 99999, 1)

    def test_closed_session(self, billing, open_session, coffee):
        billing.end_session(open_session)
        with pytest.raises(AlreadyClosed):
            billing.add_inventory_consumption(open_session, coffee.id, 1)

    def test_price_is_snapshotted(self, billing, temp_db, open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 1)
        temp_db.inventory_items.update_price(coffee.id, 2000)
        billing.add_inventory_consumption(open_session, coffee.id, 1)

        assert billing.sessions.get_session(open_session).inventory_total == 3500

    def test_stock_movement_is_logged(self, billing, base_crud, open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 2)
        logs = base_crud.get_all(InventoryLog)

        assert len(logs) == 1
        assert logs[0].change_type == "consumption"
        assert logs[0].quantity_change == -2
        assert logs[0].quantity_after == 8
        assert logs[0].session_id == open_session


class TestRemoveConsumption:
    """Tests for remove_inventory_consumption."""

    def test_remove_returns_all_rows(self, billing, temp_db, base_crud,
                                     open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 2)
        billing.add_inventory_consumption(open_session, coffee.id, 3)
        billing.remove_inventory_consumption(open_session, coffee.id)

        assert temp_db.inventory_items.get(coffee.id).quantity == 10
        assert billing.sessions.get_session(open_session).inventory_total == 0
        assert _consumptions(base_crud, open_session) == []

    def test_remove_missing(self, billing, open_session, coffee):
        with pytest.raises(ConsumptionNotFound):
            billing.remove_inventory_consumption(open_session, coffee.id)


class TestUpdateConsumption:
    """Tests for update_inventory_consumption."""

    def test_increase(self, billing, temp_db, base_crud, open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 2)
        billing.update_inventory_consumption(open_session, coffee.id, 5)

        rows = _consumptions(base_crud, open_session)
        assert [r.quantity for r in rows] == [5]
        assert temp_db.inventory_items.get(coffee.id).quantity == 5
        assert billing.sessions.get_session(open_session).inventory_total == 7500

    def test_increase_beyond_stock(self, billing, temp_db, open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 2)
        with pytest.raises(InsufficientStock):
            billing.update_inventory_consumption(open_session, coffee.id, 13)

        assert temp_db.inventory_items.get(coffee.id).quantity == 8
        assert billing.sessions.get_session(open_session).inventory_total == 3000

    def test_decrease_latest_rows_first(self, billing, temp_db, base_crud,
                                        open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 2)
        billing.add_inventory_consumption(open_session, coffee.id, 3)
        billing.update_inventory_consumption(open_session, coffee.id, 1)

        rows = _consumptions(base_crud, open_session)
        assert [r.quantity for r in rows] == [1]
        assert temp_db.inventory_items.get(coffee.id).quantity == 9
        assert billing.sessions.get_session(open_session).inventory_total == 1500

    def test_zero_removes(self, billing, temp_db, base_crud, open_session, coffee):
        billing.add_inventory_consumption(open_session, coffee.id, 4)
        billing.update_inventory_consumption(open_session, coffee.id, 0)

        assert _consumptions(base_crud, open_session) == []
        assert temp_db.inventory_items.get(coffee.id).quantity == 10

    def test_update_missing(self, billing, open_session, coffee):
        with pytest.raises(ConsumptionNotFound):
            billing.update_inventory_consumption(open_session, coffee.id, 2)


class TestStockAdjustment:
    """Tests for adjust_stock and get_low_stock_items."""

    def test_restock(self, billing, base_crud, coffee):
        assert billing.adjust_stock(coffee.id, 5) == 15
        log = base_crud.get_all(InventoryLog)[-1]
        assert log.change_type == "restock"
        assert log.quantity_after == 15

    def test_adjustment_below_zero(self, billing, temp_db, coffee):
        with pytest.raises(InsufficientStock):
            billing.adjust_stock(coffee.id, -20, reason="adjustment")
        assert temp_db.inventory_items.get(coffee.id).quantity == 10

    def test_invalid_adjustments(self, billing, coffee):
        with pytest.raises(ValidationError):
            billing.adjust_stock(coffee.id, 0)
        with pytest.raises(ValidationError):
            billing.adjust_stock(coffee.id, 1, reason="theft")

    def test_low_stock(self, billing, coffee):
        assert billing.ledger.get_low_stock_items() == []
        billing.adjust_stock(coffee.id, -8, reason="adjustment")
        low = billing.ledger.get_low_stock_items()
        assert [item.id for item in low] == [coffee.id]
