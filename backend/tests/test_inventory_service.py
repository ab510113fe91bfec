# Overview: Pytest coverage for the stock ledger and inventory item lifecycle.

"""
Stock Ledger Tests

Every stock change must leave exactly one history row describing it, and a
rejected or failed change must leave neither a quantity change nor a history
row behind.

Test Coverage:
- adjust_stock: happy path, chaining, rejected quantities, missing items
- Storage failure between the quantity update and the history insert
- create_item: SKU uniqueness
- delete_item: history cascade, refusal for items with recorded sales
"""

import pytest
from sqlalchemy.exc import OperationalError

from retailcore.errors import (
    ConflictError,
    InvalidQuantity,
    ItemNotFound,
    PartialFailureRolledBack,
    PersistenceFailure,
    ValidationError,
)
from retailcore.models import InventoryItem, Sale, SaleLineItem, StockHistoryEntry
from retailcore.services import inventory_service


def _history(db_session, item_id):
    return (
        db_session.query(StockHistoryEntry)
        .filter_by(inventory_item_id=item_id)
        .order_by(StockHistoryEntry.id)
        .all()
    )


class TestAdjustStock:
    """Absolute stock adjustments with history."""

    def test_adjust_records_history(self, db_session, make_item):
        """10 -> 7 updates stock and writes one history row."""
        item_id = make_item(stock=10)

        item = inventory_service.adjust_stock(item_id, 7, "Damaged")

        assert item.stock == 7
        history = _history(db_session, item_id)
        assert len(history) == 1
        assert (history[0].old_quantity, history[0].new_quantity) == (10, 7)
        assert history[0].reason == "Damaged"
        assert history[0].quantity_delta == -3

    def test_successive_adjustments_chain(self, db_session, make_item):
        """Each entry's old quantity is the previous entry's new quantity."""
        item_id = make_item(stock=5)

        for quantity in (8, 8, 0, 12):
            inventory_service.adjust_stock(item_id, quantity, "Count")

        history = _history(db_session, item_id)
        assert len(history) == 4
        assert [(h.old_quantity, h.new_quantity) for h in history] == [
            (5, 8), (8, 8), (8, 0), (0, 12),
        ]
        assert db_session.get(InventoryItem, item_id).stock == 12

    def test_adjust_to_zero_is_allowed(self, db_session, make_item):
        item_id = make_item(stock=3)
        item = inventory_service.adjust_stock(item_id, 0, "Sold out")
        assert item.stock == 0
        assert item.needs_reorder is True

    def test_numeric_string_quantity_is_accepted(self, db_session, make_item):
        item_id = make_item(stock=3)
        assert inventory_service.adjust_stock(item_id, "4", "Recount").stock == 4

    @pytest.mark.parametrize("bad_quantity", [-1, -100, 2.5, True, "1e3", "3.0", None, "abc", 2**31, 10**20])
    def test_rejected_quantity_leaves_no_trace(self, db_session, make_item, bad_quantity):
        """Invalid quantities are refused before anything is written."""
        item_id = make_item(stock=10)

        with pytest.raises(InvalidQuantity):
            inventory_service.adjust_stock(item_id, bad_quantity, "Bad input")

        assert db_session.get(InventoryItem, item_id).stock == 10
        assert _history(db_session, item_id) == []

    def test_invalid_quantity_is_a_validation_error(self, db_session, make_item):
        item_id = make_item()
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(item_id, -5, "Shrink")

    def test_reason_is_required(self, db_session, make_item):
        item_id = make_item(stock=10)

        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(item_id, 5, "   ")

        assert _history(db_session, item_id) == []

    def test_missing_item(self, db_session):
        with pytest.raises(ItemNotFound) as exc_info:
            inventory_service.adjust_stock(99999, 5, "Count")
        assert exc_info.value.details == {"item_id": 99999}

    def test_history_insert_failure_rolls_back_quantity(self, db_session, make_item, monkeypatch):
        """A storage error after the quantity update undoes the update too."""
        item_id = make_item(stock=10)

        def failing_entry(**kwargs):
            raise OperationalError("INSERT INTO stock_history", {}, Exception("disk I/O error"))

        monkeypatch.setattr(inventory_service, "StockHistoryEntry", failing_entry)

        with pytest.raises(PartialFailureRolledBack) as exc_info:
            inventory_service.adjust_stock(item_id, 7, "Damaged")

        error = exc_info.value
        assert isinstance(error, PersistenceFailure)
        assert error.writes_undone == 1
        assert isinstance(error.cause, PersistenceFailure)

        assert db_session.get(InventoryItem, item_id).stock == 10
        assert _history(db_session, item_id) == []


class TestCreateItem:
    """Item creation and SKU uniqueness."""

    def _patch(self, **overrides):
        patch = {
            "sku": "TEE-001",
            "name": "Plain Tee",
            "category": "Apparel",
            "brand": "Acme",
            "price_cents": 1999,
            "stock": 4,
            "reorder_point": 1,
        }
        patch.update(overrides)
        return patch

    def test_create_item(self, db_session):
        item = inventory_service.create_item(patch=self._patch())

        assert item.id is not None
        stored = db_session.get(InventoryItem, item.id)
        assert stored.sku == "TEE-001"
        assert stored.price_cents == 1999

    def test_duplicate_sku_conflicts(self, db_session):
        inventory_service.create_item(patch=self._patch())

        with pytest.raises(ConflictError):
            inventory_service.create_item(patch=self._patch(name="Other Tee"))

        assert db_session.query(InventoryItem).count() == 1


class TestDeleteItem:
    """Deletion policy."""

    def test_delete_removes_item_and_history(self, db_session, make_item):
        item_id = make_item(stock=10)
        inventory_service.adjust_stock(item_id, 6, "Count")

        inventory_service.delete_item(item_id)

        assert db_session.get(InventoryItem, item_id) is None
        assert _history(db_session, item_id) == []

    def test_delete_missing_item(self, db_session):
        with pytest.raises(ItemNotFound):
            inventory_service.delete_item(424242)

    def test_delete_item_with_recorded_sales_conflicts(self, db_session, make_item):
        item_id = make_item()
        sale = Sale(
            transaction_id="TXN-DEL-1",
            payment_method="cash",
            subtotal_cents=1000,
            discount_cents=0,
            tax_cents=0,
            total_cents=1000,
        )
        db_session.add(sale)
        db_session.flush()
        db_session.add(SaleLineItem(
            sale_id=sale.id,
            line_number=1,
            inventory_item_id=item_id,
            quantity=1,
            price_per_unit_cents=1000,
            discount_bps=0,
        ))
        db_session.commit()

        with pytest.raises(ConflictError):
            inventory_service.delete_item(item_id)

        assert db_session.get(InventoryItem, item_id) is not None
