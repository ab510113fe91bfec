# Overview: Service-layer operations for inventory items and the stock ledger.

# backend/retailcore/services/inventory_service.py

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, InvalidQuantity, ItemNotFound, ValidationError
from ..extensions import db
from ..models import InventoryItem, SaleLineItem, StockHistoryEntry
from ..validation import coerce_int, coerce_text
from .concurrency import UnitOfWork, lock_for_update, run_with_retry, unit_of_work
"""
Stock Ledger Invariants (authoritative)

Stock model:
- InventoryItem.stock holds the current quantity; it is never negative.
- StockHistoryEntry is append-only: one row per stock-changing operation,
  recording (old_quantity, new_quantity, reason).
- The quantity update and its history row are written in one unit of work.

Concurrency:
- The item row is locked (SELECT ... FOR UPDATE / BEGIN IMMEDIATE) for the
  whole read-modify-write, and version_id rejects a write based on a stale read.
- A rejected write (ConcurrentUpdateError) re-runs the whole adjustment with a
  fresh read, up to STOCK_RETRY_ATTEMPTS times.

Deletion:
- Items referenced by sale line items cannot be deleted (ConflictError).
- Deleting an unreferenced item removes its stock history with it.
"""

ITEM_MUTABLE_FIELDS = {"sku", "name", "category", "brand", "price_cents", "stock", "reorder_point"}


def validate_new_quantity(value) -> int:
    try:
        quantity = coerce_int(value, "new_quantity")
    except ValidationError as e:
        raise InvalidQuantity(str(e), details={"new_quantity": repr(value)}) from None
    if quantity < 0:
        raise InvalidQuantity("new_quantity must be >= 0", details={"new_quantity": quantity})
    return quantity


def _get_item(item_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=item_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise ItemNotFound(item_id)
    return item


def apply_stock_change(
    uow: UnitOfWork,
    item: InventoryItem,
    new_quantity: int,
    reason: str,
) -> StockHistoryEntry:
    """Core stock write without locking, retry, or commit.

    Called by adjust_stock() and by sale commit when stock is folded into it.
    The caller must already hold the item's row lock.
    """
    if new_quantity < 0:
        raise InvalidQuantity(
            "stock cannot go negative",
            details={"item_id": item.id, "new_quantity": new_quantity},
        )

    old_quantity = item.stock
    item.stock = new_quantity
    uow.flush()

    return uow.add(
        StockHistoryEntry(
            inventory_item_id=item.id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            reason=reason,
        )
    )


def adjust_stock(item_id: int, new_quantity, reason) -> InventoryItem:
    """
    Set an item's stock to new_quantity and record the change.

    Returns the item in its post-update state.
    """
    quantity = validate_new_quantity(new_quantity)
    reason = coerce_text(reason, "reason", max_length=255)

    def _op():
        with unit_of_work("adjust_stock") as uow:
            item = _get_item(item_id, lock=True)
            entry = apply_stock_change(uow, item, quantity, reason)
        current_app.logger.info(
            "Stock for item %s set %d -> %d (%s)",
            item_id, entry.old_quantity, entry.new_quantity, reason,
        )
        return item

    return run_with_retry(_op, attempts=current_app.config["STOCK_RETRY_ATTEMPTS"])


def create_item(*, patch: dict) -> InventoryItem:
    """
    Create an inventory item using a validated patch dict.

    SKU uniqueness is checked up front and enforced again by the unique
    constraint, which catches a concurrent insert of the same SKU.
    """
    with unit_of_work("create_item") as uow:
        existing = db.session.query(InventoryItem.id).filter_by(sku=patch["sku"]).first()
        if existing is not None:
            raise ConflictError("SKU already exists", details={"sku": patch["sku"]})

        item = InventoryItem()
        for k, v in patch.items():
            if k in ITEM_MUTABLE_FIELDS:
                setattr(item, k, v)
        try:
            uow.add(item)
        except IntegrityError:
            raise ConflictError("SKU already exists", details={"sku": patch["sku"]}) from None

    current_app.logger.info("Created inventory item %s (%s)", item.id, item.sku)
    return item


def delete_item(item_id: int) -> None:
    with unit_of_work("delete_item") as uow:
        item = _get_item(item_id, lock=True)

        referenced = (
            db.session.query(SaleLineItem.id)
            .filter_by(inventory_item_id=item_id)
            .first()
        )
        if referenced is not None:
            raise ConflictError(
                "Item is referenced by recorded sales and cannot be deleted",
                details={"item_id": item_id},
            )

        uow.delete(item)

    current_app.logger.info("Deleted inventory item %s", item_id)
