# backend/retailcore/routes/inventory.py
"""
Inventory routes.

- Creating an item enforces SKU uniqueness (409 on duplicate).
- Stock adjustments set an absolute quantity and always append stock history.
- Items referenced by recorded sales cannot be deleted (409).
"""
from flask import Blueprint, request

from ..models import InventoryItem
from ..services import inventory_service
from ..services.outcome import attempt
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_item,
)
from ..errors import ValidationError
from .responses import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "category", "brand", "price_cents", "stock", "reorder_point"},
    required_on_create={"sku", "name", "category", "price_cents", "stock", "reorder_point"},
)


@inventory_bp.post("")
def create_item_route():
    """Create a new inventory item."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=ITEM_POLICY, partial=False)
        enforce_rules_item(patch)
    except ValidationError as e:
        return error_response(e)

    outcome = attempt(inventory_service.create_item, patch=patch)
    if not outcome.ok:
        return error_response(outcome.error)

    return outcome.value.to_dict(), 201


@inventory_bp.patch("/<int:item_id>/stock")
def adjust_stock_route(item_id: int):
    """
    Set the stock level of an item.

    Body: {"new_quantity": <int >= 0>, "reason": <string>}
    Returns the item as it is after the update.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return error_response(ValidationError("Invalid JSON payload"))

    outcome = attempt(
        inventory_service.adjust_stock,
        item_id,
        payload.get("new_quantity"),
        payload.get("reason"),
    )
    if not outcome.ok:
        return error_response(outcome.error)

    return outcome.value.to_dict(), 200


@inventory_bp.delete("/<int:item_id>")
def delete_item_route(item_id: int):
    outcome = attempt(inventory_service.delete_item, item_id)
    if not outcome.ok:
        return error_response(outcome.error)

    return {"ok": True}, 200
