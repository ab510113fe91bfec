"""
Sales Service - atomic sale commit

WHY: A sale touches the sale header, every line item and, for members, the
points ledger and balance. All of it is written in one unit of work so a
failure at any step leaves nothing behind.

STOCK: Committing a sale does not touch stock unless SALE_COMMIT_DECREMENTS_STOCK
is enabled, in which case one stock ledger change per item is written in the
same unit of work as the sale.

POINTS: new_total_points is computed by the caller, but it is checked against
the member's locked balance (balance + points_earned) before anything is
written. A mismatch means another sale or adjustment got there first and the
caller must re-quote.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    ConflictError,
    IdentifierConflict,
    InsufficientStock,
    ItemNotFound,
    ValidationError,
)
from ..extensions import db
from ..models import InventoryItem, Member, PointsHistoryEntry, Sale, SaleLineItem
from ..validation import (
    coerce_int,
    coerce_text,
    enforce_rules_bps,
    enforce_rules_money,
)
from .concurrency import UnitOfWork, lock_for_update, unit_of_work
from .inventory_service import apply_stock_change
from .member_service import get_member_for_update


@dataclass(frozen=True)
class SaleLineRequest:
    item_id: int
    quantity: int
    price_per_unit_cents: int
    discount_bps: int = 0


@dataclass(frozen=True)
class MemberDetails:
    points_earned: int
    new_total_points: int


@dataclass(frozen=True)
class SaleRequest:
    transaction_id: str
    payment_method: str
    items: list[SaleLineRequest]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    customer_name: str | None = None
    member_id: str | None = None
    member_details: MemberDetails | None = None


@dataclass(frozen=True)
class SaleResult:
    sale_id: int
    transaction_id: str
    replayed: bool = False
    line_count: int = 0
    points_balance: int | None = None

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "transaction_id": self.transaction_id,
            "replayed": self.replayed,
        }


SALE_FIELDS = {
    "transaction_id",
    "customer_name",
    "member_id",
    "payment_method",
    "items",
    "subtotal_cents",
    "discount_cents",
    "tax_cents",
    "total_cents",
    "member_details",
}


def _parse_line(index: int, raw: Any) -> SaleLineRequest:
    if not isinstance(raw, dict):
        raise ValidationError(f"items[{index}] must be an object")

    prefix = f"items[{index}]"
    for key in ("item_id", "quantity", "price_per_unit_cents"):
        if raw.get(key) is None:
            raise ValidationError(f"{prefix}.{key} is required")

    quantity = coerce_int(raw["quantity"], f"{prefix}.quantity")
    if quantity <= 0:
        raise ValidationError(f"{prefix}.quantity must be > 0")

    price = coerce_int(raw["price_per_unit_cents"], f"{prefix}.price_per_unit_cents")
    enforce_rules_money(f"{prefix}.price_per_unit_cents", price)

    discount = coerce_int(raw.get("discount_bps", 0) or 0, f"{prefix}.discount_bps")
    enforce_rules_bps(f"{prefix}.discount_bps", discount)

    return SaleLineRequest(
        item_id=coerce_int(raw["item_id"], f"{prefix}.item_id"),
        quantity=quantity,
        price_per_unit_cents=price,
        discount_bps=discount,
    )


def _parse_member_details(raw: Any) -> MemberDetails:
    if not isinstance(raw, dict):
        raise ValidationError("member_details must be an object")
    for key in ("points_earned", "new_total_points"):
        if raw.get(key) is None:
            raise ValidationError(f"member_details.{key} is required")

    new_total = coerce_int(raw["new_total_points"], "member_details.new_total_points")
    if new_total < 0:
        raise ValidationError("member_details.new_total_points must be >= 0")

    return MemberDetails(
        points_earned=coerce_int(raw["points_earned"], "member_details.points_earned"),
        new_total_points=new_total,
    )


def parse_sale_request(payload: Any) -> SaleRequest:
    """Validate a JSON sale payload. Runs before any unit of work is opened."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(set(payload) - SALE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    raw_items = payload.get("items")
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")

    amounts = {}
    for key in ("subtotal_cents", "discount_cents", "tax_cents", "total_cents"):
        raw = payload.get(key)
        if raw is None:
            if key in ("discount_cents", "tax_cents"):
                raw = 0
            else:
                raise ValidationError(f"{key} is required")
        amounts[key] = coerce_int(raw, key)
        enforce_rules_money(key, amounts[key])

    member_id = coerce_text(payload.get("member_id"), "member_id", max_length=16, required=False)
    member_details = None
    if payload.get("member_details") is not None:
        if member_id is None:
            raise ValidationError("member_details requires member_id")
        member_details = _parse_member_details(payload["member_details"])

    return SaleRequest(
        transaction_id=coerce_text(payload.get("transaction_id"), "transaction_id", max_length=64),
        payment_method=coerce_text(payload.get("payment_method"), "payment_method", max_length=32),
        customer_name=coerce_text(payload.get("customer_name"), "customer_name", max_length=255, required=False),
        member_id=member_id,
        member_details=member_details,
        items=[_parse_line(i, raw) for i, raw in enumerate(raw_items)],
        **amounts,
    )


def _load_items(request: SaleRequest, *, lock: bool) -> dict[int, InventoryItem]:
    item_ids = sorted({line.item_id for line in request.items})
    # Lock in id order so concurrent sales cannot deadlock on each other
    query = db.session.query(InventoryItem).filter(InventoryItem.id.in_(item_ids)).order_by(InventoryItem.id)
    if lock:
        query = lock_for_update(query)
    items = {item.id: item for item in query.all()}

    missing = [item_id for item_id in item_ids if item_id not in items]
    if missing:
        raise ItemNotFound(missing[0])
    return items


def _requested_quantities(request: SaleRequest) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in request.items:
        totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
    return totals


def _validate_on_hand(request: SaleRequest, items: dict[int, InventoryItem]) -> None:
    insufficient = []
    for item_id, qty in _requested_quantities(request).items():
        on_hand = items[item_id].stock
        if on_hand < qty:
            insufficient.append({
                "item_id": item_id,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient stock to commit sale",
            details={"items": insufficient},
        )


def _validate_points(member: Member, details: MemberDetails) -> None:
    expected = member.points + details.points_earned
    if details.new_total_points != expected:
        raise ConflictError(
            "stale points balance",
            details={
                "member_id": member.member_id,
                "current_points": member.points,
                "points_earned": details.points_earned,
                "expected_new_total": expected,
                "new_total_points": details.new_total_points,
            },
        )


def _insert_header(uow: UnitOfWork, request: SaleRequest) -> Sale:
    return uow.add(
        Sale(
            transaction_id=request.transaction_id,
            customer_name=request.customer_name,
            member_id=request.member_id,
            payment_method=request.payment_method,
            subtotal_cents=request.subtotal_cents,
            discount_cents=request.discount_cents,
            tax_cents=request.tax_cents,
            total_cents=request.total_cents,
        )
    )


def _insert_line(uow: UnitOfWork, sale: Sale, line_number: int, line: SaleLineRequest) -> SaleLineItem:
    return uow.add(
        SaleLineItem(
            sale_id=sale.id,
            line_number=line_number,
            inventory_item_id=line.item_id,
            quantity=line.quantity,
            price_per_unit_cents=line.price_per_unit_cents,
            discount_bps=line.discount_bps,
        )
    )


def _record_points(uow: UnitOfWork, member: Member, sale: Sale, details: MemberDetails) -> PointsHistoryEntry:
    entry = uow.add(
        PointsHistoryEntry(
            member_id=member.member_id,
            sale_id=sale.id,
            points_earned=details.points_earned,
            points_balance=details.new_total_points,
        )
    )
    member.points = details.new_total_points
    uow.flush()
    return entry


def _find_sale(transaction_id: str) -> Sale | None:
    return db.session.query(Sale).filter_by(transaction_id=transaction_id).first()


def _replay(existing: Sale) -> SaleResult:
    return SaleResult(
        sale_id=existing.id,
        transaction_id=existing.transaction_id,
        replayed=True,
        line_count=len(existing.lines),
    )


def _commit_once(request: SaleRequest, *, decrement_stock: bool) -> SaleResult:
    with unit_of_work("commit_sale") as uow:
        existing = _find_sale(request.transaction_id)
        if existing is not None:
            return _replay(existing)

        # Resolve everything the writes depend on before the first write
        items = _load_items(request, lock=decrement_stock)
        if decrement_stock:
            _validate_on_hand(request, items)

        member = None
        if request.member_id is not None:
            member = get_member_for_update(request.member_id)
            if request.member_details is not None:
                _validate_points(member, request.member_details)

        try:
            sale = _insert_header(uow, request)
        except IntegrityError:
            # uq_sales_transaction_id: a concurrent commit inserted it first
            raise IdentifierConflict(request.transaction_id) from None

        for line_number, line in enumerate(request.items, start=1):
            _insert_line(uow, sale, line_number, line)

        if decrement_stock:
            for item_id, qty in sorted(_requested_quantities(request).items()):
                item = items[item_id]
                apply_stock_change(uow, item, item.stock - qty, f"Sale {request.transaction_id}")

        if member is not None:
            member.total_spent_cents = (member.total_spent_cents or 0) + request.total_cents
            uow.flush()
            if request.member_details is not None:
                _record_points(uow, member, sale, request.member_details)

        result = SaleResult(
            sale_id=sale.id,
            transaction_id=sale.transaction_id,
            line_count=len(request.items),
            points_balance=member.points if member is not None else None,
        )

    current_app.logger.info(
        "Committed sale %s (%s) with %d line(s)",
        result.sale_id, result.transaction_id, result.line_count,
    )
    return result


def commit_sale(request: SaleRequest) -> SaleResult:
    """
    Persist a sale, its lines and any member points change as one unit.

    Returns the existing sale flagged replayed=True when transaction_id has
    already been committed. A concurrent commit of the same transaction_id
    that wins the race makes this one fail on the unique header, the points
    balance or on-hand stock; those failures are answered with the replay too.
    """
    decrement_stock = current_app.config["SALE_COMMIT_DECREMENTS_STOCK"]

    try:
        return _commit_once(request, decrement_stock=decrement_stock)
    except (ConflictError, InsufficientStock):
        existing = _find_sale(request.transaction_id)
        if existing is None:
            raise
        current_app.logger.info("Replaying sale %s committed concurrently", request.transaction_id)
        return _replay(existing)
