from __future__ import annotations

from ..extensions import db


class Sale(db.Model):
    """
    Committed sale header.

    WHY transaction_id is unique: the caller generates it before submitting,
    so a retried submission can be recognised and answered with the sale
    that already exists instead of recording the sale twice.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_sales_transaction_id"),
        db.Index("ix_sales_member_created", "member_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Caller-generated correlation id (e.g., "TXN-20240101-0001")
    transaction_id = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=True)
    member_id = db.Column(db.String(16), db.ForeignKey("members.member_id"), nullable=True, index=True)
    payment_method = db.Column(db.String(32), nullable=False)

    # All amounts in cents
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    lines = db.relationship(
        "SaleLineItem",
        back_populates="sale",
        cascade="all, delete-orphan",
        order_by="SaleLineItem.line_number",
        lazy=True,
    )
    member = db.relationship("Member", foreign_keys=[member_id])


class SaleLineItem(db.Model):
    """Individual line items on a sale. Prices are snapshots taken at sale time."""
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "line_number", name="uq_sale_line_items_sale_line"),
        db.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        db.CheckConstraint(
            "discount_bps >= 0 AND discount_bps <= 10000",
            name="ck_sale_line_items_discount_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    line_number = db.Column(db.Integer, nullable=False)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_per_unit_cents = db.Column(db.Integer, nullable=False)
    # Line discount in basis points (1250 = 12.5%)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="lines")
    item = db.relationship("InventoryItem")

