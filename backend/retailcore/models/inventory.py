from __future__ import annotations

from ..extensions import db
from retailcore.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Inventory master data with its current stock level.

    STOCK DESIGN DECISION:
    InventoryItem.stock is the current quantity; StockHistoryEntry is the audit
    trail of every change to it. Both are written in one unit of work, so
    neither is ever observable without the other.

    - SKUs are globally unique: UniqueConstraint("sku")
    - stock and reorder_point are CHECK-constrained to be >= 0
    - version_id guards read-modify-write of stock against lost updates
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_inventory_items_sku"),
        db.CheckConstraint("stock >= 0", name="ck_inventory_items_stock_non_negative"),
        db.CheckConstraint("reorder_point >= 0", name="ck_inventory_items_reorder_point_non_negative"),
        db.Index("ix_inventory_items_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False)
    brand = db.Column(db.String(128), nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    reorder_point = db.Column(db.Integer, nullable=False, default=0)

    # Image bytes are stored with the item; upload/download is handled elsewhere
    image_data = db.Column(db.LargeBinary, nullable=True)
    image_type = db.Column(db.String(64), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    history = db.relationship(
        "StockHistoryEntry",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="StockHistoryEntry.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} sku={self.sku!r} stock={self.stock}>"

    @property
    def needs_reorder(self) -> bool:
        return self.stock <= self.reorder_point

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "price_cents": self.price_cents,
            "stock": self.stock,
            "reorder_point": self.reorder_point,
            "needs_reorder": self.needs_reorder,
            "has_image": self.image_data is not None,
            "image_type": self.image_type,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockHistoryEntry(db.Model):
    """
    Append-only audit trail of stock changes.

    IMMUTABLE: Rows are never updated. One row per stock-changing operation,
    written in the same transaction as the quantity update it describes.
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_item_created", "inventory_item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_item_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    old_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("InventoryItem", back_populates="history")

    @property
    def quantity_delta(self) -> int:
        return self.new_quantity - self.old_quantity
