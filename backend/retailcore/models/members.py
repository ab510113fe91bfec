from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from retailcore.time_utils import to_iso_date, today


class MembershipTier(db.Model):
    """
    Loyalty tier reference data.

    points_multiplier_bps is the rational factor applied to spend when points
    are computed: 10000 = 1.00x, 15000 = 1.50x.
    """
    __tablename__ = "membership_tiers"

    tier_name = db.Column(db.String(32), primary_key=True)
    points_multiplier_bps = db.Column(db.Integer, nullable=False, default=10000)

    @property
    def points_multiplier(self) -> Decimal:
        return Decimal(self.points_multiplier_bps) / Decimal(10000)


class Member(db.Model):
    """
    Loyalty member.

    member_id is the externally visible identifier ("M001"). It is allocated
    from the highest number in use and protected by a UNIQUE constraint, so a
    concurrently allocated duplicate fails at insert instead of being issued
    twice.
    """
    __tablename__ = "members"
    __table_args__ = (
        db.UniqueConstraint("member_id", name="uq_members_member_id"),
        db.CheckConstraint("points >= 0", name="ck_members_points_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.String(16), nullable=False)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=False)
    tier = db.Column(db.String(32), db.ForeignKey("membership_tiers.tier_name"), nullable=False, index=True)

    points = db.Column(db.Integer, nullable=False, default=0)
    join_date = db.Column(db.Date, nullable=False, default=today)
    total_spent_cents = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    tier_ref = db.relationship("MembershipTier")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "tier": self.tier,
            "points_multiplier_bps": self.tier_ref.points_multiplier_bps if self.tier_ref else None,
            "points": self.points,
            "join_date": to_iso_date(self.join_date),
            "total_spent_cents": self.total_spent_cents,
            "version_id": self.version_id,
        }


class PointsHistoryEntry(db.Model):
    """
    Append-only ledger of points earned through sales.

    IMMUTABLE: Records are never updated or deleted. points_balance is the
    member's balance right after the sale was committed.
    """
    __tablename__ = "member_points_history"
    __table_args__ = (
        db.Index("ix_points_history_member_created", "member_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    member_id = db.Column(db.String(16), db.ForeignKey("members.member_id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)

    points_earned = db.Column(db.Integer, nullable=False)
    points_balance = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
