# Overview: Service-layer operations for loyalty members; encapsulates business logic and database work.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import IdentifierConflict, MemberNotFound, ValidationError
from ..extensions import db
from ..models import Member, MembershipTier
from ..validation import coerce_int
from . import identifier_service
from .concurrency import lock_for_update, run_with_retry, unit_of_work

MEMBER_MUTABLE_FIELDS = {"name", "email", "phone", "tier"}


def get_member_for_update(member_id: str) -> Member:
    member = lock_for_update(db.session.query(Member).filter_by(member_id=member_id)).first()
    if member is None:
        raise MemberNotFound(member_id)
    return member


def _require_tier(tier_name: str) -> MembershipTier:
    tier = db.session.get(MembershipTier, tier_name)
    if tier is None:
        raise ValidationError("Unknown membership tier", details={"tier": tier_name})
    return tier


def create_member(*, patch: dict) -> Member:
    """
    Register a new member with the next sequential member id.

    The id scan and the insert share one unit of work. If another request
    inserted the same id first, the unique constraint rejects ours and the
    whole sequence runs again with a fresh scan.
    """
    def _op() -> Member:
        with unit_of_work("create_member") as uow:
            _require_tier(patch["tier"])

            member_id = identifier_service.allocate_member_id()
            member = Member(member_id=member_id, points=0, total_spent_cents=0)
            for k, v in patch.items():
                if k in MEMBER_MUTABLE_FIELDS:
                    setattr(member, k, v)

            try:
                uow.add(member)
            except IntegrityError:
                raise IdentifierConflict(member_id) from None
        return member

    member = run_with_retry(
        _op,
        retry_on=(IdentifierConflict,),
        attempts=current_app.config["MEMBER_ID_RETRY_ATTEMPTS"],
    )
    current_app.logger.info("Registered member %s", member.member_id)
    return member


def update_member(*, member_id: str, patch: dict) -> Member:
    with unit_of_work("update_member") as uow:
        member = get_member_for_update(member_id)
        if "tier" in patch:
            _require_tier(patch["tier"])
        for k, v in patch.items():
            if k in MEMBER_MUTABLE_FIELDS:
                setattr(member, k, v)
        uow.flush()
    return member


def set_member_points(*, member_id: str, points) -> Member:
    """
    Overwrite a member's points balance.

    Direct adjustments do not write points history; that ledger only records
    points earned through sales.
    """
    value = coerce_int(points, "points")
    if value < 0:
        raise ValidationError("points must be >= 0", details={"points": value})

    with unit_of_work("set_member_points") as uow:
        member = get_member_for_update(member_id)
        previous = member.points
        member.points = value
        uow.flush()

    current_app.logger.info("Points for member %s set %d -> %d", member_id, previous, value)
    return member
