# Overview: Flask API routes for loyalty members; parses input and returns JSON responses.

from flask import Blueprint, request

from ..models import Member
from ..services import member_service
from ..services.outcome import attempt
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_member,
)
from ..errors import ValidationError
from .responses import error_response

MEMBER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "tier"},
    required_on_create={"name", "email", "phone", "tier"},
)

members_bp = Blueprint("members", __name__, url_prefix="/api/members")


def _validated_member_patch():
    payload = request.get_json(silent=True) or {}
    patch = validate_payload(model=Member, payload=payload, policy=MEMBER_POLICY, partial=False)
    enforce_rules_member(patch)
    return patch


@members_bp.post("")
def create_member_route():
    """
    Register a member. The member_id (M001, M002, ...) is generated.
    """
    try:
        patch = _validated_member_patch()
    except ValidationError as e:
        return error_response(e)

    outcome = attempt(member_service.create_member, patch=patch)
    if not outcome.ok:
        return error_response(outcome.error)

    return outcome.value.to_dict(), 201


@members_bp.put("/<member_id>")
def update_member_route(member_id: str):
    """Replace a member's contact details and tier (all fields required)."""
    try:
        patch = _validated_member_patch()
    except ValidationError as e:
        return error_response(e)

    outcome = attempt(member_service.update_member, member_id=member_id, patch=patch)
    if not outcome.ok:
        return error_response(outcome.error)

    return outcome.value.to_dict(), 200


@members_bp.patch("/<member_id>/points")
def update_member_points_route(member_id: str):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return error_response(ValidationError("Invalid JSON payload"))
    if "points" not in payload:
        return error_response(ValidationError("points is required"))

    outcome = attempt(member_service.set_member_points, member_id=member_id, points=payload["points"])
    if not outcome.ok:
        return error_response(outcome.error)

    return {"success": True}, 200
