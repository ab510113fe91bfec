# Overview: Flask API routes for committing sales; parses input and returns JSON responses.

# backend/retailcore/routes/sales.py
"""Sale commit route"""

from flask import Blueprint, request

from ..services import sales_service
from ..services.outcome import attempt
from .responses import error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
def commit_sale_route():
    """
    Commit a sale with its line items and optional member points.

    201 for a newly recorded sale, 200 when transaction_id was already
    recorded (the stored sale is returned and nothing is written).
    """
    outcome = attempt(sales_service.parse_sale_request, request.get_json(silent=True))
    if not outcome.ok:
        return error_response(outcome.error)

    outcome = attempt(sales_service.commit_sale, outcome.value)
    if not outcome.ok:
        return error_response(outcome.error)

    result = outcome.value
    return result.to_dict(), 200 if result.replayed else 201
