# Overview: Flask API routes for the approval workflow; parses input and returns JSON responses.

"""
Approval Workflow API Routes

WORKFLOW:
- A non-administrator POSTs an inbound/outbound intent (status: pending)
- An administrator reviews it; approval executes the intent with the
  requester recorded as operator

SECURITY:
- Administrators act directly and may not create requests
- Only administrators review or see the pending counter
- Non-administrators only ever see their own requests
"""

from flask import Blueprint, jsonify, g, request

from ..decorators import require_actor, require_admin
from ..errors import BadRequestError, ForbiddenError, InventoryError, error_response
from ..services import approval_service
from . import internal_error, json_body


approvals_bp = Blueprint("approvals", __name__, url_prefix="/api/approvals")


@approvals_bp.get("")
@require_actor
def list_requests_route():
    """Query params: status, request_type"""
    try:
        rows = approval_service.list_requests(
            actor=g.actor,
            status=request.args.get("status") or None,
            request_type=request.args.get("request_type") or None,
        )
        return jsonify({"requests": [r.to_dict() for r in rows]}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list approval requests")


@approvals_bp.get("/pending/count")
@require_actor
@require_admin
def pending_count_route():
    try:
        return jsonify({"count": approval_service.pending_count()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("count pending approval requests")


@approvals_bp.get("/<int:request_id>")
@require_actor
def get_request_route(request_id: int):
    try:
        req = approval_service.get_request(request_id)
        if not g.actor.is_admin and req.requester_id != g.actor.user_id:
            raise ForbiddenError("You do not have permission to view this request")
        return jsonify({"request": req.to_dict()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load approval request")


@approvals_bp.post("")
@require_actor
def create_request_route():
    """
    Submit an inbound/outbound intent for review.

    Request body:
    {
        "request_type": "inbound" | "outbound",
        "request_data": {...}
    }

    Returns:
        201: Request created (status: pending)
        400: Invalid input, or caller is an administrator
    """
    try:
        if g.actor.is_admin:
            raise BadRequestError("Administrators do not need to submit approval requests")
        data = json_body()
        req = approval_service.create_request(
            requester_id=g.actor.user_id,
            request_type=data.get("request_type"),
            request_data=data.get("request_data"),
        )
        return jsonify({"message": "Approval request submitted successfully", "request": req.to_dict()}), 201
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("create approval request")


@approvals_bp.put("/<int:request_id>/review")
@require_actor
@require_admin
def review_request_route(request_id: int):
    """
    Approve or reject a pending request.

    Request body:
    {
        "approved": true,
        "comment": "..."   (optional)
    }

    Returns:
        200: Reviewed (and executed, when approved)
        400: Invalid input, or the intent can no longer be executed
        404: Request (or the item it targets) not found
        409: Request already reviewed
    """
    try:
        data = json_body()
        outcome = approval_service.review(
            request_id=request_id,
            reviewer_id=g.actor.user_id,
            approved=data.get("approved"),
            comment=data.get("comment"),
        )
        return jsonify(outcome.to_dict()), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("review approval request")
