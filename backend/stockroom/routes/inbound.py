# Overview: Flask API routes for inbound stock; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, request

from ..decorators import require_actor
from ..errors import BadRequestError, InventoryError, error_response
from ..services import inbound_service
from ..validation import coerce_int
from . import internal_error, json_body, page_args


inbound_bp = Blueprint("inbound", __name__, url_prefix="/api/inbound")


@inbound_bp.get("")
@require_actor
def list_inbound_route():
    try:
        page, limit = page_args()
        result = inbound_service.list_inbound_records(
            item_id=coerce_int(request.args.get("item_id"), "item_id", allow_none=True),
            page=page,
            limit=limit,
        )
        return jsonify(result.to_dict("records")), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list inbound records")


@inbound_bp.get("/<int:inbound_id>")
@require_actor
def get_inbound_route(inbound_id: int):
    try:
        return jsonify({"record": inbound_service.get_inbound_record(inbound_id).to_dict()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load inbound record")


@inbound_bp.post("")
@require_actor
def record_inbound_route():
    """
    Receive stock into an existing item.

    Request body:
    {
        "item_id": 12,
        "quantity": 5,
        "inbound_type": "initial" | "return",
        "related_outbound_id": 7,   (required for return)
        "remarks": "..."            (optional)
    }

    Returns:
        201: Inbound recorded
        400: Invalid input
        404: Item or outbound record not found
        409: Outbound record already returned
    """
    try:
        data = json_body()
        result = inbound_service.record_inbound(
            item_id=coerce_int(data.get("item_id"), "item_id"),
            quantity=data.get("quantity"),
            inbound_type=data.get("inbound_type"),
            operator_id=g.actor.user_id,
            related_outbound_id=coerce_int(data.get("related_outbound_id"), "related_outbound_id", allow_none=True),
            remarks=data.get("remarks"),
        )
        return jsonify({"message": "Inbound successful", **result.to_dict()}), 201
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("record inbound")


@inbound_bp.post("/batch-return")
@require_actor
def batch_return_route():
    """
    Return several of the caller's own borrows at once.

    Request body:
    {
        "outbound_ids": [3, 5, 8],
        "remarks": "..."   (optional)
    }

    Returns 200 with per-id results and errors; partial success is normal.
    """
    try:
        data = json_body()
        raw_ids = data.get("outbound_ids")
        if raw_ids is not None and not isinstance(raw_ids, list):
            raise BadRequestError("outbound_ids must be a list")
        outbound_ids = [coerce_int(v, "outbound_ids") for v in (raw_ids or [])]
        outcome = inbound_service.batch_return(
            outbound_ids=outbound_ids,
            operator_id=g.actor.user_id,
            remarks=data.get("remarks"),
        )
        return jsonify(outcome.to_dict()), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("batch return")
