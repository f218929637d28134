# Overview: Flask API routes for outbound stock; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, request

from ..decorators import require_actor
from ..errors import BadRequestError, InventoryError, error_response
from ..services import outbound_service
from ..services.outbound_service import OUTBOUND_TYPE_TRANSFER, BorrowerInfo
from ..validation import coerce_bool, coerce_date, coerce_int
from . import internal_error, json_body, page_args


outbound_bp = Blueprint("outbound", __name__, url_prefix="/api/outbound")


def _records(rows) -> list[dict]:
    return [r.to_dict() for r in rows]


@outbound_bp.get("")
@require_actor
def list_outbound_route():
    """Query params: item_id, is_returned, borrower, page, limit"""
    try:
        page, limit = page_args()
        is_returned = request.args.get("is_returned")
        result = outbound_service.list_outbound_records(
            item_id=coerce_int(request.args.get("item_id"), "item_id", allow_none=True),
            is_returned=None if is_returned in (None, "") else coerce_bool(is_returned, "is_returned"),
            borrower=request.args.get("borrower") or None,
            page=page,
            limit=limit,
        )
        return jsonify(result.to_dict("records")), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list outbound records")


@outbound_bp.get("/unreturned")
@require_actor
def unreturned_route():
    try:
        return jsonify({"records": _records(outbound_service.list_unreturned_borrows())}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list unreturned borrows")


@outbound_bp.get("/my-borrowings")
@require_actor
def my_borrowings_route():
    try:
        rows = outbound_service.list_borrows_for_operator(g.actor.user_id)
        return jsonify({"records": _records(rows)}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list own borrows")


@outbound_bp.get("/overdue")
@require_actor
def overdue_route():
    """Query params: as_of (ISO date, default today)"""
    try:
        as_of = coerce_date(request.args.get("as_of") or None, "as_of")
        return jsonify({"records": _records(outbound_service.list_overdue_borrows(as_of))}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list overdue borrows")


@outbound_bp.get("/<int:outbound_id>")
@require_actor
def get_outbound_route(outbound_id: int):
    try:
        return jsonify({"record": outbound_service.get_outbound_record(outbound_id).to_dict()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load outbound record")


@outbound_bp.post("")
@require_actor
def record_outbound_route():
    """
    Take stock out of an item.

    Request body:
    {
        "item_id": 12,
        "quantity": 2,
        "outbound_type": "transfer" | "borrow",
        "borrower_name": "...", "borrower_phone": "...", "borrower_email": "...",  (required for borrow)
        "expected_return_date": "2026-11-01",   (optional)
        "remarks": "..."                        (optional)
    }

    Returns:
        201: Outbound recorded
        400: Invalid input or insufficient stock
        404: Item not found
    """
    try:
        data = json_body()
        result = outbound_service.record_outbound(
            item_id=coerce_int(data.get("item_id"), "item_id"),
            quantity=data.get("quantity"),
            outbound_type=data.get("outbound_type"),
            operator_id=g.actor.user_id,
            borrower=BorrowerInfo.from_mapping(data),
            expected_return_date=coerce_date(data.get("expected_return_date") or None, "expected_return_date"),
            remarks=data.get("remarks"),
        )
        return jsonify({"message": "Outbound successful", **result.to_dict()}), 201
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("record outbound")


@outbound_bp.put("/<int:outbound_id>")
@require_actor
def convert_outbound_route(outbound_id: int):
    """
    Convert an open borrow into a permanent transfer.

    Request body: {"outbound_type": "transfer"}
    """
    try:
        data = json_body()
        if data.get("outbound_type") != OUTBOUND_TYPE_TRANSFER:
            raise BadRequestError("Only conversion to transfer is supported")
        record = outbound_service.convert_borrow_to_transfer(
            outbound_id=outbound_id,
            caller_id=g.actor.user_id,
            caller_is_admin=g.actor.is_admin,
        )
        return jsonify({"message": "Borrow converted to transfer", "record": record.to_dict()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("convert outbound record")
