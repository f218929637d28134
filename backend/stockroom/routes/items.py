# Overview: Flask API routes for items; parses input and returns JSON responses.

from flask import Blueprint, jsonify, g, request

from ..decorators import require_actor, require_admin
from ..errors import InventoryError, error_response
from ..services import item_service
from ..validation import coerce_bool, coerce_int
from . import internal_error, json_body, page_args


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_actor
def list_items_route():
    """
    List items, newest first.

    Query params: category_id, status, search, page, limit
    """
    try:
        page, limit = page_args()
        result = item_service.list_items(
            category_id=coerce_int(request.args.get("category_id"), "category_id", allow_none=True),
            status=request.args.get("status") or None,
            search=request.args.get("search") or None,
            page=page,
            limit=limit,
        )
        return jsonify(result.to_dict("items")), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list items")


@items_bp.get("/by-category-path")
@require_actor
def items_by_category_path_route():
    try:
        return jsonify({"items": item_service.list_items_by_category_path()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list items by category path")


@items_bp.get("/<int:item_id>")
@require_actor
def get_item_route(item_id: int):
    try:
        return jsonify({"item": item_service.get_item_detail(item_id)}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load item")


@items_bp.post("")
@require_actor
@require_admin
def create_item_route():
    """
    Create an item directly.

    Non-administrators go through POST /api/approvals with
    mode=create_unique instead.

    Request body:
    {
        "category_id": 3,
        "item_name": "Dexterous hand",
        "unique_code": "LHT3000",     (required unless stackable)
        "is_stackable": false,        (optional, defaults to the category hint)
        "model": "...", "specification": "...", "description": "...",
        "initial_stock": 1            (optional, default 0)
    }

    Returns:
        201: Item created
        400: Invalid input
        404: Category not found
        409: Unique code already exists
    """
    try:
        data = json_body()
        is_stackable = data.get("is_stackable")
        item = item_service.create_item(
            category_id=coerce_int(data.get("category_id"), "category_id"),
            name=data.get("item_name") or data.get("name"),
            operator_id=g.actor.user_id,
            is_stackable=None if is_stackable is None else coerce_bool(is_stackable, "is_stackable"),
            unique_code=data.get("unique_code"),
            model=data.get("model"),
            specification=data.get("specification"),
            description=data.get("description"),
            initial_stock=coerce_int(data.get("initial_stock"), "initial_stock", allow_none=True) or 0,
        )
        return jsonify({"message": "Item created successfully", "item": item.to_dict()}), 201
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("create item")


@items_bp.put("/<int:item_id>")
@require_actor
def update_item_route(item_id: int):
    """Edit name, model, specification or description."""
    try:
        data = json_body()
        if "item_name" in data and "name" not in data:
            data["name"] = data.pop("item_name")
        item = item_service.update_item(item_id, data, operator_id=g.actor.user_id)
        return jsonify({"message": "Item updated successfully", "item": item.to_dict()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("update item")


@items_bp.delete("/<int:item_id>")
@require_actor
@require_admin
def delete_item_route(item_id: int):
    try:
        warning = item_service.delete_item(item_id, operator_id=g.actor.user_id)
        body = {"message": "Item deleted successfully"}
        if warning:
            body["warning"] = warning
        return jsonify(body), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("delete item")
