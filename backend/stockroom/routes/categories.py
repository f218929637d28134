# Overview: Flask API routes for the category tree; parses input and returns JSON responses.

"""
Category API Routes

- Reads are open to every authenticated caller.
- Create/update/delete are administrator-only.
"""

from flask import Blueprint, jsonify, g

from ..decorators import require_actor, require_admin
from ..errors import InventoryError, error_response
from ..services import category_service
from ..validation import coerce_bool, coerce_int
from . import internal_error, json_body


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_actor
def category_tree_route():
    """Whole tree as nested nodes."""
    try:
        return jsonify({"categories": category_service.list_tree()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load category tree")


@categories_bp.get("/top-level")
@require_actor
def top_level_route():
    try:
        rows = category_service.list_top_level()
        return jsonify({"categories": [c.to_dict() for c in rows]}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list top-level categories")


@categories_bp.get("/flat")
@require_actor
def flat_route():
    try:
        return jsonify({"categories": category_service.list_flat()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list categories")


@categories_bp.get("/<int:category_id>")
@require_actor
def get_category_route(category_id: int):
    try:
        category = category_service.get_category(category_id)
        data = category.to_dict()
        data["path"] = category_service.path_of(category_id)
        return jsonify({"category": data}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load category")


@categories_bp.get("/<int:category_id>/children")
@require_actor
def children_route(category_id: int):
    try:
        rows = category_service.list_children(category_id)
        return jsonify({"categories": [c.to_dict() for c in rows]}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list child categories")


@categories_bp.post("")
@require_actor
@require_admin
def create_category_route():
    """
    Create a category.

    Request body:
    {
        "name": "Robots",
        "parent_id": 1,          (optional, omit for a root)
        "sort_order": 0,         (optional)
        "description": "...",    (optional)
        "is_stackable": false    (optional)
    }

    Returns:
        201: Category created
        400: Invalid input
        404: Parent category not found
    """
    try:
        data = json_body()
        category = category_service.create_category(
            name=data.get("name"),
            parent_id=coerce_int(data.get("parent_id"), "parent_id", allow_none=True),
            sort_order=coerce_int(data.get("sort_order"), "sort_order", allow_none=True) or 0,
            description=data.get("description"),
            is_stackable=coerce_bool(data.get("is_stackable"), "is_stackable", default=False),
            operator_id=g.actor.user_id,
        )
        return jsonify({"message": "Category created successfully", "category": category.to_dict()}), 201
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("create category")


@categories_bp.put("/<int:category_id>")
@require_actor
@require_admin
def update_category_route(category_id: int):
    try:
        category = category_service.update_category(category_id, json_body(), operator_id=g.actor.user_id)
        return jsonify({"message": "Category updated successfully", "category": category.to_dict()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("update category")


@categories_bp.delete("/<int:category_id>")
@require_actor
@require_admin
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(category_id, operator_id=g.actor.user_id)
        return jsonify({"message": "Category deleted successfully"}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("delete category")
