# Overview: Read-only dashboard statistics and the operation log feed.

from flask import Blueprint, jsonify, request

from ..decorators import require_actor, require_admin
from ..errors import InventoryError, error_response
from ..services import operation_log_service, stats_service
from ..validation import coerce_date, coerce_int
from . import internal_error


stats_bp = Blueprint("stats", __name__, url_prefix="/api")


@stats_bp.get("/stats/overview")
@require_actor
def overview_route():
    try:
        return jsonify({"overview": stats_service.get_overview()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load overview statistics")


@stats_bp.get("/stats/by-category")
@require_actor
def by_category_route():
    try:
        return jsonify({"statistics": stats_service.get_category_stats()}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load category statistics")


@stats_bp.get("/stats/popular-items")
@require_actor
def popular_items_route():
    try:
        limit = coerce_int(request.args.get("limit"), "limit", allow_none=True) or 10
        return jsonify({"items": stats_service.get_popular_items(min(max(limit, 1), 100))}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load popular items")


@stats_bp.get("/stats/trends")
@require_actor
def trends_route():
    try:
        days = coerce_int(request.args.get("days"), "days", allow_none=True) or 30
        return jsonify({"trends": stats_service.get_trends(min(max(days, 1), 365))}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load trend statistics")


@stats_bp.get("/logs")
@require_actor
@require_admin
def operation_logs_route():
    """Query params: operation_type, operator_id, target_type, target_id, limit"""
    try:
        limit = coerce_int(request.args.get("limit"), "limit", allow_none=True) or 200
        rows = operation_log_service.list_logs(
            operation_type=request.args.get("operation_type") or None,
            operator_id=coerce_int(request.args.get("operator_id"), "operator_id", allow_none=True),
            target_type=request.args.get("target_type") or None,
            target_id=coerce_int(request.args.get("target_id"), "target_id", allow_none=True),
            limit=min(max(limit, 1), 1000),
        )
        return jsonify({"logs": [r.to_dict() for r in rows]}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("list operation logs")


@stats_bp.get("/logs/target/<string:target_type>/<int:target_id>")
@require_actor
@require_admin
def target_logs_route(target_type: str, target_id: int):
    try:
        rows = operation_log_service.logs_for_target(target_type, target_id)
        return jsonify({"logs": [r.to_dict() for r in rows]}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load target operation history")


@stats_bp.get("/logs/statistics")
@require_actor
@require_admin
def log_statistics_route():
    """Query params: start_date, end_date (ISO dates, inclusive)"""
    try:
        stats = operation_log_service.log_statistics(
            start_date=coerce_date(request.args.get("start_date") or None, "start_date"),
            end_date=coerce_date(request.args.get("end_date") or None, "end_date"),
        )
        return jsonify({"statistics": stats}), 200
    except InventoryError as e:
        return error_response(e)
    except Exception:
        return internal_error("load operation statistics")
