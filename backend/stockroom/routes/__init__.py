# Overview: Small helpers shared by the API blueprints.

from flask import current_app, jsonify, request

from ..validation import ensure_payload, pagination


def page_args() -> tuple[int, int]:
    """(page, limit) from the query string, clamped to MAX_PAGE_SIZE."""
    return pagination(
        request.args.get("page"),
        request.args.get("limit"),
        default_limit=current_app.config["DEFAULT_PAGE_SIZE"],
        max_limit=current_app.config["MAX_PAGE_SIZE"],
    )


def json_body() -> dict:
    return ensure_payload(request.get_json(silent=True))


def internal_error(action: str):
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error", "kind": "internal"}), 500
