# Overview: Error taxonomy shared by services and routes.

from __future__ import annotations

from flask import jsonify


class InventoryError(Exception):
    """
    Base class for every failure the inventory engine reports to callers.

    Each subclass carries a stable machine-readable `kind` and the HTTP status
    the route layer answers with. The message is meant for humans.
    """
    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class BadRequestError(InventoryError):
    """400-level input problem (invalid quantity, missing borrower, insufficient stock)."""
    kind = "bad_request"
    status_code = 400


class ForbiddenError(InventoryError):
    """Caller is not allowed to touch this record."""
    kind = "forbidden"
    status_code = 403


class NotFoundError(InventoryError):
    kind = "not_found"
    status_code = 404


class ConflictError(InventoryError):
    """409-level business rule conflict (duplicate code, already reviewed, already returned)."""
    kind = "conflict"
    status_code = 409


class InternalError(InventoryError):
    """Unexpected persistence failure."""
    kind = "internal"
    status_code = 500


def error_response(exc: InventoryError):
    return jsonify(exc.to_dict()), exc.status_code
