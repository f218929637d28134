from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from .errors import BadRequestError
from .time_utils import parse_iso_date


# Keeps a single request from asking for an absurd amount of stock.
MAX_QUANTITY = 1_000_000


def ensure_payload(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise BadRequestError("Invalid JSON payload")
    return payload


def coerce_int(value: Any, field: str, *, allow_none: bool = False) -> int | None:
    """
    Strict integer coercion for JSON input.

    Rejects floats, booleans, scientific notation and decimal strings.
    """
    if value is None:
        if allow_none:
            return None
        raise BadRequestError(f"{field} is required")

    # bool is a subclass of int
    if isinstance(value, bool):
        raise BadRequestError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise BadRequestError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            if allow_none:
                return None
            raise BadRequestError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise BadRequestError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise BadRequestError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise BadRequestError(f"{field} must be an integer")
    raise BadRequestError(f"{field} must be an integer")


def coerce_quantity(value: Any, field: str = "quantity") -> int:
    qty = coerce_int(value, field)
    if qty <= 0:
        raise BadRequestError(f"{field} must be greater than 0")
    if qty > MAX_QUANTITY:
        raise BadRequestError(f"{field} cannot exceed {MAX_QUANTITY}")
    return qty


def coerce_bool(value: Any, field: str, *, default: bool | None = None) -> bool:
    if value is None:
        if default is None:
            raise BadRequestError(f"{field} is required")
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes"}:
            return True
        if lowered in {"false", "0", "no"}:
            return False
    raise BadRequestError(f"{field} must be a boolean")


def coerce_date(value: Any, field: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise BadRequestError(f"{field} must be an ISO-8601 date")
    raise BadRequestError(f"{field} must be an ISO-8601 date")


def clean_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    """Strip strings; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if max_length and len(text) > max_length:
        raise BadRequestError(f"{field} exceeds max length {max_length}")
    return text


def require_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    allowed = tuple(choices)
    if value not in allowed:
        raise BadRequestError(f"{field} must be one of: {', '.join(allowed)}")
    return value


def pagination(page: Any, limit: Any, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    page_num = coerce_int(page, "page", allow_none=True) or 1
    page_size = coerce_int(limit, "limit", allow_none=True) or default_limit
    if page_num < 1:
        raise BadRequestError("page must be >= 1")
    if page_size < 1:
        raise BadRequestError("limit must be >= 1")
    return page_num, min(page_size, max_limit)
