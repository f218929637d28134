# Overview: Best-effort operation log writer used by every mutating service, plus the audit read side.

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from flask import current_app, has_request_context, request
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import OperationLog
from ..time_utils import day_key, start_of_day


OP_INBOUND = "inbound"
OP_OUTBOUND = "outbound"
OP_EDIT_ITEM = "edit_item"
OP_EDIT_CATEGORY = "edit_category"
OP_APPROVAL = "approval"


def client_ip() -> str | None:
    """Best guess at the caller's address when running inside a request."""
    if not has_request_context():
        return None
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("X-Real-IP") or request.remote_addr


def record(
    *,
    operation_type: str,
    operator_id: int | None,
    target_type: str | None = None,
    target_id: int | None = None,
    detail: dict[str, Any] | None = None,
    ip_address: str | None = None,
) -> OperationLog | None:
    """
    Append an operation log row inside a SAVEPOINT of the current transaction.

    - Never commits; the caller's commit persists the row, so a rolled-back
      business transaction leaves no log behind.
    - A database failure rolls back only the savepoint, is logged as a
      warning and swallowed. The business transaction carries on.
    """
    entry = OperationLog(
        operation_type=operation_type,
        operator_id=operator_id,
        target_type=target_type,
        target_id=target_id,
        detail=detail or {},
        ip_address=ip_address if ip_address is not None else client_ip(),
    )
    # Business changes flush outside the savepoint so their errors propagate.
    db.session.flush()
    try:
        with db.session.begin_nested():
            db.session.add(entry)
    except SQLAlchemyError:
        current_app.logger.warning(
            "Failed to record operation log: %s by user %s on %s %s",
            operation_type, operator_id, target_type, target_id,
            exc_info=True,
        )
        return None

    current_app.logger.debug("Operation logged: %s by user %s", operation_type, operator_id)
    return entry


def list_logs(
    *,
    operation_type: str | None = None,
    operator_id: int | None = None,
    target_type: str | None = None,
    target_id: int | None = None,
    limit: int = 200,
) -> list[OperationLog]:
    q = db.session.query(OperationLog)
    if operation_type:
        q = q.filter(OperationLog.operation_type == operation_type)
    if operator_id is not None:
        q = q.filter(OperationLog.operator_id == operator_id)
    if target_type:
        q = q.filter(OperationLog.target_type == target_type)
    if target_id is not None:
        q = q.filter(OperationLog.target_id == target_id)
    return q.order_by(OperationLog.created_at.desc(), OperationLog.id.desc()).limit(limit).all()


def logs_for_target(target_type: str, target_id: int) -> list[OperationLog]:
    """Full history of one record, newest first."""
    return (
        db.session.query(OperationLog)
        .filter(OperationLog.target_type == target_type, OperationLog.target_id == target_id)
        .order_by(OperationLog.created_at.desc(), OperationLog.id.desc())
        .all()
    )


def log_statistics(*, start_date: date | None = None, end_date: date | None = None) -> list[dict]:
    """Log counts per (day, operation_type), newest day first. Both bounds are inclusive."""
    day = func.date(OperationLog.created_at)
    q = db.session.query(day, OperationLog.operation_type, func.count(OperationLog.id))
    if start_date is not None:
        q = q.filter(OperationLog.created_at >= start_of_day(start_date))
    if end_date is not None:
        q = q.filter(OperationLog.created_at < start_of_day(end_date + timedelta(days=1)))
    rows = q.group_by(day, OperationLog.operation_type).order_by(day.desc(), OperationLog.operation_type).all()
    return [{"date": day_key(d), "operation_type": op, "count": count} for d, op, count in rows]
