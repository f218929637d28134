# Overview: Service-layer operations for outbound stock; encapsulates business logic and database work.

"""
Outbound engine.

Outbound is any event that decreases an item's quantity:
- transfer: permanent hand-over
- borrow:   temporary loan; borrower name, phone and email are required,
            expected_return_date may be None for an open-ended loan

The sufficiency check and the decrement happen on the locked item row in
the same transaction, so two concurrent outbounds can never both pass the
check against a stale quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from ..errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..extensions import db
from ..models import OutboundRecord
from ..time_utils import utctoday
from ..validation import clean_text, coerce_quantity, require_choice
from . import item_service, operation_log_service
from .concurrency import lock_for_update, run_with_retry


OUTBOUND_TYPE_TRANSFER = "transfer"
OUTBOUND_TYPE_BORROW = "borrow"
OUTBOUND_TYPES = (OUTBOUND_TYPE_TRANSFER, OUTBOUND_TYPE_BORROW)


@dataclass(frozen=True)
class BorrowerInfo:
    name: str | None = None
    phone: str | None = None
    email: str | None = None

    @classmethod
    def from_mapping(cls, data: dict | None) -> "BorrowerInfo":
        data = data or {}
        return cls(
            name=clean_text(data.get("borrower_name"), "borrower_name", max_length=128),
            phone=clean_text(data.get("borrower_phone"), "borrower_phone", max_length=64),
            email=clean_text(data.get("borrower_email"), "borrower_email", max_length=255),
        )

    def require_complete(self) -> None:
        if not (self.name and self.phone and self.email):
            raise BadRequestError("Borrowing requires borrower name, phone and email")


@dataclass(frozen=True)
class OutboundResult:
    outbound_id: int
    item_id: int
    new_quantity: int

    def to_dict(self) -> dict:
        return {"outbound_id": self.outbound_id, "item_id": self.item_id, "new_quantity": self.new_quantity}


def _validate_borrower(outbound_type: str, borrower: BorrowerInfo | None) -> BorrowerInfo:
    borrower = borrower or BorrowerInfo()
    if outbound_type == OUTBOUND_TYPE_BORROW:
        borrower.require_complete()
    return borrower


def _record_outbound_inner(
    *,
    item_id: int,
    quantity: int,
    outbound_type: str,
    operator_id: int,
    borrower: BorrowerInfo,
    expected_return_date: date | None = None,
    remarks: str | None = None,
    log_detail: dict | None = None,
) -> OutboundResult:
    """Core outbound logic without retry or commit.

    Called by both the public record_outbound() and approval review.
    """
    item = item_service.lock_item(item_id)
    new_quantity = item_service.apply_outbound(item, quantity)

    is_borrow = outbound_type == OUTBOUND_TYPE_BORROW
    record = OutboundRecord(
        item_id=item.id,
        unique_code_snapshot=item.unique_code,
        quantity=quantity,
        outbound_type=outbound_type,
        borrower_name=borrower.name,
        borrower_phone=borrower.phone,
        borrower_email=borrower.email,
        expected_return_date=expected_return_date if is_borrow else None,
        is_returned=False,
        operator_id=operator_id,
        remarks=remarks,
    )
    db.session.add(record)
    db.session.flush()

    operation_log_service.record(
        operation_type=operation_log_service.OP_OUTBOUND,
        operator_id=operator_id,
        target_type="item",
        target_id=item.id,
        detail={
            "outbound_id": record.id,
            "quantity": quantity,
            "outbound_type": outbound_type,
            "borrower_name": borrower.name,
            "expected_return_date": expected_return_date.isoformat() if expected_return_date else None,
            "new_quantity": new_quantity,
            **(log_detail or {}),
        },
    )

    return OutboundResult(outbound_id=record.id, item_id=item.id, new_quantity=new_quantity)


def record_outbound(
    *,
    item_id: int,
    quantity: int,
    outbound_type: str,
    operator_id: int,
    borrower: BorrowerInfo | None = None,
    expected_return_date: date | None = None,
    remarks: str | None = None,
) -> OutboundResult:
    """
    Take stock out of an item.

    Raises:
        BadRequestError: quantity <= 0, unknown outbound_type, incomplete
            borrower info for a borrow, or insufficient stock
        NotFoundError: item missing
    """
    qty = coerce_quantity(quantity)
    require_choice(outbound_type, "outbound_type", OUTBOUND_TYPES)
    who = _validate_borrower(outbound_type, borrower)
    note = clean_text(remarks, "remarks")

    def _op():
        result = _record_outbound_inner(
            item_id=item_id,
            quantity=qty,
            outbound_type=outbound_type,
            operator_id=operator_id,
            borrower=who,
            expected_return_date=expected_return_date,
            remarks=note,
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def convert_borrow_to_transfer(*, outbound_id: int, caller_id: int, caller_is_admin: bool = False) -> OutboundRecord:
    """
    Reclassify an open borrow as a permanent transfer.

    Clears return bookkeeping so the record leaves the borrower's active-loan
    set. Quantities are untouched: the stock already left on the borrow.

    Raises:
        NotFoundError: record missing
        ForbiddenError: caller is neither the operator nor an admin
        BadRequestError: record is not a borrow
        ConflictError: borrow was already returned
    """
    def _op():
        record = lock_for_update(db.session.query(OutboundRecord).filter_by(id=outbound_id)).first()
        if record is None:
            raise NotFoundError(f"Outbound record {outbound_id} not found")
        if not caller_is_admin and record.operator_id != caller_id:
            raise ForbiddenError("You do not have permission to update this outbound record")
        if record.outbound_type != OUTBOUND_TYPE_BORROW:
            raise BadRequestError("Only borrow records can be converted to transfer")
        if record.is_returned:
            raise ConflictError("This borrow was already returned and cannot become a transfer")

        record.outbound_type = OUTBOUND_TYPE_TRANSFER
        record.is_returned = False
        record.actual_return_date = None
        db.session.flush()

        operation_log_service.record(
            operation_type=operation_log_service.OP_OUTBOUND,
            operator_id=caller_id,
            target_type="outbound_record",
            target_id=record.id,
            detail={"action": "convert_to_transfer"},
        )

        db.session.commit()
        return record

    return run_with_retry(_op)


def get_outbound_record(outbound_id: int) -> OutboundRecord:
    record = db.session.get(OutboundRecord, outbound_id)
    if record is None:
        raise NotFoundError(f"Outbound record {outbound_id} not found")
    return record


def list_outbound_records(
    *,
    item_id: int | None = None,
    is_returned: bool | None = None,
    borrower: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> item_service.Page:
    q = db.session.query(OutboundRecord)
    if item_id is not None:
        q = q.filter(OutboundRecord.item_id == item_id)
    if is_returned is not None:
        q = q.filter(OutboundRecord.is_returned.is_(is_returned))
    if borrower:
        q = q.filter(OutboundRecord.borrower_name == borrower)
    total = q.count()
    rows = (
        q.order_by(OutboundRecord.created_at.desc(), OutboundRecord.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return item_service.Page(rows=rows, page=page, limit=limit, total=total)


def _open_borrows():
    return db.session.query(OutboundRecord).filter(
        OutboundRecord.outbound_type == OUTBOUND_TYPE_BORROW,
        OutboundRecord.is_returned.is_(False),
    )


def list_unreturned_borrows() -> list[OutboundRecord]:
    """Open loans, earliest deadline first; open-ended loans come last."""
    return (
        _open_borrows()
        .order_by(
            OutboundRecord.expected_return_date.is_(None),
            OutboundRecord.expected_return_date,
            OutboundRecord.id,
        )
        .all()
    )


def list_borrows_for_operator(operator_id: int) -> list[OutboundRecord]:
    """The caller's own open loans, used for quick return."""
    return (
        _open_borrows()
        .filter(OutboundRecord.operator_id == operator_id)
        .order_by(
            OutboundRecord.expected_return_date.is_(None),
            OutboundRecord.expected_return_date,
            OutboundRecord.id,
        )
        .all()
    )


def list_overdue_borrows(as_of: date | None = None) -> list[OutboundRecord]:
    """Open loans whose deadline is before as_of (default today). Read-only, for reminders."""
    cutoff = as_of or utctoday()
    return (
        _open_borrows()
        .filter(
            OutboundRecord.expected_return_date.isnot(None),
            OutboundRecord.expected_return_date < cutoff,
        )
        .order_by(OutboundRecord.expected_return_date, OutboundRecord.id)
        .all()
    )
