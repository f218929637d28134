# Overview: Service-layer operations for inbound stock; encapsulates business logic and database work.

"""
Inbound engine.

Inbound is any event that increases an item's quantity:
- initial: stocking (first delivery or top-up of a stackable item)
- return:  a borrowed quantity coming back; must reference the outbound
           record it closes

Every call runs in one transaction holding the item row lock (and the
outbound row lock for returns). Validation happens before any write; any
failure rolls the whole transaction back.

Batch return is the one deliberate exception to all-or-nothing: element
failures are collected and the successful subset is committed. Only
infrastructure errors abort the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..errors import BadRequestError, ConflictError, ForbiddenError, InventoryError, NotFoundError
from ..extensions import db
from ..models import InboundRecord, OutboundRecord
from ..time_utils import utctoday
from ..validation import clean_text, coerce_quantity, require_choice
from . import item_service, operation_log_service
from .outbound_service import OUTBOUND_TYPE_BORROW
from .concurrency import lock_for_update, run_with_retry


INBOUND_TYPE_INITIAL = "initial"
INBOUND_TYPE_RETURN = "return"
INBOUND_TYPES = (INBOUND_TYPE_INITIAL, INBOUND_TYPE_RETURN)


@dataclass(frozen=True)
class InboundResult:
    inbound_id: int
    item_id: int
    new_quantity: int

    def to_dict(self) -> dict:
        return {"inbound_id": self.inbound_id, "item_id": self.item_id, "new_quantity": self.new_quantity}


@dataclass
class BatchReturnResult:
    results: list[dict] = field(default_factory=list)
    errors: list[dict] = field(default_factory=list)

    @property
    def message(self) -> str:
        msg = f"Successfully returned {len(self.results)} items"
        if self.errors:
            msg += f", {len(self.errors)} failed"
        return msg

    def to_dict(self) -> dict:
        return {"message": self.message, "results": self.results, "errors": self.errors}


def _lock_outbound(outbound_id: int) -> OutboundRecord | None:
    return lock_for_update(db.session.query(OutboundRecord).filter_by(id=outbound_id)).first()


def _mark_returned(outbound: OutboundRecord) -> None:
    outbound.is_returned = True
    outbound.actual_return_date = utctoday()


def _record_inbound_inner(
    *,
    item_id: int,
    quantity: int,
    inbound_type: str,
    operator_id: int,
    related_outbound_id: int | None = None,
    remarks: str | None = None,
    log_detail: dict | None = None,
) -> InboundResult:
    """Core inbound logic without retry or commit.

    Called by both the public record_inbound() and approval review, so a
    deferred request replays exactly the same checks.
    """
    item = item_service.lock_item(item_id)

    if inbound_type == INBOUND_TYPE_RETURN:
        if related_outbound_id is None:
            raise BadRequestError("Related outbound ID is required for return type")
        outbound = _lock_outbound(related_outbound_id)
        if outbound is None:
            raise NotFoundError(f"Related outbound record {related_outbound_id} not found")
        if outbound.outbound_type != OUTBOUND_TYPE_BORROW:
            raise BadRequestError("Only borrowed records can be returned")
        if outbound.item_id != item.id:
            raise BadRequestError("Related outbound record belongs to a different item")
        if outbound.is_returned:
            raise ConflictError("This outbound record is already marked as returned")
        _mark_returned(outbound)
    else:
        # related_outbound_id is only meaningful for returns
        related_outbound_id = None

    record = InboundRecord(
        item_id=item.id,
        unique_code_snapshot=item.unique_code,
        quantity=quantity,
        inbound_type=inbound_type,
        related_outbound_id=related_outbound_id,
        operator_id=operator_id,
        remarks=remarks,
    )
    db.session.add(record)

    new_quantity = item_service.apply_inbound(item, quantity)
    db.session.flush()

    operation_log_service.record(
        operation_type=operation_log_service.OP_INBOUND,
        operator_id=operator_id,
        target_type="item",
        target_id=item.id,
        detail={
            "inbound_id": record.id,
            "quantity": quantity,
            "inbound_type": inbound_type,
            "related_outbound_id": related_outbound_id,
            "new_quantity": new_quantity,
            **(log_detail or {}),
        },
    )

    return InboundResult(inbound_id=record.id, item_id=item.id, new_quantity=new_quantity)


def record_inbound(
    *,
    item_id: int,
    quantity: int,
    inbound_type: str,
    operator_id: int,
    related_outbound_id: int | None = None,
    remarks: str | None = None,
) -> InboundResult:
    """
    Receive stock into an item.

    Raises:
        BadRequestError: quantity <= 0, unknown inbound_type, or a return
            without related_outbound_id, against a non-borrow record or
            against another item's record
        NotFoundError: item or related outbound record missing
        ConflictError: related outbound record already returned
    """
    qty = coerce_quantity(quantity)
    require_choice(inbound_type, "inbound_type", INBOUND_TYPES)
    note = clean_text(remarks, "remarks")

    def _op():
        result = _record_inbound_inner(
            item_id=item_id,
            quantity=qty,
            inbound_type=inbound_type,
            operator_id=operator_id,
            related_outbound_id=related_outbound_id,
            remarks=note,
        )
        db.session.commit()
        return result

    return run_with_retry(_op)


def _return_one(outbound_id: int, operator_id: int, remarks: str | None) -> dict:
    outbound = _lock_outbound(outbound_id)
    if outbound is None:
        raise NotFoundError("Outbound record not found")
    if outbound.operator_id != operator_id:
        raise ForbiddenError("No permission to return this item")
    if outbound.outbound_type != OUTBOUND_TYPE_BORROW:
        raise BadRequestError("Only borrowed records can be returned")
    if outbound.is_returned:
        raise ConflictError("Item already returned")
    if outbound.item_id is None:
        raise NotFoundError("Item not found")

    result = _record_inbound_inner(
        item_id=outbound.item_id,
        quantity=outbound.quantity,
        inbound_type=INBOUND_TYPE_RETURN,
        operator_id=operator_id,
        related_outbound_id=outbound_id,
        remarks=remarks,
        log_detail={"batch_return": True},
    )
    return {
        "outbound_id": outbound_id,
        "inbound_id": result.inbound_id,
        "item_id": result.item_id,
        "item_name": outbound.item.name if outbound.item else None,
        "quantity": outbound.quantity,
        "new_quantity": result.new_quantity,
        "success": True,
    }


def _lock_order(outbound_ids: list[int]) -> list[int]:
    item_ids = dict(
        db.session.query(OutboundRecord.id, OutboundRecord.item_id)
        .filter(OutboundRecord.id.in_(set(outbound_ids)))
        .all()
    )
    # unknown ids and rows whose item was deleted go first; they fail without locking an item
    return sorted(outbound_ids, key=lambda oid: (item_ids.get(oid) or 0, oid))


def batch_return(*, outbound_ids: list[int], operator_id: int, remarks: str | None = None) -> BatchReturnResult:
    """
    Return several of the caller's own borrows in one transaction.

    Records are processed one at a time ordered by (item_id, outbound_id),
    so item row locks are always taken in ascending order. Element-level
    failures (not found, not the caller's, not a borrow, already returned)
    land in `errors`; the rest commit together. Infrastructure failures
    roll back the whole batch.

    Raises:
        BadRequestError: empty id list
    """
    if not outbound_ids:
        raise BadRequestError("Please select at least one borrowed record to return")
    note = clean_text(remarks, "remarks")

    def _op():
        outcome = BatchReturnResult()
        for outbound_id in _lock_order(outbound_ids):
            try:
                outcome.results.append(_return_one(outbound_id, operator_id, note))
            except InventoryError as exc:
                outcome.errors.append({"outbound_id": outbound_id, "error": exc.message, "kind": exc.kind})

        db.session.commit()
        if outcome.errors:
            current_app.logger.info(
                "Batch return by user %s: %d returned, %d failed",
                operator_id, len(outcome.results), len(outcome.errors),
            )
        return outcome

    return run_with_retry(_op)


def get_inbound_record(inbound_id: int) -> InboundRecord:
    record = db.session.get(InboundRecord, inbound_id)
    if record is None:
        raise NotFoundError(f"Inbound record {inbound_id} not found")
    return record


def list_inbound_records(*, item_id: int | None = None, page: int = 1, limit: int = 20) -> item_service.Page:
    q = db.session.query(InboundRecord)
    if item_id is not None:
        q = q.filter(InboundRecord.item_id == item_id)
    total = q.count()
    rows = (
        q.order_by(InboundRecord.created_at.desc(), InboundRecord.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return item_service.Page(rows=rows, page=page, limit=limit, total=total)
