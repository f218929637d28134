"""
Approval workflow service.

WHY: Non-administrators may not change stock directly. They submit an
approval request carrying a serialized inbound/outbound intent; an
administrator reviews it, and approval replays the same engine logic the
direct path uses, crediting the ORIGINAL requester as operator.

LIFECYCLE:
1. PENDING: request created by the requester
2. APPROVED: reviewed; the embedded intent was executed in the same transaction
3. REJECTED: reviewed; the item ledger was not touched

DESIGN PRINCIPLES:
- The request row is locked for the whole review. Status is checked under
  that lock, so at most one review ever executes the intent.
- Status change and stock change commit together or not at all. If the
  replay fails (insufficient stock, already returned), the request stays
  PENDING.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app

from ..errors import BadRequestError, ConflictError, InternalError, NotFoundError
from ..extensions import db
from ..models import ApprovalRequest, InboundRecord
from ..time_utils import utcnow
from ..validation import clean_text
from . import inbound_service, item_service, operation_log_service, outbound_service
from .approval_payloads import (
    ApprovalPayload,
    CreateUniqueItem,
    OutboundIntent,
    REQUEST_TYPES,
    UpdateStackable,
    parse_payload,
)
from .concurrency import lock_for_update, run_with_retry


# =============================================================================
# STATUS CONSTANTS
# =============================================================================

APPROVAL_STATUS_PENDING = "pending"
APPROVAL_STATUS_APPROVED = "approved"
APPROVAL_STATUS_REJECTED = "rejected"
APPROVAL_STATUSES = (APPROVAL_STATUS_PENDING, APPROVAL_STATUS_APPROVED, APPROVAL_STATUS_REJECTED)


@dataclass(frozen=True)
class Actor:
    """Already-authenticated caller supplied by the service layer."""
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class ReviewOutcome:
    request: ApprovalRequest
    execution: dict | None = None

    def to_dict(self) -> dict:
        approved = self.request.status == APPROVAL_STATUS_APPROVED
        return {
            "message": "Request approved and processed successfully" if approved else "Request rejected",
            "status": self.request.status,
            "request": self.request.to_dict(),
            "execution": self.execution,
        }


# =============================================================================
# REQUEST CREATION
# =============================================================================

def create_request(*, requester_id: int, request_type: str, request_data: Any) -> ApprovalRequest:
    """
    Store a pending request. Pure insert: no stock is touched.

    The payload is parsed up front and stored in normalized form, so a
    malformed intent is rejected now rather than at review time.

    Raises:
        BadRequestError: unknown request_type or malformed request_data
    """
    payload = parse_payload(request_type, request_data)

    def _op():
        req = ApprovalRequest(
            request_type=request_type,
            requester_id=requester_id,
            request_data=payload.to_dict(),
            status=APPROVAL_STATUS_PENDING,
        )
        db.session.add(req)
        db.session.flush()

        operation_log_service.record(
            operation_type=operation_log_service.OP_APPROVAL,
            operator_id=requester_id,
            target_type="approval_request",
            target_id=req.id,
            detail={"action": "create_request", "request_type": request_type, "request_data": req.request_data},
        )

        db.session.commit()
        return req

    return run_with_retry(_op)


# =============================================================================
# REVIEW
# =============================================================================

def _execute(payload: ApprovalPayload, *, requester_id: int, request_id: int) -> dict:
    """Replay the embedded intent. One branch per payload variant."""
    audit = {"request_id": request_id}

    if isinstance(payload, CreateUniqueItem):
        item = item_service._create_item_inner(
            category_id=payload.category_id,
            name=payload.item_name,
            is_stackable=False,
            unique_code=payload.unique_code,
            model=payload.model,
            specification=payload.specification,
            description=payload.description,
            initial_stock=payload.initial_stock,
            operator_id=requester_id,
            remarks=payload.remarks,
        )
        inbound = (
            db.session.query(InboundRecord)
            .filter_by(item_id=item.id)
            .order_by(InboundRecord.id)
            .first()
        )
        operation_log_service.record(
            operation_type=operation_log_service.OP_INBOUND,
            operator_id=requester_id,
            target_type="item",
            target_id=item.id,
            detail={
                "action": "approved_create_unique_item",
                "unique_code": item.unique_code,
                "inbound_id": inbound.id,
                "quantity": payload.initial_stock,
                **audit,
            },
        )
        return {"mode": payload.mode, "item_id": item.id, "inbound_id": inbound.id, "new_quantity": item.current_quantity}

    if isinstance(payload, UpdateStackable):
        result = inbound_service._record_inbound_inner(
            item_id=payload.item_id,
            quantity=payload.quantity,
            inbound_type=payload.inbound_type,
            operator_id=requester_id,
            related_outbound_id=payload.related_outbound_id,
            remarks=payload.remarks,
            log_detail={"action": "approved_inbound", **audit},
        )
        mode = "legacy" if payload.legacy else "update_stackable"
        return {"mode": mode, **result.to_dict()}

    if isinstance(payload, OutboundIntent):
        result = outbound_service._record_outbound_inner(
            item_id=payload.item_id,
            quantity=payload.quantity,
            outbound_type=payload.outbound_type,
            operator_id=requester_id,
            borrower=payload.borrower,
            expected_return_date=payload.expected_return_date,
            remarks=payload.remarks,
            log_detail={"action": "approved_outbound", **audit},
        )
        return {"mode": "outbound", **result.to_dict()}

    raise InternalError(f"Unhandled approval payload: {type(payload).__name__}")


def review(*, request_id: int, reviewer_id: int, approved: bool, comment: str | None = None) -> ReviewOutcome:
    """
    Approve or reject a pending request.

    Raises:
        BadRequestError: approved is not a boolean, or the stored payload is
            malformed; also any BadRequest from the replayed engine call
            (e.g. insufficient stock)
        NotFoundError: request missing, or the target item/outbound is gone
        ConflictError: request already reviewed, or the replayed engine call
            conflicts (e.g. outbound already returned)
    """
    if not isinstance(approved, bool):
        raise BadRequestError("Approved status is required")
    note = clean_text(comment, "comment")

    def _op():
        req = lock_for_update(db.session.query(ApprovalRequest).filter_by(id=request_id)).first()
        if req is None:
            raise NotFoundError(f"Approval request {request_id} not found")
        if req.status != APPROVAL_STATUS_PENDING:
            raise ConflictError("Request has already been reviewed")

        req.status = APPROVAL_STATUS_APPROVED if approved else APPROVAL_STATUS_REJECTED
        req.reviewer_id = reviewer_id
        req.review_comment = note
        req.reviewed_at = utcnow()
        db.session.flush()

        execution = None
        if approved:
            payload = parse_payload(req.request_type, req.request_data)
            execution = _execute(payload, requester_id=req.requester_id, request_id=req.id)

        operation_log_service.record(
            operation_type=operation_log_service.OP_APPROVAL,
            operator_id=reviewer_id,
            target_type="approval_request",
            target_id=req.id,
            detail={"action": "review", "status": req.status, "comment": note, "execution": execution},
        )

        db.session.commit()
        current_app.logger.info("Approval request %s %s by user %s", req.id, req.status, reviewer_id)
        return ReviewOutcome(request=req, execution=execution)

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================

def get_request(request_id: int) -> ApprovalRequest:
    req = db.session.get(ApprovalRequest, request_id)
    if req is None:
        raise NotFoundError(f"Approval request {request_id} not found")
    return req


def list_requests(*, actor: Actor, status: str | None = None, request_type: str | None = None) -> list[ApprovalRequest]:
    """Admins see every request; everyone else sees only their own."""
    q = db.session.query(ApprovalRequest)
    if not actor.is_admin:
        q = q.filter(ApprovalRequest.requester_id == actor.user_id)
    if status:
        if status not in APPROVAL_STATUSES:
            raise BadRequestError(f"status must be one of: {', '.join(APPROVAL_STATUSES)}")
        q = q.filter(ApprovalRequest.status == status)
    if request_type:
        if request_type not in REQUEST_TYPES:
            raise BadRequestError(f"request_type must be one of: {', '.join(REQUEST_TYPES)}")
        q = q.filter(ApprovalRequest.request_type == request_type)
    return q.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc()).all()


def pending_count() -> int:
    return db.session.query(ApprovalRequest).filter_by(status=APPROVAL_STATUS_PENDING).count()
