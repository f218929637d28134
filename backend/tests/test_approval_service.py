"""
Approval workflow tests.

Verifies:
- create_request validates the payload and touches no stock
- review transitions exactly once
- approval replays the engine with the requester as operator
- a replay failure leaves the request pending and stock unchanged
"""

import pytest

from stockroom.errors import BadRequestError, ConflictError, NotFoundError
from stockroom.models import ApprovalRequest, InboundRecord, Item, OutboundRecord
from stockroom.services import approval_service, outbound_service
from stockroom.services.approval_payloads import (
    CreateUniqueItem,
    OutboundIntent,
    UpdateStackable,
    parse_payload,
)
from stockroom.services.approval_service import Actor
from stockroom.services.outbound_service import BorrowerInfo

from conftest import ADMIN_ID, OTHER_USER_ID, USER_ID


def _request(request_type, data, requester_id=USER_ID):
    return approval_service.create_request(requester_id=requester_id, request_type=request_type, request_data=data)


class TestPayloadParsing:
    def test_create_unique_defaults(self):
        payload = parse_payload("inbound", {
            "mode": "create_unique", "unique_code": "LHT-1", "item_name": "Hand", "category_id": 4,
        })
        assert isinstance(payload, CreateUniqueItem)
        assert payload.initial_stock == 1

    def test_legacy_inbound_has_no_mode(self):
        payload = parse_payload("inbound", {"item_id": 3, "quantity": 2, "inbound_type": "initial"})
        assert isinstance(payload, UpdateStackable)
        assert payload.legacy is True
        assert "mode" not in payload.to_dict()

    def test_outbound_intent(self):
        payload = parse_payload("outbound", {
            "item_id": 3, "quantity": 1, "outbound_type": "borrow",
            "borrower_name": "Ana", "borrower_phone": "555", "borrower_email": "a@example.com",
            "expected_return_date": "2030-01-31",
        })
        assert isinstance(payload, OutboundIntent)
        assert payload.expected_return_date.isoformat() == "2030-01-31"
        assert payload.to_dict()["expected_return_date"] == "2030-01-31"

    @pytest.mark.parametrize("request_type,data", [
        ("inbound", {}),
        ("inbound", None),
        ("inbound", {"mode": "teleport", "item_id": 1}),
        ("inbound", {"mode": "create_unique", "item_name": "Hand", "category_id": 1}),
        ("inbound", {"mode": "create_unique", "unique_code": "X", "item_name": "Hand", "category_id": 1,
                     "initial_stock": 0}),
        ("inbound", {"item_id": 1, "quantity": 1}),
        ("outbound", {"item_id": 1, "quantity": 1, "outbound_type": "borrow", "borrower_name": "Ana"}),
        ("transfer", {"item_id": 1, "quantity": 1}),
    ])
    def test_malformed_payloads(self, request_type, data):
        with pytest.raises(BadRequestError):
            parse_payload(request_type, data)


class TestCreateRequest:
    def test_pending_and_no_stock_change(self, db_session, make_item):
        item = make_item(2)
        req = _request("outbound", {"item_id": item.id, "quantity": 5, "outbound_type": "transfer"})

        assert req.status == "pending"
        assert req.request_data["quantity"] == 5
        assert db_session.get(Item, item.id).current_quantity == 2
        assert db_session.query(OutboundRecord).count() == 0

    def test_malformed_payload_not_stored(self, db_session):
        with pytest.raises(BadRequestError):
            _request("inbound", {"mode": "update_stackable", "item_id": 1})
        assert db_session.query(ApprovalRequest).count() == 0


class TestReview:
    def test_approve_create_unique(self, db_session, root_category):
        req = _request("inbound", {
            "mode": "create_unique",
            "unique_code": "LHT3000",
            "item_name": "Dexterous hand",
            "category_id": root_category.id,
            "initial_stock": 5,
        })

        outcome = approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True, comment="ok")
        assert outcome.request.status == "approved"
        assert outcome.request.reviewer_id == ADMIN_ID
        assert outcome.request.reviewed_at is not None

        item = db_session.query(Item).filter_by(unique_code="LHT3000").one()
        assert (item.current_quantity, item.total_in, item.status) == (5, 5, "in_stock")
        assert item.is_stackable is False

        records = db_session.query(InboundRecord).filter_by(item_id=item.id).all()
        assert len(records) == 1
        assert records[0].inbound_type == "initial"
        assert records[0].operator_id == USER_ID
        assert outcome.execution["inbound_id"] == records[0].id

    def test_approve_create_unique_duplicate_code_stays_pending(self, db_session, make_item, root_category):
        make_item(1, unique_code="LHT-1")
        req = _request("inbound", {
            "mode": "create_unique", "unique_code": "LHT-1", "item_name": "Hand", "category_id": root_category.id,
        })
        with pytest.raises(ConflictError):
            approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)

        db_session.expire_all()
        assert db_session.get(ApprovalRequest, req.id).status == "pending"
        assert db_session.query(Item).count() == 1

    def test_approve_update_stackable(self, db_session, make_item):
        item = make_item(3)
        req = _request("inbound", {
            "mode": "update_stackable", "item_id": item.id, "quantity": 4, "inbound_type": "initial",
        })
        outcome = approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)

        assert outcome.execution["new_quantity"] == 7
        record = db_session.get(InboundRecord, outcome.execution["inbound_id"])
        assert record.operator_id == USER_ID

    def test_approve_legacy_return(self, db_session, make_item):
        item = make_item(3)
        borrow = outbound_service.record_outbound(
            item_id=item.id, quantity=2, outbound_type="borrow", operator_id=USER_ID,
            borrower=BorrowerInfo("Ana", "555", "ana@example.com"),
        )
        req = _request("inbound", {
            "item_id": item.id, "quantity": 2, "inbound_type": "return", "related_outbound_id": borrow.outbound_id,
        })
        outcome = approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)

        assert outcome.execution["mode"] == "legacy"
        db_session.expire_all()
        assert db_session.get(OutboundRecord, borrow.outbound_id).is_returned is True
        assert db_session.get(Item, item.id).current_quantity == 3

    def test_approve_outbound_borrow(self, db_session, make_item):
        item = make_item(10)
        req = _request("outbound", {
            "item_id": item.id, "quantity": 4, "outbound_type": "borrow",
            "borrower_name": "Ana", "borrower_phone": "555", "borrower_email": "ana@example.com",
            "expected_return_date": "2030-01-31",
        })
        outcome = approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)

        record = db_session.get(OutboundRecord, outcome.execution["outbound_id"])
        assert record.operator_id == USER_ID
        assert record.expected_return_date.isoformat() == "2030-01-31"
        item = db_session.get(Item, item.id)
        assert (item.current_quantity, item.status) == (6, "partially_out")

    def test_insufficient_stock_at_review_keeps_pending(self, db_session, make_item):
        item = make_item(2)
        req = _request("outbound", {"item_id": item.id, "quantity": 5, "outbound_type": "transfer"})

        with pytest.raises(BadRequestError, match="Insufficient inventory"):
            approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)

        db_session.expire_all()
        assert db_session.get(ApprovalRequest, req.id).status == "pending"
        assert db_session.get(Item, item.id).current_quantity == 2

    def test_reject_touches_nothing(self, db_session, make_item):
        item = make_item(2)
        req = _request("outbound", {"item_id": item.id, "quantity": 1, "outbound_type": "transfer"})

        outcome = approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=False, comment="no")
        assert outcome.request.status == "rejected"
        assert outcome.request.review_comment == "no"
        assert outcome.execution is None
        assert db_session.get(Item, item.id).current_quantity == 2
        assert db_session.query(OutboundRecord).count() == 0

    def test_second_review_conflicts(self, db_session, make_item):
        item = make_item(2)
        req = _request("inbound", {"item_id": item.id, "quantity": 1, "inbound_type": "initial"})
        approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)

        with pytest.raises(ConflictError, match="already been reviewed"):
            approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=True)
        with pytest.raises(ConflictError):
            approval_service.review(request_id=req.id, reviewer_id=ADMIN_ID, approved=False)

        db_session.expire_all()
        assert db_session.get(Item, item.id).current_quantity == 3

    def test_missing_request(self, db_session):
        with pytest.raises(NotFoundError):
            approval_service.review(request_id=999999, reviewer_id=ADMIN_ID, approved=True)

    def test_approved_must_be_boolean(self, db_session):
        with pytest.raises(BadRequestError):
            approval_service.review(request_id=1, reviewer_id=ADMIN_ID, approved="yes")


class TestQueries:
    def test_visibility_and_pending_count(self, db_session, make_item):
        item = make_item(5)
        mine = _request("inbound", {"item_id": item.id, "quantity": 1, "inbound_type": "initial"})
        _request("outbound", {"item_id": item.id, "quantity": 1, "outbound_type": "transfer"},
                 requester_id=OTHER_USER_ID)
        approval_service.review(request_id=mine.id, reviewer_id=ADMIN_ID, approved=False)

        admin = Actor(user_id=ADMIN_ID, role="admin")
        user = Actor(user_id=USER_ID, role="user")

        assert len(approval_service.list_requests(actor=admin)) == 2
        assert [r.id for r in approval_service.list_requests(actor=user)] == [mine.id]
        assert len(approval_service.list_requests(actor=admin, status="pending")) == 1
        assert len(approval_service.list_requests(actor=admin, request_type="outbound")) == 1
        assert approval_service.pending_count() == 1

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(BadRequestError):
            approval_service.list_requests(actor=Actor(user_id=ADMIN_ID, role="admin"), status="done")
