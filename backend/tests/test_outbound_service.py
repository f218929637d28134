"""
Outbound engine tests.

Verifies:
- insufficient stock never goes negative
- borrower info is required for borrows only
- borrow -> transfer conversion rules
- borrow listings used for reminders and quick return
"""

from datetime import date, timedelta

import pytest

from stockroom.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from stockroom.models import Item, OutboundRecord
from stockroom.services import inbound_service, outbound_service
from stockroom.services.outbound_service import BorrowerInfo
from stockroom.time_utils import utctoday

from conftest import ADMIN_ID, OTHER_USER_ID, USER_ID


BORROWER = BorrowerInfo(name="Ana", phone="555-0100", email="ana@example.com")


def _borrow(item_id, quantity, *, operator_id=USER_ID, due=None):
    return outbound_service.record_outbound(
        item_id=item_id,
        quantity=quantity,
        outbound_type="borrow",
        operator_id=operator_id,
        borrower=BORROWER,
        expected_return_date=due,
    )


class TestRecordOutbound:
    def test_transfer_to_zero(self, db_session, make_item):
        item = make_item(3)
        result = outbound_service.record_outbound(
            item_id=item.id, quantity=3, outbound_type="transfer", operator_id=ADMIN_ID
        )
        assert result.new_quantity == 0

        item = db_session.get(Item, item.id)
        assert item.status == "out_of_stock"
        assert item.total_out == 3

        record = db_session.get(OutboundRecord, result.outbound_id)
        assert record.borrower_name is None
        assert record.expected_return_date is None

    def test_insufficient_stock_message(self, db_session, make_item):
        item = make_item(2)
        with pytest.raises(BadRequestError, match="current stock: 2, requested: 5"):
            outbound_service.record_outbound(
                item_id=item.id, quantity=5, outbound_type="transfer", operator_id=ADMIN_ID
            )
        db_session.expire_all()
        assert db_session.get(Item, item.id).current_quantity == 2
        assert db_session.query(OutboundRecord).count() == 0

    def test_borrow_requires_borrower(self, db_session, make_item):
        item = make_item(2)
        with pytest.raises(BadRequestError):
            outbound_service.record_outbound(
                item_id=item.id,
                quantity=1,
                outbound_type="borrow",
                operator_id=USER_ID,
                borrower=BorrowerInfo(name="Ana", phone="555"),
            )

    def test_open_ended_borrow(self, db_session, make_item):
        item = make_item(2)
        result = _borrow(item.id, 1)
        record = db_session.get(OutboundRecord, result.outbound_id)
        assert record.expected_return_date is None
        assert record.is_returned is False
        assert record.borrower_email == "ana@example.com"

    def test_due_date_dropped_for_transfer(self, db_session, make_item):
        item = make_item(2)
        result = outbound_service.record_outbound(
            item_id=item.id,
            quantity=1,
            outbound_type="transfer",
            operator_id=ADMIN_ID,
            expected_return_date=date(2030, 1, 1),
        )
        assert db_session.get(OutboundRecord, result.outbound_id).expected_return_date is None

    def test_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            outbound_service.record_outbound(item_id=999999, quantity=1, outbound_type="transfer", operator_id=ADMIN_ID)

    def test_unknown_type(self, db_session, make_item):
        item = make_item(2)
        with pytest.raises(BadRequestError):
            outbound_service.record_outbound(item_id=item.id, quantity=1, outbound_type="sell", operator_id=ADMIN_ID)

    def test_partial_outbound_status_and_totals_only_grow(self, db_session, make_item):
        item = make_item(10)
        _borrow(item.id, 4)
        outbound_service.record_outbound(item_id=item.id, quantity=1, outbound_type="transfer", operator_id=ADMIN_ID)

        item = db_session.get(Item, item.id)
        assert (item.current_quantity, item.status) == (5, "partially_out")
        assert (item.total_in, item.total_out) == (10, 5)


class TestConvertBorrowToTransfer:
    def test_operator_converts(self, db_session, make_item):
        item = make_item(3)
        borrow = _borrow(item.id, 2, due=utctoday() + timedelta(days=3))

        record = outbound_service.convert_borrow_to_transfer(outbound_id=borrow.outbound_id, caller_id=USER_ID)
        assert record.outbound_type == "transfer"
        assert record.is_returned is False
        assert record.actual_return_date is None

        db_session.expire_all()
        assert db_session.get(Item, item.id).current_quantity == 1
        assert outbound_service.list_unreturned_borrows() == []

    def test_admin_may_convert_anyones_borrow(self, db_session, make_item):
        item = make_item(3)
        borrow = _borrow(item.id, 1)
        record = outbound_service.convert_borrow_to_transfer(
            outbound_id=borrow.outbound_id, caller_id=ADMIN_ID, caller_is_admin=True
        )
        assert record.outbound_type == "transfer"

    def test_other_user_forbidden(self, db_session, make_item):
        item = make_item(3)
        borrow = _borrow(item.id, 1)
        with pytest.raises(ForbiddenError):
            outbound_service.convert_borrow_to_transfer(outbound_id=borrow.outbound_id, caller_id=OTHER_USER_ID)

    def test_transfer_cannot_be_converted(self, db_session, make_item):
        item = make_item(3)
        result = outbound_service.record_outbound(
            item_id=item.id, quantity=1, outbound_type="transfer", operator_id=USER_ID
        )
        with pytest.raises(BadRequestError):
            outbound_service.convert_borrow_to_transfer(outbound_id=result.outbound_id, caller_id=USER_ID)

    def test_returned_borrow_conflicts(self, db_session, make_item):
        item = make_item(3)
        borrow = _borrow(item.id, 1)
        inbound_service.record_inbound(
            item_id=item.id, quantity=1, inbound_type="return", operator_id=USER_ID,
            related_outbound_id=borrow.outbound_id,
        )
        with pytest.raises(ConflictError):
            outbound_service.convert_borrow_to_transfer(outbound_id=borrow.outbound_id, caller_id=USER_ID)

    def test_missing_record(self, db_session):
        with pytest.raises(NotFoundError):
            outbound_service.convert_borrow_to_transfer(outbound_id=999999, caller_id=USER_ID)


class TestBorrowListings:
    def test_unreturned_overdue_and_own(self, db_session, make_item):
        item = make_item(10)
        today = utctoday()
        late = _borrow(item.id, 1, due=today - timedelta(days=2))
        due_today = _borrow(item.id, 1, due=today)
        open_ended = _borrow(item.id, 1)
        others = _borrow(item.id, 1, operator_id=OTHER_USER_ID, due=today - timedelta(days=1))
        returned = _borrow(item.id, 1, due=today - timedelta(days=5))
        inbound_service.record_inbound(
            item_id=item.id, quantity=1, inbound_type="return", operator_id=USER_ID,
            related_outbound_id=returned.outbound_id,
        )

        unreturned = [r.id for r in outbound_service.list_unreturned_borrows()]
        assert unreturned == [late.outbound_id, others.outbound_id, due_today.outbound_id, open_ended.outbound_id]

        overdue = [r.id for r in outbound_service.list_overdue_borrows()]
        assert overdue == [late.outbound_id, others.outbound_id]

        overdue_later = [r.id for r in outbound_service.list_overdue_borrows(today + timedelta(days=1))]
        assert due_today.outbound_id in overdue_later

        mine = [r.id for r in outbound_service.list_borrows_for_operator(USER_ID)]
        assert others.outbound_id not in mine
        assert set(mine) == {late.outbound_id, due_today.outbound_id, open_ended.outbound_id}

    def test_list_outbound_records_filters(self, db_session, make_item):
        item = make_item(10)
        _borrow(item.id, 1)
        outbound_service.record_outbound(item_id=item.id, quantity=1, outbound_type="transfer", operator_id=ADMIN_ID)

        page = outbound_service.list_outbound_records(borrower="Ana")
        assert page.total == 1
        page = outbound_service.list_outbound_records(item_id=item.id, is_returned=False)
        assert page.total == 2
