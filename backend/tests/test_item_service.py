"""
Item ledger tests.

Verifies:
- identity rules for stackable vs non-stackable items
- initial stock is explained by an `initial` inbound record
- status derivation after inbound/outbound events
- deletion with stock is audit-first
"""

import pytest

from stockroom.errors import BadRequestError, ConflictError, NotFoundError
from stockroom.models import InboundRecord, Item, OperationLog, OutboundRecord
from stockroom.services import item_service, outbound_service
from stockroom.services.item_service import (
    ITEM_STATUS_IN_STOCK,
    ITEM_STATUS_OUT_OF_STOCK,
    ITEM_STATUS_PARTIALLY_OUT,
    status_after_inbound,
    status_after_outbound,
)
from stockroom.services.outbound_service import BorrowerInfo

from conftest import ADMIN_ID


class TestStatusDerivation:
    def test_after_inbound(self):
        assert status_after_inbound(3) == ITEM_STATUS_IN_STOCK
        assert status_after_inbound(0) == ITEM_STATUS_OUT_OF_STOCK

    def test_after_outbound(self):
        assert status_after_outbound(0) == ITEM_STATUS_OUT_OF_STOCK
        # Any positive remainder after an outbound reads as partially_out
        assert status_after_outbound(7) == ITEM_STATUS_PARTIALLY_OUT


class TestCreateItem:
    def test_non_stackable_requires_code(self, db_session, root_category):
        with pytest.raises(BadRequestError, match="unique code"):
            item_service.create_item(category_id=root_category.id, name="Hand", operator_id=ADMIN_ID)
        assert db_session.query(Item).count() == 0

    def test_duplicate_code_conflicts(self, db_session, make_item):
        make_item(1, unique_code="LHT-1")
        with pytest.raises(ConflictError):
            make_item(1, unique_code="LHT-1")
        assert db_session.query(Item).count() == 1

    def test_code_taken_after_precheck_conflicts(self, db_session, make_item, monkeypatch):
        make_item(1, unique_code="LHT-1")
        # the insert hits the unique index as if another create won the race
        monkeypatch.setattr(item_service, "_ensure_unique_code_free", lambda code: None)
        with pytest.raises(ConflictError):
            make_item(1, unique_code="LHT-1")
        assert db_session.query(Item).count() == 1

    def test_stackable_rejects_code(self, db_session, stackable_category):
        with pytest.raises(BadRequestError):
            item_service.create_item(
                category_id=stackable_category.id,
                name="Screws",
                unique_code="S-1",
                operator_id=ADMIN_ID,
            )

    def test_stackability_defaults_to_category_hint(self, db_session, make_item):
        item = make_item(0)
        assert item.is_stackable is True
        assert item.unique_code is None
        assert item.status == ITEM_STATUS_OUT_OF_STOCK

    def test_explicit_stackable_overrides_hint(self, db_session, root_category):
        item = item_service.create_item(
            category_id=root_category.id,
            name="Zip ties",
            is_stackable=True,
            initial_stock=50,
            operator_id=ADMIN_ID,
        )
        assert item.is_stackable is True
        assert item.current_quantity == 50

    def test_missing_category(self, db_session):
        with pytest.raises(NotFoundError):
            item_service.create_item(category_id=999999, name="x", unique_code="X", operator_id=ADMIN_ID)

    def test_initial_stock_writes_inbound_record(self, db_session, make_item):
        item = make_item(5)
        assert item.current_quantity == 5
        assert item.total_in == 5
        assert item.total_out == 0
        assert item.status == ITEM_STATUS_IN_STOCK

        records = db_session.query(InboundRecord).filter_by(item_id=item.id).all()
        assert len(records) == 1
        assert records[0].inbound_type == "initial"
        assert records[0].quantity == 5

    def test_zero_stock_writes_no_record(self, db_session, make_item):
        item = make_item(0)
        assert db_session.query(InboundRecord).filter_by(item_id=item.id).count() == 0


class TestQueries:
    def test_detail_has_category_path(self, db_session, make_item, root_category):
        item = make_item(1, unique_code="LHT-9")
        detail = item_service.get_item_detail(item.id)
        assert detail["category_path"] == ["Robots"]
        assert detail["full_index"] == "Robots-LHT-9"
        assert detail["category_name"] == "Robots"

    def test_list_filters_and_pagination(self, db_session, make_item):
        make_item(1, unique_code="A-1", name="Arm")
        make_item(0, unique_code="A-2", name="Arm spare")
        make_item(4, name="Screws")

        page = item_service.list_items(search="arm", page=1, limit=1)
        assert page.total == 2
        assert page.total_pages == 2
        assert len(page.rows) == 1

        out = item_service.list_items(status=ITEM_STATUS_OUT_OF_STOCK)
        assert [i.unique_code for i in out.rows] == ["A-2"]

    def test_invalid_status_filter(self, db_session):
        with pytest.raises(BadRequestError):
            item_service.list_items(status="lost")

    def test_by_category_path(self, db_session, make_item):
        make_item(1, unique_code="A-1")
        rows = item_service.list_items_by_category_path()
        assert rows[0]["category_path"] == ["Robots"]


class TestUpdateItem:
    def test_metadata_edit_is_logged(self, db_session, make_item):
        item = make_item(2)
        updated = item_service.update_item(item.id, {"model": "M3x8"}, operator_id=ADMIN_ID)
        assert updated.model == "M3x8"
        log = (
            db_session.query(OperationLog)
            .filter_by(operation_type="edit_item", target_id=item.id)
            .order_by(OperationLog.id.desc())
            .first()
        )
        assert log.detail["updates"] == {"model": "M3x8"}

    def test_quantity_is_not_editable(self, db_session, make_item):
        item = make_item(2)
        with pytest.raises(BadRequestError):
            item_service.update_item(item.id, {"current_quantity": 100}, operator_id=ADMIN_ID)

    def test_empty_update_rejected(self, db_session, make_item):
        item = make_item(2)
        with pytest.raises(BadRequestError, match="No fields to update"):
            item_service.update_item(item.id, {}, operator_id=ADMIN_ID)


class TestDeleteItem:
    def test_delete_keeps_ledger_snapshots(self, db_session, make_item):
        item = make_item(1, unique_code="LHT-1")
        item_id = item.id
        outbound_service.record_outbound(
            item_id=item_id,
            quantity=1,
            outbound_type="borrow",
            operator_id=ADMIN_ID,
            borrower=BorrowerInfo("Ana", "555", "ana@example.com"),
        )
        warning = item_service.delete_item(item_id, operator_id=ADMIN_ID)
        assert warning is None  # stock left on the borrow

        assert db_session.get(Item, item_id) is None
        inbound = db_session.query(InboundRecord).filter_by(unique_code_snapshot="LHT-1").one()
        outbound = db_session.query(OutboundRecord).filter_by(unique_code_snapshot="LHT-1").one()
        assert inbound.item_id is None
        assert outbound.item_id is None

    def test_delete_holding_stock_returns_warning(self, db_session, make_item):
        item = make_item(4)
        warning = item_service.delete_item(item.id, operator_id=ADMIN_ID)
        assert "4" in warning

    def test_strict_mode_blocks_delete_with_stock(self, app, db_session, make_item):
        item = make_item(4)
        app.config["ALLOW_DELETE_ITEMS_WITH_STOCK"] = False
        try:
            with pytest.raises(ConflictError):
                item_service.delete_item(item.id, operator_id=ADMIN_ID)
        finally:
            app.config["ALLOW_DELETE_ITEMS_WITH_STOCK"] = True
        assert db_session.get(Item, item.id) is not None
