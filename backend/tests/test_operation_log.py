"""
Operation log tests.

The log is best-effort: a failed write must never undo the business change.
"""

from datetime import timedelta

from stockroom.extensions import db
from stockroom.models import Item, OperationLog
from stockroom.services import inbound_service, item_service, operation_log_service
from stockroom.time_utils import utctoday

from conftest import ADMIN_ID


class TestOperationLog:
    def test_inbound_is_logged(self, db_session, make_item):
        item = make_item(1)
        result = inbound_service.record_inbound(
            item_id=item.id, quantity=2, inbound_type="initial", operator_id=ADMIN_ID
        )

        logs = operation_log_service.list_logs(operation_type="inbound", target_type="item", target_id=item.id)
        assert len(logs) == 1
        assert logs[0].operator_id == ADMIN_ID
        assert logs[0].detail["inbound_id"] == result.inbound_id
        assert logs[0].detail["new_quantity"] == 3

    def test_log_failure_is_swallowed(self, db_session, make_item):
        item = make_item(1)
        before = db_session.query(OperationLog).count()

        item = db_session.get(Item, item.id)
        item.description = "relabelled"
        # operation_type is NOT NULL, so the savepoint insert fails
        entry = operation_log_service.record(operation_type=None, operator_id=ADMIN_ID, target_type="item")
        assert entry is None
        db.session.commit()

        db_session.expire_all()
        assert db_session.get(Item, item.id).description == "relabelled"
        assert db_session.query(OperationLog).count() == before

    def test_rolled_back_operation_leaves_no_log(self, db_session, make_item):
        item = make_item(1)
        before = db_session.query(OperationLog).count()

        try:
            inbound_service.record_inbound(
                item_id=item.id, quantity=1, inbound_type="return", operator_id=ADMIN_ID,
                related_outbound_id=999999,
            )
        except Exception:
            pass

        assert db_session.query(OperationLog).count() == before

    def test_ip_address_outside_request_is_none(self, db_session, make_item):
        make_item(1)
        log = operation_log_service.list_logs(operation_type="edit_item")[0]
        assert log.ip_address is None


class TestAuditQueries:
    def test_history_of_one_target(self, db_session, make_item):
        item = make_item(1, unique_code="LHT-1")
        other = make_item(2)
        item_service.update_item(item.id, {"model": "Mk2"}, operator_id=ADMIN_ID)

        history = operation_log_service.logs_for_target("item", item.id)
        assert [log.detail["action"] for log in history] == ["update", "create"]
        assert all(log.target_id != other.id for log in history)

    def test_statistics_group_by_day_and_type(self, db_session, make_item):
        item = make_item(1)
        make_item(2, unique_code="LHT-1")
        inbound_service.record_inbound(item_id=item.id, quantity=1, inbound_type="initial", operator_id=ADMIN_ID)

        today = utctoday()
        rows = operation_log_service.log_statistics(start_date=today, end_date=today)
        counts = {row["operation_type"]: row["count"] for row in rows}
        assert counts["edit_item"] == 2
        assert counts["inbound"] == 1
        assert {row["date"] for row in rows} == {today.isoformat()}

        assert operation_log_service.log_statistics(start_date=today + timedelta(days=1)) == []
