from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class OperationLog(db.Model):
    """
    Append-only audit trail of who did what.

    Written best-effort: a failure to write a log row never undoes the
    business change it describes.
    """
    __tablename__ = "operation_logs"
    __table_args__ = (
        db.Index("ix_operation_logs_target", "target_type", "target_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    operation_type = db.Column(db.String(32), nullable=False, index=True)
    operator_id = db.Column(db.Integer, nullable=True, index=True)
    target_type = db.Column(db.String(32), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    detail = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "operator_id": self.operator_id,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "detail": self.detail,
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
