from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ApprovalRequest(db.Model):
    """
    Deferred inbound/outbound intent submitted by a non-administrator.

    LIFECYCLE:
    1. PENDING: created by the requester
    2. APPROVED: reviewed by an administrator; the embedded intent was executed
       in the same transaction
    3. REJECTED: reviewed by an administrator; nothing else happened

    APPROVED and REJECTED are terminal.

    request_data is the JSON form of one of the payload variants in
    services/approval_payloads.py.
    """
    __tablename__ = "approval_requests"
    __table_args__ = (
        db.Index("ix_approval_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_type = db.Column(db.String(16), nullable=False, index=True)  # inbound, outbound
    requester_id = db.Column(db.Integer, nullable=False, index=True)
    request_data = db.Column(db.JSON, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    reviewer_id = db.Column(db.Integer, nullable=True)
    review_comment = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_type": self.request_type,
            "requester_id": self.requester_id,
            "request_data": self.request_data,
            "status": self.status,
            "reviewer_id": self.reviewer_id,
            "review_comment": self.review_comment,
            "created_at": to_utc_z(self.created_at),
            "reviewed_at": to_utc_z(self.reviewed_at),
        }
