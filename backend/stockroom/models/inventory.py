from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, to_iso_date


class Item(db.Model):
    """
    Inventory record for one kind of thing on the shelf.

    STACKABLE vs NON-STACKABLE:
    - Stackable items are fungible and tracked by quantity only (no unique_code).
    - Non-stackable items are individually identified and MUST carry a
      globally unique unique_code.
    - is_stackable is fixed at creation.

    QUANTITY:
    - current_quantity is stored (not ledger-derived) and never negative.
    - total_in / total_out only ever grow.
    - status is rewritten by the last inbound/outbound event, see item_service.

    version_id guards read-modify-write against concurrent writers on
    databases that ignore SELECT ... FOR UPDATE.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("unique_code", name="uq_items_unique_code"),
        db.CheckConstraint("current_quantity >= 0", name="ck_items_quantity_non_negative"),
        db.Index("ix_items_category_status", "category_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    unique_code = db.Column(db.String(128), nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    model = db.Column(db.String(128), nullable=True)
    specification = db.Column(db.String(255), nullable=True)
    description = db.Column(db.Text, nullable=True)

    is_stackable = db.Column(db.Boolean, nullable=False, default=False)

    current_quantity = db.Column(db.Integer, nullable=False, default=0)
    total_in = db.Column(db.Integer, nullable=False, default=0)
    total_out = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="out_of_stock", index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} qty={self.current_quantity} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "unique_code": self.unique_code,
            "category_id": self.category_id,
            "category_name": self.category.name if self.category else None,
            "name": self.name,
            "model": self.model,
            "specification": self.specification,
            "description": self.description,
            "is_stackable": self.is_stackable,
            "current_quantity": self.current_quantity,
            "total_in": self.total_in,
            "total_out": self.total_out,
            "status": self.status,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InboundRecord(db.Model):
    """
    Append-only ledger entry for stock coming in (initial stocking or a return).

    item_id is nulled if the item is later deleted; unique_code_snapshot keeps
    the audit trail readable.
    """
    __tablename__ = "inbound_records"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inbound_quantity_positive"),
        db.Index("ix_inbound_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True)
    unique_code_snapshot = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    inbound_type = db.Column(db.String(16), nullable=False, index=True)  # initial, return
    related_outbound_id = db.Column(db.Integer, db.ForeignKey("outbound_records.id"), nullable=True, index=True)

    operator_id = db.Column(db.Integer, nullable=False, index=True)
    remarks = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("Item", backref=db.backref("inbound_records", lazy=True))
    related_outbound = db.relationship("OutboundRecord", foreign_keys=[related_outbound_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "unique_code_snapshot": self.unique_code_snapshot,
            "quantity": self.quantity,
            "inbound_type": self.inbound_type,
            "related_outbound_id": self.related_outbound_id,
            "operator_id": self.operator_id,
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }


class OutboundRecord(db.Model):
    """
    Ledger entry for stock going out (permanent transfer or temporary borrow).

    Immutable except for two controlled transitions:
    - an inbound return marks it returned and stamps actual_return_date
    - convert_borrow_to_transfer reclassifies a borrow as a transfer
    """
    __tablename__ = "outbound_records"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_outbound_quantity_positive"),
        db.Index("ix_outbound_type_returned", "outbound_type", "is_returned"),
        db.Index("ix_outbound_operator_type", "operator_id", "outbound_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id", ondelete="SET NULL"), nullable=True, index=True)
    unique_code_snapshot = db.Column(db.String(128), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    outbound_type = db.Column(db.String(16), nullable=False, index=True)  # transfer, borrow

    borrower_name = db.Column(db.String(128), nullable=True)
    borrower_phone = db.Column(db.String(64), nullable=True)
    borrower_email = db.Column(db.String(255), nullable=True)

    # NULL means a long-term loan with no deadline
    expected_return_date = db.Column(db.Date, nullable=True, index=True)
    is_returned = db.Column(db.Boolean, nullable=False, default=False)
    actual_return_date = db.Column(db.Date, nullable=True)

    operator_id = db.Column(db.Integer, nullable=False, index=True)
    remarks = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    item = db.relationship("Item", backref=db.backref("outbound_records", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item.name if self.item else None,
            "unique_code_snapshot": self.unique_code_snapshot,
            "quantity": self.quantity,
            "outbound_type": self.outbound_type,
            "borrower_name": self.borrower_name,
            "borrower_phone": self.borrower_phone,
            "borrower_email": self.borrower_email,
            "expected_return_date": to_iso_date(self.expected_return_date),
            "is_returned": self.is_returned,
            "actual_return_date": to_iso_date(self.actual_return_date),
            "operator_id": self.operator_id,
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }
