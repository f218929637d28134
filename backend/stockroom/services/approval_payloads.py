# Overview: Typed variants for the JSON intent stored on an approval request.

"""
Approval request payloads.

request_data is stored as JSON, but the service only ever works with one of
the frozen dataclasses below, so the review step handles every shape
explicitly:

request_type=inbound
- mode="create_unique"     -> CreateUniqueItem
- mode="update_stackable"  -> UpdateStackable(legacy=False)
- no mode (older clients)  -> UpdateStackable(legacy=True)

request_type=outbound
- OutboundIntent

Parsing runs both when the request is created (reject malformed intents
early) and at review time (the stored document is the source of truth).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Union

from ..errors import BadRequestError
from ..validation import clean_text, coerce_date, coerce_int, coerce_quantity, require_choice
from .inbound_service import INBOUND_TYPES
from .outbound_service import OUTBOUND_TYPE_BORROW, OUTBOUND_TYPES, BorrowerInfo


REQUEST_TYPE_INBOUND = "inbound"
REQUEST_TYPE_OUTBOUND = "outbound"
REQUEST_TYPES = (REQUEST_TYPE_INBOUND, REQUEST_TYPE_OUTBOUND)

MODE_CREATE_UNIQUE = "create_unique"
MODE_UPDATE_STACKABLE = "update_stackable"


@dataclass(frozen=True)
class CreateUniqueItem:
    unique_code: str
    item_name: str
    category_id: int
    initial_stock: int = 1
    model: str | None = None
    specification: str | None = None
    description: str | None = None
    remarks: str | None = None

    mode = MODE_CREATE_UNIQUE

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "unique_code": self.unique_code,
            "item_name": self.item_name,
            "category_id": self.category_id,
            "initial_stock": self.initial_stock,
            "model": self.model,
            "specification": self.specification,
            "description": self.description,
            "remarks": self.remarks,
        }


@dataclass(frozen=True)
class UpdateStackable:
    item_id: int
    quantity: int
    inbound_type: str
    related_outbound_id: int | None = None
    remarks: str | None = None
    legacy: bool = False

    def to_dict(self) -> dict:
        data = {
            "item_id": self.item_id,
            "quantity": self.quantity,
            "inbound_type": self.inbound_type,
            "related_outbound_id": self.related_outbound_id,
            "remarks": self.remarks,
        }
        if not self.legacy:
            data["mode"] = MODE_UPDATE_STACKABLE
        return data


@dataclass(frozen=True)
class OutboundIntent:
    item_id: int
    quantity: int
    outbound_type: str
    borrower: BorrowerInfo
    expected_return_date: date | None = None
    remarks: str | None = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "quantity": self.quantity,
            "outbound_type": self.outbound_type,
            "borrower_name": self.borrower.name,
            "borrower_phone": self.borrower.phone,
            "borrower_email": self.borrower.email,
            "expected_return_date": self.expected_return_date.isoformat() if self.expected_return_date else None,
            "remarks": self.remarks,
        }


ApprovalPayload = Union[CreateUniqueItem, UpdateStackable, OutboundIntent]


def _parse_create_unique(data: dict[str, Any]) -> CreateUniqueItem:
    unique_code = clean_text(data.get("unique_code"), "unique_code", max_length=128)
    if not unique_code:
        raise BadRequestError("Non-stackable items must have unique code")
    item_name = clean_text(data.get("item_name"), "item_name", max_length=255)
    if not item_name:
        raise BadRequestError("item_name is required")

    initial_stock = data.get("initial_stock")
    return CreateUniqueItem(
        unique_code=unique_code,
        item_name=item_name,
        category_id=coerce_int(data.get("category_id"), "category_id"),
        initial_stock=1 if initial_stock in (None, "") else coerce_quantity(initial_stock, "initial_stock"),
        model=clean_text(data.get("model"), "model", max_length=128),
        specification=clean_text(data.get("specification"), "specification", max_length=255),
        description=clean_text(data.get("description"), "description"),
        remarks=clean_text(data.get("remarks"), "remarks"),
    )


def _parse_update_stackable(data: dict[str, Any], *, legacy: bool) -> UpdateStackable:
    inbound_type = require_choice(data.get("inbound_type"), "inbound_type", INBOUND_TYPES)
    return UpdateStackable(
        item_id=coerce_int(data.get("item_id"), "item_id"),
        quantity=coerce_quantity(data.get("quantity")),
        inbound_type=inbound_type,
        related_outbound_id=coerce_int(data.get("related_outbound_id"), "related_outbound_id", allow_none=True),
        remarks=clean_text(data.get("remarks"), "remarks"),
        legacy=legacy,
    )


def _parse_outbound(data: dict[str, Any]) -> OutboundIntent:
    outbound_type = require_choice(data.get("outbound_type"), "outbound_type", OUTBOUND_TYPES)
    borrower = BorrowerInfo.from_mapping(data)
    if outbound_type == OUTBOUND_TYPE_BORROW:
        borrower.require_complete()
    return OutboundIntent(
        item_id=coerce_int(data.get("item_id"), "item_id"),
        quantity=coerce_quantity(data.get("quantity")),
        outbound_type=outbound_type,
        borrower=borrower,
        expected_return_date=coerce_date(data.get("expected_return_date"), "expected_return_date"),
        remarks=clean_text(data.get("remarks"), "remarks"),
    )


def parse_payload(request_type: str, data: Any) -> ApprovalPayload:
    """
    Turn a stored/submitted request_data document into its typed variant.

    Raises:
        BadRequestError: unknown request type or mode, or malformed fields
    """
    require_choice(request_type, "request_type", REQUEST_TYPES)
    if not isinstance(data, dict) or not data:
        raise BadRequestError("Request data is required")

    if request_type == REQUEST_TYPE_OUTBOUND:
        return _parse_outbound(data)

    mode = data.get("mode")
    if mode == MODE_CREATE_UNIQUE:
        return _parse_create_unique(data)
    if mode == MODE_UPDATE_STACKABLE:
        return _parse_update_stackable(data, legacy=False)
    if mode is None:
        return _parse_update_stackable(data, legacy=True)
    raise BadRequestError(f"Unknown inbound request mode: {mode}")
