# Overview: Service-layer operations for items; encapsulates business logic and database work.

"""
Item ledger invariants (authoritative)

Quantity model:
- current_quantity is a stored counter, never negative.
- total_in / total_out are monotonically non-decreasing.
- Only the inbound and outbound engines change quantities, through
  apply_inbound() / apply_outbound() below, on a row locked with
  lock_item().

Status is an event-history artifact, not a fill ratio:
- after an inbound:  in_stock if quantity > 0 else out_of_stock
- after an outbound: out_of_stock if quantity == 0 else partially_out
So the same quantity can be reported as in_stock or partially_out depending
on which kind of event touched the item last.

Identity:
- Non-stackable items must carry a globally unique unique_code.
- Stackable items never carry one.

Deletion is audit-first: deleting an item that still holds stock is logged
with a warning, and only blocked when ALLOW_DELETE_ITEMS_WITH_STOCK is off.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import BadRequestError, ConflictError, NotFoundError
from ..extensions import db
from ..models import Category, InboundRecord, Item
from ..validation import clean_text
from . import category_service, operation_log_service
from .concurrency import lock_for_update, run_with_retry


ITEM_STATUS_IN_STOCK = "in_stock"
ITEM_STATUS_OUT_OF_STOCK = "out_of_stock"
ITEM_STATUS_PARTIALLY_OUT = "partially_out"
ITEM_STATUSES = (ITEM_STATUS_IN_STOCK, ITEM_STATUS_OUT_OF_STOCK, ITEM_STATUS_PARTIALLY_OUT)

EDITABLE_FIELDS = {"name", "model", "specification", "description"}


@dataclass(frozen=True)
class Page:
    rows: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def to_dict(self, key: str) -> dict:
        return {
            key: [row.to_dict() for row in self.rows],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
        }


def status_after_inbound(new_quantity: int) -> str:
    return ITEM_STATUS_IN_STOCK if new_quantity > 0 else ITEM_STATUS_OUT_OF_STOCK


def status_after_outbound(new_quantity: int) -> str:
    return ITEM_STATUS_OUT_OF_STOCK if new_quantity == 0 else ITEM_STATUS_PARTIALLY_OUT


def lock_item(item_id: int) -> Item:
    """Fetch an item with an exclusive row lock for the current transaction."""
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def apply_inbound(item: Item, quantity: int) -> int:
    """Add stock to a locked item. Returns the new quantity."""
    new_quantity = item.current_quantity + quantity
    item.current_quantity = new_quantity
    item.total_in = item.total_in + quantity
    item.status = status_after_inbound(new_quantity)
    return new_quantity


def apply_outbound(item: Item, quantity: int) -> int:
    """
    Take stock from a locked item. Returns the new quantity.

    Raises:
        BadRequestError: quantity exceeds current stock
    """
    if quantity > item.current_quantity:
        raise BadRequestError(
            f"Insufficient inventory, current stock: {item.current_quantity}, requested: {quantity}"
        )
    new_quantity = item.current_quantity - quantity
    item.current_quantity = new_quantity
    item.total_out = item.total_out + quantity
    item.status = status_after_outbound(new_quantity)
    return new_quantity


def _ensure_unique_code_free(unique_code: str) -> None:
    existing = db.session.query(Item.id).filter_by(unique_code=unique_code).first()
    if existing is not None:
        raise ConflictError("Unique code already exists, please use a different one")


def _create_item_inner(
    *,
    category_id: int,
    name: str,
    is_stackable: bool | None,
    unique_code: str | None,
    model: str | None,
    specification: str | None,
    description: str | None,
    initial_stock: int,
    operator_id: int,
    remarks: str | None = None,
) -> Item:
    """Core item creation without retry or commit.

    Called by both the public create_item() and approval review for
    create_unique requests. When initial_stock > 0 an `initial` inbound
    record is written so the ledger explains the opening quantity.
    """
    if initial_stock < 0:
        raise BadRequestError("initial_stock cannot be negative")

    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")

    stackable = category.is_stackable if is_stackable is None else bool(is_stackable)
    code = clean_text(unique_code, "unique_code", max_length=128)

    if stackable and code:
        raise BadRequestError("Stackable items cannot carry a unique code")
    if not stackable and not code:
        raise BadRequestError("Non-stackable items must have unique code")
    if code:
        _ensure_unique_code_free(code)

    item = Item(
        category_id=category_id,
        unique_code=code,
        name=name,
        model=clean_text(model, "model", max_length=128),
        specification=clean_text(specification, "specification", max_length=255),
        description=clean_text(description, "description"),
        is_stackable=stackable,
        current_quantity=0,
        total_in=0,
        total_out=0,
        status=ITEM_STATUS_OUT_OF_STOCK,
    )
    db.session.add(item)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # a concurrent create took the code after the pre-check
        if code is None:
            raise
        raise ConflictError("Unique code already exists, please use a different one") from exc

    if initial_stock > 0:
        apply_inbound(item, initial_stock)
        db.session.add(InboundRecord(
            item_id=item.id,
            unique_code_snapshot=item.unique_code,
            quantity=initial_stock,
            inbound_type="initial",
            operator_id=operator_id,
            remarks=remarks,
        ))
        db.session.flush()

    return item


def create_item(
    *,
    category_id: int,
    name: str,
    operator_id: int,
    is_stackable: bool | None = None,
    unique_code: str | None = None,
    model: str | None = None,
    specification: str | None = None,
    description: str | None = None,
    initial_stock: int = 0,
) -> Item:
    """
    Create an item directly (privileged path).

    is_stackable defaults to the category's hint.

    Raises:
        BadRequestError: name missing, unique_code missing for a non-stackable
            item or present for a stackable one
        NotFoundError: category missing
        ConflictError: unique_code already used
    """
    clean_name = clean_text(name, "name", max_length=255)
    if not clean_name:
        raise BadRequestError("Category and item name are required")

    def _op():
        item = _create_item_inner(
            category_id=category_id,
            name=clean_name,
            is_stackable=is_stackable,
            unique_code=unique_code,
            model=model,
            specification=specification,
            description=description,
            initial_stock=initial_stock,
            operator_id=operator_id,
        )

        operation_log_service.record(
            operation_type=operation_log_service.OP_EDIT_ITEM,
            operator_id=operator_id,
            target_type="item",
            target_id=item.id,
            detail={
                "action": "create",
                "name": item.name,
                "unique_code": item.unique_code,
                "category_id": category_id,
                "initial_stock": initial_stock,
            },
        )

        db.session.commit()
        return item

    return run_with_retry(_op)


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def get_item_detail(item_id: int) -> dict:
    """Item dict plus its category path and composite label."""
    item = get_item(item_id)
    data = item.to_dict()
    data["category_path"] = category_service.path_of(item.category_id)
    data["full_index"] = "-".join(
        data["category_path"] + ([item.unique_code] if item.unique_code else [])
    )
    return data


def list_items(
    *,
    category_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> Page:
    """Newest first, optionally filtered; search matches name, unique_code or model."""
    q = db.session.query(Item)
    if category_id is not None:
        q = q.filter(Item.category_id == category_id)
    if status:
        if status not in ITEM_STATUSES:
            raise BadRequestError(f"status must be one of: {', '.join(ITEM_STATUSES)}")
        q = q.filter(Item.status == status)
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Item.name.ilike(term), Item.unique_code.ilike(term), Item.model.ilike(term)))

    total = q.count()
    rows = (
        q.order_by(Item.created_at.desc(), Item.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
        .all()
    )
    return Page(rows=rows, page=page, limit=limit, total=total)


def list_items_by_category_path() -> list[dict]:
    """All items, deepest categories first, each with its category path."""
    rows = (
        db.session.query(Item)
        .join(Category, Item.category_id == Category.id)
        .order_by(Category.level.desc(), Item.category_id, Item.unique_code, Item.id)
        .all()
    )
    paths: dict[int, list[str]] = {}
    result = []
    for item in rows:
        if item.category_id not in paths:
            paths[item.category_id] = category_service.path_of(item.category_id)
        data = item.to_dict()
        data["category_path"] = paths[item.category_id]
        result.append(data)
    return result


def update_item(item_id: int, fields: dict[str, Any], *, operator_id: int) -> Item:
    """
    Metadata edit. Quantities, identity and stackability are not editable here.

    Raises:
        BadRequestError: no editable fields given, or an unknown field
        NotFoundError: item missing
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise BadRequestError(f"Field not allowed: {', '.join(sorted(unknown))}")
    if not fields:
        raise BadRequestError("No fields to update")

    patch: dict[str, Any] = {}
    for key, value in fields.items():
        patch[key] = clean_text(value, key, max_length=255 if key != "description" else None)
    if "name" in patch and not patch["name"]:
        raise BadRequestError("name cannot be blank")

    def _op():
        item = get_item(item_id)
        for key, value in patch.items():
            setattr(item, key, value)

        operation_log_service.record(
            operation_type=operation_log_service.OP_EDIT_ITEM,
            operator_id=operator_id,
            target_type="item",
            target_id=item.id,
            detail={"action": "update", "updates": patch},
        )

        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(item_id: int, *, operator_id: int) -> str | None:
    """
    Hard-delete an item. Ledger rows keep their unique_code snapshot.

    Returns a warning message when the item still held stock, else None.

    Raises:
        NotFoundError: item missing
        ConflictError: item holds stock and ALLOW_DELETE_ITEMS_WITH_STOCK is off
    """
    allow_with_stock = current_app.config.get("ALLOW_DELETE_ITEMS_WITH_STOCK", True)

    def _op():
        item = lock_item(item_id)
        quantity = item.current_quantity

        if quantity > 0 and not allow_with_stock:
            raise ConflictError(f"Item still holds {quantity} units and cannot be deleted")

        warning = f"Item had inventory of {quantity} at deletion" if quantity > 0 else None
        detail = {
            "action": "delete",
            "name": item.name,
            "unique_code": item.unique_code,
            "current_quantity": quantity,
            "status": item.status,
            "note": f"Item deleted with inventory: {quantity}" if quantity > 0 else "Item deleted with zero inventory",
        }

        db.session.delete(item)
        db.session.flush()

        operation_log_service.record(
            operation_type=operation_log_service.OP_EDIT_ITEM,
            operator_id=operator_id,
            target_type="item",
            target_id=item_id,
            detail=detail,
        )

        db.session.commit()
        if warning:
            current_app.logger.warning("Item %s deleted by user %s with %s units on hand", item_id, operator_id, quantity)
        return warning

    return run_with_retry(_op)
