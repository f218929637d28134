# Overview: Service-layer operations for the category tree; encapsulates business logic and database work.

"""
Category tree invariants (authoritative)

- level is computed once at creation: root=1, child=parent.level+1.
- parent_id is never reassigned, so no cycle detection is needed. A future
  "move category" operation must validate acyclicity before accepting a new
  parent.
- A category cannot be deleted while it has child categories or items.
- Writes are administrator-only; the route layer enforces that.
"""

from __future__ import annotations

from typing import Any

from flask import current_app

from ..errors import BadRequestError, ConflictError, NotFoundError
from ..extensions import db
from ..models import Category, Item
from ..validation import clean_text, coerce_bool, coerce_int
from . import operation_log_service
from .concurrency import run_with_retry


EDITABLE_FIELDS = {"name", "description", "sort_order", "is_stackable"}


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if category is None:
        raise NotFoundError(f"Category {category_id} not found")
    return category


def create_category(
    *,
    name: str,
    parent_id: int | None = None,
    sort_order: int = 0,
    description: str | None = None,
    is_stackable: bool = False,
    operator_id: int | None = None,
) -> Category:
    """
    Create a category under parent_id (or as a root when parent_id is None).

    Raises:
        BadRequestError: name is blank
        NotFoundError: parent_id given but missing
    """
    clean_name = clean_text(name, "name", max_length=128)
    if not clean_name:
        raise BadRequestError("Category name cannot be empty")

    def _op():
        level = 1
        if parent_id is not None:
            parent = db.session.get(Category, parent_id)
            if parent is None:
                raise NotFoundError(f"Parent category {parent_id} not found")
            level = parent.level + 1

        category = Category(
            name=clean_name,
            parent_id=parent_id,
            level=level,
            sort_order=sort_order or 0,
            description=clean_text(description, "description"),
            is_stackable=bool(is_stackable),
        )
        db.session.add(category)
        db.session.flush()

        operation_log_service.record(
            operation_type=operation_log_service.OP_EDIT_CATEGORY,
            operator_id=operator_id,
            target_type="category",
            target_id=category.id,
            detail={"action": "create", "name": clean_name, "parent_id": parent_id, "level": level},
        )

        db.session.commit()
        return category

    return run_with_retry(_op)


def update_category(category_id: int, fields: dict[str, Any], *, operator_id: int | None = None) -> Category:
    """
    Partial update of name, description, sort_order and is_stackable.

    parent_id and level are fixed at creation and cannot be changed here.
    """
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise BadRequestError(f"Field not allowed: {', '.join(sorted(unknown))}")

    patch: dict[str, Any] = {}
    if "name" in fields:
        name = clean_text(fields["name"], "name", max_length=128)
        if not name:
            raise BadRequestError("Category name cannot be empty")
        patch["name"] = name
    if "description" in fields:
        patch["description"] = clean_text(fields["description"], "description")
    if "sort_order" in fields:
        patch["sort_order"] = coerce_int(fields["sort_order"], "sort_order")
    if "is_stackable" in fields:
        patch["is_stackable"] = coerce_bool(fields["is_stackable"], "is_stackable")

    def _op():
        category = get_category(category_id)
        for key, value in patch.items():
            setattr(category, key, value)

        operation_log_service.record(
            operation_type=operation_log_service.OP_EDIT_CATEGORY,
            operator_id=operator_id,
            target_type="category",
            target_id=category.id,
            detail={"action": "update", **patch},
        )

        db.session.commit()
        return category

    return run_with_retry(_op)


def delete_category(category_id: int, *, operator_id: int | None = None) -> None:
    """
    Hard-delete a leaf category with no items.

    Raises:
        NotFoundError: category missing
        ConflictError: category still has children or items
    """
    def _op():
        category = get_category(category_id)

        child_count = db.session.query(Category).filter_by(parent_id=category_id).count()
        if child_count > 0:
            raise ConflictError("Delete the child categories first")

        item_count = db.session.query(Item).filter_by(category_id=category_id).count()
        if item_count > 0:
            raise ConflictError("This category still has items and cannot be deleted")

        name = category.name
        db.session.delete(category)
        db.session.flush()

        operation_log_service.record(
            operation_type=operation_log_service.OP_EDIT_CATEGORY,
            operator_id=operator_id,
            target_type="category",
            target_id=category_id,
            detail={"action": "delete", "name": name},
        )

        db.session.commit()
        current_app.logger.info("Category %s (%s) deleted by user %s", category_id, name, operator_id)

    run_with_retry(_op)


def _ordered_all() -> list[Category]:
    return (
        db.session.query(Category)
        .order_by(Category.level, Category.sort_order, Category.id)
        .all()
    )


def list_tree() -> list[dict]:
    """
    Return the whole tree as nested dicts, siblings ordered by (level, sort_order, id).
    """
    categories = _ordered_all()

    nodes: dict[int, dict] = {}
    roots: list[dict] = []
    for cat in categories:
        nodes[cat.id] = {**cat.to_dict(), "children": []}

    # Parents always have a lower level, so they are already in `nodes`.
    for cat in categories:
        node = nodes[cat.id]
        if cat.parent_id is None:
            roots.append(node)
        else:
            parent = nodes.get(cat.parent_id)
            if parent is not None:
                parent["children"].append(node)
    return roots


def list_top_level() -> list[Category]:
    return (
        db.session.query(Category)
        .filter(Category.parent_id.is_(None))
        .order_by(Category.sort_order, Category.id)
        .all()
    )


def list_children(category_id: int) -> list[Category]:
    get_category(category_id)
    return (
        db.session.query(Category)
        .filter_by(parent_id=category_id)
        .order_by(Category.sort_order, Category.id)
        .all()
    )


def list_flat() -> list[dict]:
    """Flat list for pickers; display_name is indented two spaces per level."""
    rows = []
    for cat in _ordered_all():
        data = cat.to_dict()
        data["display_name"] = f"{'  ' * (cat.level - 1)}{cat.name}"
        rows.append(data)
    return rows


def path_of(category_id: int) -> list[str]:
    """
    Walk parent links up to the root.

    Returns category names ordered root first. The result is a human-readable
    label, not an identifier.
    """
    get_category(category_id)

    path: list[str] = []
    current_id = category_id
    while current_id is not None:
        cat = db.session.get(Category, current_id)
        if cat is None:
            break
        path.insert(0, cat.name)
        current_id = cat.parent_id
    return path


def full_index(category_id: int, unique_code: str | None = None) -> str:
    """Composite label such as "Robots-Hands-L30-LHT3000"."""
    parts = path_of(category_id)
    if unique_code:
        parts.append(unique_code)
    return "-".join(parts)
