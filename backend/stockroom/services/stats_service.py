# Overview: Read-only dashboard figures computed from items and the ledgers.

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import case, func

from ..extensions import db
from ..models import Category, InboundRecord, Item, OutboundRecord
from ..time_utils import day_key, start_of_day, utcnow, utctoday
from .item_service import ITEM_STATUS_IN_STOCK, ITEM_STATUS_OUT_OF_STOCK, ITEM_STATUS_PARTIALLY_OUT
from .outbound_service import OUTBOUND_TYPE_BORROW


def get_overview() -> dict:
    """
    Headline counters for the dashboard.

    in_stock_items counts anything with stock on the shelf, so it includes
    partially_out items.
    """
    month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    total_items = db.session.query(func.count(Item.id)).scalar()
    in_stock = (
        db.session.query(func.count(Item.id))
        .filter(Item.status.in_((ITEM_STATUS_IN_STOCK, ITEM_STATUS_PARTIALLY_OUT)))
        .scalar()
    )
    out_of_stock = (
        db.session.query(func.count(Item.id))
        .filter(Item.status == ITEM_STATUS_OUT_OF_STOCK)
        .scalar()
    )
    total_quantity = db.session.query(func.coalesce(func.sum(Item.current_quantity), 0)).scalar()

    open_borrows = db.session.query(func.count(OutboundRecord.id)).filter(
        OutboundRecord.outbound_type == OUTBOUND_TYPE_BORROW,
        OutboundRecord.is_returned.is_(False),
    )
    unreturned = open_borrows.scalar()
    overdue = open_borrows.filter(
        OutboundRecord.expected_return_date.isnot(None),
        OutboundRecord.expected_return_date < utctoday(),
    ).scalar()

    monthly_inbound = (
        db.session.query(func.count(InboundRecord.id))
        .filter(InboundRecord.created_at >= month_start)
        .scalar()
    )
    monthly_outbound = (
        db.session.query(func.count(OutboundRecord.id))
        .filter(OutboundRecord.created_at >= month_start)
        .scalar()
    )

    return {
        "total_items": total_items,
        "in_stock_items": in_stock,
        "out_of_stock_items": out_of_stock,
        "unreturned_borrows": unreturned,
        "overdue_borrows": overdue,
        "total_quantity": int(total_quantity or 0),
        "monthly_inbound": monthly_inbound,
        "monthly_outbound": monthly_outbound,
    }


def get_category_stats() -> list[dict]:
    """Per-category item counts; categories without items report zeros."""
    rows = (
        db.session.query(
            Category.id,
            Category.name,
            Category.level,
            func.count(Item.id),
            func.coalesce(func.sum(Item.current_quantity), 0),
            func.coalesce(func.sum(case((Item.status == ITEM_STATUS_IN_STOCK, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Item.status == ITEM_STATUS_OUT_OF_STOCK, 1), else_=0)), 0),
        )
        .outerjoin(Item, Item.category_id == Category.id)
        .group_by(Category.id, Category.name, Category.level, Category.sort_order)
        .order_by(Category.level, Category.sort_order, Category.id)
        .all()
    )
    return [
        {
            "category_id": cid,
            "category_name": name,
            "level": level,
            "item_count": item_count,
            "total_quantity": int(total_qty),
            "in_stock_count": int(in_stock),
            "out_of_stock_count": int(out_of_stock),
        }
        for cid, name, level, item_count, total_qty, in_stock, out_of_stock in rows
    ]


def get_popular_items(limit: int = 10) -> list[dict]:
    """Items with the most stock movement (total_in + total_out)."""
    movement = (Item.total_in + Item.total_out).label("total_operations")
    rows = (
        db.session.query(Item, movement)
        .filter(Item.total_in + Item.total_out > 0)
        .order_by(movement.desc(), Item.id)
        .limit(limit)
        .all()
    )
    result = []
    for item, total_operations in rows:
        data = item.to_dict()
        data["total_operations"] = total_operations
        result.append(data)
    return result


def _daily_totals(model, since) -> list[dict]:
    day = func.date(model.created_at)
    rows = (
        db.session.query(day, func.count(model.id), func.coalesce(func.sum(model.quantity), 0))
        .filter(model.created_at >= since)
        .group_by(day)
        .order_by(day)
        .all()
    )
    return [{"date": day_key(d), "count": count, "quantity": int(quantity)} for d, count, quantity in rows]


def get_trends(days: int = 30) -> dict:
    """
    Daily inbound and outbound activity over the last `days` days.

    Days without any records are omitted rather than zero-filled.
    """
    since = start_of_day(utctoday() - timedelta(days=days))
    return {
        "days": days,
        "inbound": _daily_totals(InboundRecord, since),
        "outbound": _daily_totals(OutboundRecord, since),
    }
