from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Category(db.Model):
    """
    Hierarchical item classification.

    TREE SHAPE:
    - parent_id is set once at creation and never reassigned, so the tree
      cannot contain cycles.
    - level is root=1, child=parent.level+1, computed at creation only.

    is_stackable is a hint copied onto items created under this category
    when the caller does not say otherwise. It is not enforced.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.Index("ix_categories_level_sort", "level", "sort_order", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    level = db.Column(db.Integer, nullable=False, default=1)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)
    is_stackable = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    parent = db.relationship("Category", remote_side=[id], backref=db.backref("children", lazy=True))

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r} level={self.level}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "parent_id": self.parent_id,
            "level": self.level,
            "sort_order": self.sort_order,
            "description": self.description,
            "is_stackable": self.is_stackable,
            "created_at": to_utc_z(self.created_at),
        }
