from datetime import datetime
from typing import Any, Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .constants import FORMAT_HTML, ROLE_CAPABILITIES
from .extensions import db


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SoftDeleteMixin:
    is_deleted = db.Column(db.Boolean, default=False)


class User(UserMixin, TimestampMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    level = db.Column(db.String(32), nullable=False, default="operator")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def has_capability(self, capability: str) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.level, frozenset())


class Category(SoftDeleteMixin, TimestampMixin, db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    idnumber = db.Column(db.String(100))
    description = db.Column(db.Text)
    descriptionformat = db.Column(db.Integer, default=FORMAT_HTML)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"))
    sortorder = db.Column(db.Integer, default=0)
    coursecount = db.Column(db.Integer, default=0)
    visible = db.Column(db.Boolean, default=True)
    visibleold = db.Column(db.Boolean, default=True)
    depth = db.Column(db.Integer, default=0)
    path = db.Column(db.String(255), default="", index=True)
    theme = db.Column(db.String(50))

    parent = db.relationship("Category", remote_side=[id], backref="children")

    @property
    def parent_ref(self) -> int:
        """Parent id with ``0`` standing for the top level."""
        return self.parent_id or 0

    @property
    def timemodified(self) -> int:
        if self.updated_at is None:
            return 0
        return int(self.updated_at.timestamp())

    def ancestor_ids(self) -> list:
        """Ids on ``path`` above this category, root first."""
        return [int(part) for part in (self.path or "").split("/") if part][:-1]

    def __repr__(self) -> str:
        return f"<Category {self.id} {self.path}>"


class CategoryRestriction(TimestampMixin, db.Model):
    """Marks a category whose access context is not valid for a user."""

    __tablename__ = "category_restrictions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)
    reason = db.Column(db.String(255))

    user = db.relationship("User", backref="category_restrictions")
    category = db.relationship("Category")


def add_category(name: str, parent: Optional[Category] = None, **fields: Any) -> Category:
    """Create a category below ``parent`` keeping ``path`` and ``depth`` in sync."""

    if "sortorder" not in fields:
        siblings = Category.query.filter_by(parent_id=parent.id if parent else None).count()
        fields["sortorder"] = siblings + 1
    category = Category(name=name, parent_id=parent.id if parent else None, **fields)
    db.session.add(category)
    db.session.flush()
    parent_path = parent.path if parent else ""
    category.path = f"{parent_path}/{category.id}"
    category.depth = (parent.depth if parent else 0) + 1
    return category


def ensure_seed_data(username: str = "admin", password: str = "admin123") -> None:
    if not User.query.filter_by(username=username).first():
        user = User(username=username, level="admin")
        user.set_password(password)
        db.session.add(user)
        db.session.commit()


def ensure_demo_categories() -> bool:
    """Populate a small category tree with one hidden branch, once."""

    if Category.query.first() is not None:
        return False
    arts = add_category("Arts", idnumber="ARTS")
    archive = add_category("Archive", arts, visible=False, visibleold=False)
    add_category("Painting", archive)
    add_category("Sculpture", archive)
    add_category("Music", arts)
    science = add_category("Science", idnumber="SCI")
    add_category("Physics", science)
    add_category("Chemistry", science, visible=False, visibleold=False)
    db.session.commit()
    return True
