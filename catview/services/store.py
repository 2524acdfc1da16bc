"""Category store queries backed by Flask-SQLAlchemy."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..constants import TOP_CATEGORY_ID
from ..models import Category


class CategoryStore:
    """Read-only queries over non-deleted categories.

    Every method returns an empty collection when nothing matches. Database
    errors propagate to the caller untouched.
    """

    def _query(self):
        return Category.query.filter_by(is_deleted=False)

    def get(self, category_id: int) -> Optional[Category]:
        return self._query().filter(Category.id == category_id).first()

    def all_ids(self) -> List[int]:
        return [row.id for row in self._query().with_entities(Category.id)]

    def visible_ids(self) -> List[int]:
        query = self._query().filter(Category.visible.is_(True))
        return [row.id for row in query.with_entities(Category.id)]

    def child_ids(self, parent_id: int) -> List[int]:
        """Raw child ids of ``parent_id`` in natural (``sortorder``) order."""

        query = self._query()
        if parent_id == TOP_CATEGORY_ID:
            query = query.filter(Category.parent_id.is_(None))
        else:
            query = query.filter(Category.parent_id == parent_id)
        query = query.order_by(Category.sortorder, Category.id).with_entities(Category.id)
        return [row.id for row in query]

    def records_by_ids(self, ids: Iterable[int]) -> Dict[int, Category]:
        ids = list(ids)
        if not ids:
            return {}
        records = self._query().filter(Category.id.in_(ids)).all()
        return {record.id: record for record in records}

    def records_matching(
        self,
        conditions: Mapping[str, Any],
        ids: Optional[Iterable[int]] = None,
    ) -> List[Category]:
        """Categories whose columns equal every value in ``conditions``."""

        query = self._query()
        if conditions:
            query = query.filter_by(**conditions)
        if ids is not None:
            ids = list(ids)
            if not ids:
                return []
            query = query.filter(Category.id.in_(ids))
        return query.order_by(Category.path).all()

    def records_below(self, path: str, conditions: Mapping[str, Any]) -> List[Category]:
        """All descendants of the category at ``path``, excluding itself."""

        query = self._query().filter(Category.path.like(f"{path}/%"))
        if conditions:
            query = query.filter_by(**conditions)
        return query.order_by(Category.path).all()
