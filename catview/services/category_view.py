"""Category browsing and management listing over the visible tree."""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, Iterable, List, Optional, TypedDict

from flask import g

from ..constants import TOP_CATEGORY_ID
from ..errors import CategoryNotFound
from ..extensions import child_cache
from ..models import Category
from ..utils.category_tree import CategoryNode, build_visible_tree
from ..utils.pagination import slice_page
from .child_cache import IdCache, SortedChildCache, SortSpec
from .compactor import TreeCompactor
from .store import CategoryStore
from .visibility import VisibilitySet, current_visibility


class ListingItem(TypedDict):
    category: Category
    subcategories: List["ListingItem"]
    children_count: int
    selected: bool
    in_selected_path: bool


class CategoryView:
    """Visible children, counts and listings for one principal.

    Instances are meant to live for a single request: child counts are
    memoized on the instance while sorted child ids go to the shared cache.
    """

    def __init__(self, store: Any, visibility: VisibilitySet, cache: IdCache) -> None:
        self.store = store
        self.visibility = visibility
        self.compactor = TreeCompactor(store, visibility)
        self.children = SortedChildCache(store, self.compactor, cache, namespace=visibility.fingerprint)
        self._counts: Dict[int, int] = {}
        self._top: Optional[Category] = None

    def top(self) -> Category:
        """The pseudo-category representing the whole system."""

        if self._top is None:
            self._top = Category(
                id=TOP_CATEGORY_ID,
                name="Top",
                path="",
                depth=0,
                sortorder=0,
                coursecount=0,
                visible=True,
            )
        return self._top

    def get(self, category_id: int) -> Category:
        if category_id == TOP_CATEGORY_ID:
            return self.top()
        category = self.store.get(category_id)
        if category is None or self.visibility.is_hidden(category.id):
            raise CategoryNotFound(category_id)
        return category

    def children_of(
        self,
        category: Category,
        sort: Any = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Category]:
        ids, records = self.children.fetch(category.id, SortSpec.parse(sort))
        page_ids = slice_page(ids, offset, limit)
        if not page_ids:
            return []
        if records is None:
            records = self.store.records_by_ids(page_ids)
        return [records[category_id] for category_id in page_ids if category_id in records]

    def children_count(self, category: Category) -> int:
        if category.id not in self._counts:
            self._counts[category.id] = len(self.children.get_sorted_children(category.id))
        return self._counts[category.id]

    def user_top(self) -> Category:
        """Landing category: the only visible top-level category, else the top."""

        top_ids = self.children.get_sorted_children(TOP_CATEGORY_ID)
        if len(top_ids) == 1:
            category = self.store.get(top_ids[0])
            if category is not None:
                return category
        return self.top()

    def visible_parents(self, category: Category) -> List[int]:
        return [
            parent_id
            for parent_id in category.ancestor_ids()
            if not self.visibility.is_hidden(parent_id)
        ]

    def management_listing(
        self,
        selected: Optional[Category] = None,
        expanded: Iterable[int] = (),
    ) -> List[ListingItem]:
        """Top-level listing with every category on the selected branch expanded.

        Each level expands the ids in ``expanded`` plus the next visible
        ancestor of the selection, so the whole path down to the selected
        category is loaded.
        """

        if selected is None or selected.id == TOP_CATEGORY_ID:
            selected_parents: List[int] = []
            selected_id = None
        else:
            selected_parents = self.visible_parents(selected) + [selected.id]
            selected_id = selected.id
        return self._listing_level(self.top(), frozenset(expanded), selected_parents, selected_id)

    def _listing_level(
        self,
        parent: Category,
        expanded: FrozenSet[int],
        selected_parents: List[int],
        selected_id: Optional[int],
    ) -> List[ListingItem]:
        at_level = set(expanded)
        remaining = list(selected_parents)
        in_path = remaining[0] if remaining else None
        if remaining:
            at_level.add(remaining.pop(0))

        items: List[ListingItem] = []
        for category in self.children_of(parent):
            subcategories: List[ListingItem] = []
            if category.id in at_level:
                subcategories = self._listing_level(category, expanded, remaining, selected_id)
            items.append(
                ListingItem(
                    category=category,
                    subcategories=subcategories,
                    children_count=self.children_count(category),
                    selected=category.id == selected_id,
                    in_selected_path=category.id == in_path,
                )
            )
        return items

    def tree(self, root: Category, max_depth: int, limit: Optional[int] = None) -> List[CategoryNode]:
        return build_visible_tree(self, root, max_depth, limit)


def current_category_view() -> CategoryView:
    """Category view for the logged-in user, shared within one request."""

    if "category_view" not in g:
        g.category_view = CategoryView(CategoryStore(), current_visibility(), child_cache)
    return g.category_view
