"""Remove hidden categories from a child list, promoting their descendants."""

from __future__ import annotations

from typing import List, Protocol

from .visibility import VisibilitySet


class ChildIdSource(Protocol):
    def child_ids(self, parent_id: int) -> List[int]: ...


class TreeCompactor:
    """Compute the effectively visible children of a category.

    A hidden child is replaced, in place, by the compacted children of that
    child, so visible grandchildren surface under the nearest visible
    ancestor in their original relative order. The store's parent relation
    must be acyclic; a cycle of hidden categories would never terminate.
    """

    def __init__(self, store: ChildIdSource, visibility: VisibilitySet) -> None:
        self.store = store
        self.visibility = visibility

    def compact(self, parent_id: int) -> List[int]:
        visible_ids: List[int] = []
        for child_id in self.store.child_ids(parent_id):
            if self.visibility.is_hidden(child_id):
                visible_ids.extend(self.compact(child_id))
            else:
                visible_ids.append(child_id)
        return visible_ids
