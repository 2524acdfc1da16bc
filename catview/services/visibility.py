"""Per-principal category visibility.

The oracle answers which categories the current user may view. Its answers
are frozen into a :class:`VisibilitySet` once per request and handed to the
compactor, the child cache and the API export; nothing downstream queries the
oracle again or mutates the set.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterable, Set

from flask import g
from flask_login import current_user

from ..constants import CAP_VIEW_HIDDEN
from ..models import CategoryRestriction
from .store import CategoryStore


def user_has_capability(user: Any, capability: str) -> bool:
    """Return ``True`` when an authenticated ``user`` holds ``capability``."""

    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return bool(user.has_capability(capability))


class VisibilityOracle:
    """Answers visibility questions for one principal straight from the store."""

    def __init__(self, user: Any, store: CategoryStore | None = None) -> None:
        self.user = user
        self.store = store or CategoryStore()

    def all_ids(self) -> Set[int]:
        return set(self.store.all_ids())

    def viewable_ids(self) -> Set[int]:
        if user_has_capability(self.user, CAP_VIEW_HIDDEN):
            return self.all_ids()
        return set(self.store.visible_ids())

    def hidden_ids(self) -> Set[int]:
        return self.all_ids() - self.viewable_ids()

    def denied_ids(self) -> Set[int]:
        """Categories whose access context is not valid for the principal."""

        if self.user is None or not getattr(self.user, "is_authenticated", False):
            return set()
        rows = CategoryRestriction.query.filter_by(user_id=self.user.id).with_entities(
            CategoryRestriction.category_id
        )
        return {row.category_id for row in rows}


@dataclass(frozen=True)
class VisibilitySet:
    viewable: FrozenSet[int]
    hidden: FrozenSet[int]
    denied: FrozenSet[int] = field(default_factory=frozenset)

    @classmethod
    def from_oracle(cls, oracle: VisibilityOracle) -> "VisibilitySet":
        everything = frozenset(oracle.all_ids())
        viewable = frozenset(oracle.viewable_ids()) & everything
        return cls(
            viewable=viewable,
            hidden=everything - viewable,
            denied=frozenset(oracle.denied_ids()),
        )

    @classmethod
    def build(
        cls,
        viewable: Iterable[int],
        hidden: Iterable[int] = (),
        denied: Iterable[int] = (),
    ) -> "VisibilitySet":
        return cls(frozenset(viewable), frozenset(hidden), frozenset(denied))

    def is_hidden(self, category_id: int) -> bool:
        return category_id in self.hidden

    def is_denied(self, category_id: int) -> bool:
        return category_id in self.denied

    @property
    def fingerprint(self) -> str:
        """Stable digest of the hidden ids, used to namespace cache keys."""

        serial = ",".join(str(category_id) for category_id in sorted(self.hidden))
        return hashlib.sha256(serial.encode("ascii")).hexdigest()[:16]


def current_visibility() -> VisibilitySet:
    """Visibility of the logged-in user, computed at most once per request."""

    if "category_visibility" not in g:
        g.category_visibility = VisibilitySet.from_oracle(VisibilityOracle(current_user))
    return g.category_visibility
