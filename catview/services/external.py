"""Machine-readable category export.

Records are selected by client criteria, then rewritten so that a client who
can only see viewable categories never notices a gap: hidden categories are
dropped, their descendants are promoted and get a ``path``, ``depth`` and
``parent`` built from the surviving ancestors only. Categories whose access
context is denied are dropped together with everything below them.
"""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from flask import current_app

from ..constants import CAP_MANAGE, CAP_VIEW_HIDDEN
from ..errors import ContextInvalid, ForbiddenCriteria, InvalidCriteria
from ..models import Category
from .store import CategoryStore
from .visibility import VisibilitySet, user_has_capability

ADMIN_FIELDS = ("idnumber", "visible", "visibleold", "timemodified", "theme")

# Criterion key -> (column, capability needed or None)
CRITERIA = {
    "id": ("id", None),
    "ids": (None, None),
    "name": ("name", None),
    "parent": ("parent_id", None),
    "idnumber": ("idnumber", CAP_MANAGE),
    "visible": ("visible", CAP_VIEW_HIDDEN),
    "theme": ("theme", CAP_MANAGE),
}

CONTEXT_DENIED = "context"
PARENT_DENIED = "parent"


def _clean_key(value: Any) -> str:
    return re.sub(r"[^A-Za-z]", "", str(value or "").strip())


def _clean_int(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def _clean_sequence(value: Any) -> List[int]:
    cleaned = re.sub(r"[^0-9,]", "", str(value or ""))
    return [int(part) for part in cleaned.split(",") if part]


def _clean_theme(value: Any) -> str:
    value = str(value or "").strip()
    if re.fullmatch(r"[A-Za-z0-9_]+", value):
        return value
    return ""


def _clean_value(key: str, value: Any) -> Any:
    if key in ("id", "parent"):
        number = _clean_int(value)
        if key == "parent" and number == 0:
            return None
        return number
    if key == "visible":
        return bool(_clean_int(value))
    if key == "theme":
        return _clean_theme(value)
    if key == "name":
        return str(value or "").strip()
    return value


def parse_criteria(
    criteria: Iterable[Mapping[str, Any]],
    user: Any,
) -> Tuple[Dict[str, Any], Optional[List[int]], List[str]]:
    """Validate criteria into column conditions, an id list and the used keys.

    Only the first occurrence of a key counts. Unknown keys raise
    :class:`InvalidCriteria`; keys needing a capability the user lacks raise
    :class:`ForbiddenCriteria`.
    """

    conditions: Dict[str, Any] = {}
    ids: Optional[List[int]] = None
    used: List[str] = []
    for criterion in criteria:
        key = _clean_key(criterion.get("key"))
        if key in used:
            continue
        if key not in CRITERIA:
            raise InvalidCriteria(key)
        column, capability = CRITERIA[key]
        if capability and not user_has_capability(user, capability):
            raise ForbiddenCriteria(key)
        used.append(key)
        if key == "ids":
            ids = _clean_sequence(criterion.get("value"))
        else:
            conditions[column] = _clean_value(key, criterion.get("value"))
    return conditions, ids, used


def _select(
    store: CategoryStore,
    conditions: Dict[str, Any],
    ids: Optional[List[int]],
    addsubcategories: bool,
) -> List[Category]:
    selected = store.records_matching(conditions, ids)
    if not selected or not addsubcategories:
        return selected
    inherited = {column: conditions[column] for column in ("visible", "theme") if column in conditions}
    found = {category.id: category for category in selected}
    for category in selected:
        for subcategory in store.records_below(category.path, inherited):
            found.setdefault(subcategory.id, subcategory)
    return list(found.values())


def export_record(category: Category, chain: Sequence[int], include_admin_fields: bool) -> Dict[str, Any]:
    """Serialize ``category`` as seen below the surviving ancestor ``chain``."""

    segments = list(chain) + [category.id]
    info: Dict[str, Any] = {
        "id": category.id,
        "name": category.name,
        "description": category.description or "",
        "descriptionformat": category.descriptionformat,
        "parent": chain[-1] if chain else 0,
        "sortorder": category.sortorder,
        "coursecount": category.coursecount or 0,
        "depth": len(segments),
        "path": "/" + "/".join(str(segment) for segment in segments),
    }
    if include_admin_fields:
        info.update(
            idnumber=category.idnumber,
            visible=int(bool(category.visible)),
            visibleold=int(bool(category.visibleold)),
            timemodified=category.timemodified,
            theme=_clean_theme(category.theme),
        )
    return info


def export_categories(
    records: Iterable[Category],
    visibility: VisibilitySet,
    include_admin_fields: bool = False,
    requested_id: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Rewrite ``records`` for a principal with the given visibility.

    Raises :class:`ContextInvalid` when ``requested_id`` is itself denied.
    """

    excluded: Dict[int, str] = {}
    exported: List[Dict[str, Any]] = []
    # Ancestors sort before their descendants.
    for category in sorted(records, key=lambda record: record.path or ""):
        if visibility.is_hidden(category.id):
            continue
        original_chain = category.ancestor_ids()
        if visibility.is_denied(category.id):
            excluded[category.id] = CONTEXT_DENIED
            if category.id == requested_id:
                raise ContextInvalid(category.id, "access to the category context is restricted")
            continue
        if any(visibility.is_denied(parent_id) for parent_id in original_chain):
            excluded[category.id] = PARENT_DENIED
            continue
        chain = [parent_id for parent_id in original_chain if not visibility.is_hidden(parent_id)]
        exported.append(export_record(category, chain, include_admin_fields))

    if excluded:
        current_app.logger.debug("Excluded categories from export: %s", excluded)
    exported.sort(key=lambda info: info["path"])
    exported.sort(key=lambda info: info["sortorder"] or 0)
    return exported


def get_categories(
    criteria: Optional[Iterable[Mapping[str, Any]]] = None,
    addsubcategories: bool = True,
    *,
    user: Any,
    visibility: VisibilitySet,
    store: Optional[CategoryStore] = None,
) -> List[Dict[str, Any]]:
    """Categories matching ``criteria`` as visible to ``user``."""

    store = store or CategoryStore()
    criteria = list(criteria or [])
    requested_id = None
    if criteria:
        conditions, ids, used = parse_criteria(criteria, user)
        records = _select(store, conditions, ids, addsubcategories)
        if used == ["id"]:
            requested_id = conditions["id"]
    else:
        records = store.records_matching({})
    return export_categories(
        records,
        visibility,
        include_admin_fields=user_has_capability(user, CAP_MANAGE),
        requested_id=requested_id,
    )
