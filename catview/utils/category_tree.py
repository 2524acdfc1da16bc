"""Helpers for working with visible category hierarchies."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Optional, TypedDict

from ..models import Category

if TYPE_CHECKING:  # pragma: no cover - used solely for type checkers
    from ..services.category_view import CategoryView


class CategoryNode(TypedDict):
    """Represents a node in a category tree."""

    category: Category
    children: List["CategoryNode"]
    children_count: int
    has_more: bool


class FlattenedCategory(TypedDict):
    """A flattened tree item with hierarchy metadata."""

    category: Category
    depth: int
    has_children: bool


def build_visible_tree(
    view: "CategoryView",
    root: Category,
    max_depth: int,
    limit: Optional[int] = None,
) -> List[CategoryNode]:
    """Build nested nodes below ``root`` using only effectively visible children.

    At most ``limit`` children are loaded per level and the tree stops after
    ``max_depth`` levels; ``has_more`` flags a level that was cut short.
    """

    if max_depth <= 0:
        return []
    nodes: List[CategoryNode] = []
    for category in view.children_of(root, limit=limit):
        count = view.children_count(category)
        children = build_visible_tree(view, category, max_depth - 1, limit) if count else []
        nodes.append(
            CategoryNode(
                category=category,
                children=children,
                children_count=count,
                has_more=bool(limit) and max_depth > 1 and count > len(children),
            )
        )
    return nodes


def flatten_category_tree(nodes: Iterable[CategoryNode], depth: int = 0) -> Iterator[FlattenedCategory]:
    """Yield flattened nodes with depth metadata for rendering."""

    for node in nodes:
        category = node["category"]
        children = node["children"]
        yield FlattenedCategory(
            category=category,
            depth=depth,
            has_children=bool(children) or node["children_count"] > 0,
        )
        yield from flatten_category_tree(children, depth + 1)


def category_summary(category: Category) -> Dict[str, Any]:
    """Fields a renderer needs to display a category link."""

    return {
        "id": category.id,
        "name": category.name,
        "parent": category.parent_ref,
        "sortorder": category.sortorder,
        "coursecount": category.coursecount,
        "visible": bool(category.visible),
    }


def serialize_tree(nodes: Iterable[CategoryNode]) -> List[Dict[str, Any]]:
    return [
        {
            **category_summary(node["category"]),
            "children_count": node["children_count"],
            "has_more": node["has_more"],
            "children": serialize_tree(node["children"]),
        }
        for node in nodes
    ]
