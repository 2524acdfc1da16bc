from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from ..services.category_view import ListingItem, current_category_view
from ..utils.category_tree import (
    CategoryNode,
    category_summary,
    flatten_category_tree,
    serialize_tree,
)
from ..utils.pagination import PageInfo, get_page_args, pagination_payload


bp = Blueprint("categories", __name__, url_prefix="/categories")


@bp.route("/")
@bp.route("/<int:category_id>")
@login_required
def browse(category_id=None):
    view = current_category_view()
    category = view.user_top() if category_id is None else view.get(category_id)
    page, per_page = get_page_args(default_per_page=current_app.config["CATEGORIES_PER_PAGE"])
    pagination = PageInfo(page, per_page, view.children_count(category))
    children = view.children_of(
        category,
        sort=request.args.get("sort") or None,
        offset=pagination.offset,
        limit=per_page,
    )
    return jsonify(
        {
            "category": category_summary(category),
            "parents": view.visible_parents(category),
            "children_count": pagination.total,
            "children": [
                {**category_summary(child), "children_count": view.children_count(child)}
                for child in children
            ],
            "pagination": pagination_payload(pagination),
        }
    )


@bp.route("/tree")
@login_required
def tree():
    view = current_category_view()
    top = view.top()
    if not view.children_count(top):
        return jsonify({"categories": []})
    nodes = view.tree(
        top,
        max_depth=current_app.config["MAX_CATEGORY_DEPTH"],
        limit=current_app.config["CATEGORIES_PER_PAGE"],
    )
    return jsonify({"categories": serialize_tree(nodes)})


@bp.route("/manage")
@login_required
def manage():
    view = current_category_view()
    category_id = request.args.get("categoryid", type=int)
    selected = view.get(category_id) if category_id else None
    expanded = _parse_id_list(request.args.get("expanded", ""))
    listing = view.management_listing(selected, expanded)
    rows = flatten_category_tree(_listing_nodes(listing))
    return jsonify(
        {
            "selected": selected.id if selected is not None else None,
            "items": [_serialize_listing_item(item) for item in listing],
            "rows": [
                {
                    "id": row["category"].id,
                    "name": row["category"].name,
                    "depth": row["depth"],
                    "has_children": row["has_children"],
                }
                for row in rows
            ],
        }
    )


def _parse_id_list(raw: str) -> List[int]:
    return [int(part) for part in raw.split(",") if part.strip().isdigit()]


def _listing_nodes(listing: List[ListingItem]) -> List[CategoryNode]:
    return [
        CategoryNode(
            category=item["category"],
            children=_listing_nodes(item["subcategories"]),
            children_count=item["children_count"],
            has_more=False,
        )
        for item in listing
    ]


def _serialize_listing_item(item: ListingItem) -> Dict[str, Any]:
    return {
        **category_summary(item["category"]),
        "children_count": item["children_count"],
        "selected": item["selected"],
        "in_selected_path": item["in_selected_path"],
        "subcategories": [_serialize_listing_item(subcategory) for subcategory in item["subcategories"]],
    }
