import re
from typing import Any, Dict, List

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ..services.external import get_categories
from ..services.visibility import current_visibility


bp = Blueprint("api", __name__, url_prefix="/api")

_CRITERION_ARG = re.compile(r"^criteria\[(\d+)\]\[(key|value)\]$")
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _criteria_from_args(args) -> List[Dict[str, Any]]:
    """Collect ``criteria[N][key]`` / ``criteria[N][value]`` query arguments."""

    indexed: Dict[int, Dict[str, Any]] = {}
    for name, value in args.items():
        match = _CRITERION_ARG.match(name)
        if match:
            indexed.setdefault(int(match.group(1)), {})[match.group(2)] = value
    return [indexed[index] for index in sorted(indexed)]


def _as_bool(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in _FALSE_VALUES


@bp.route("/categories", methods=["GET", "POST"])
@login_required
def categories():
    payload = request.get_json(silent=True)
    if payload is not None and not isinstance(payload, dict):
        return _invalid_criteria()
    if payload:
        criteria = payload.get("criteria") or []
        addsubcategories = _as_bool(payload.get("addsubcategories"))
    else:
        criteria = _criteria_from_args(request.args)
        addsubcategories = _as_bool(request.args.get("addsubcategories"))
    if not isinstance(criteria, list) or not all(isinstance(item, dict) for item in criteria):
        return _invalid_criteria()

    result = get_categories(
        criteria,
        addsubcategories,
        user=current_user,
        visibility=current_visibility(),
    )
    return jsonify(result)


def _invalid_criteria():
    return jsonify({"success": False, "message": "Invalid 'criteria' payload"}), 400
