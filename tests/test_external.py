import pytest

from catview.errors import ContextInvalid, ForbiddenCriteria, InvalidCriteria
from catview.extensions import db
from catview.models import add_category
from catview.services.external import get_categories, parse_criteria
from catview.services.visibility import VisibilityOracle, VisibilitySet

from conftest import load_user, restrict


def fetch(username, criteria=None, addsubcategories=True):
    user = load_user(username)
    visibility = VisibilitySet.from_oracle(VisibilityOracle(user))
    return get_categories(criteria, addsubcategories, user=user, visibility=visibility)


def by_id(result):
    return {info["id"]: info for info in result}


def path_segments(path):
    return [segment for segment in path.split("/") if segment]


def test_promoted_category_gets_rewritten_path(app_ctx):
    # 0 -> 1 -> 2 (hidden) -> 3
    one = add_category("One")
    two = add_category("Two", one, visible=False)
    three = add_category("Three", two)
    db.session.commit()

    result = fetch("reader", [{"key": "id", "value": str(three.id)}])

    assert result == [
        {
            "id": three.id,
            "name": "Three",
            "description": "",
            "descriptionformat": 1,
            "parent": one.id,
            "sortorder": three.sortorder,
            "coursecount": 0,
            "depth": 2,
            "path": f"/{one.id}/{three.id}",
        }
    ]


def test_consecutive_hidden_ancestors_are_removed(app_ctx):
    one = add_category("One")
    two = add_category("Two", one, visible=False)
    three = add_category("Three", two, visible=False)
    four = add_category("Four", three)
    db.session.commit()

    info = by_id(fetch("reader"))[four.id]

    assert info["path"] == f"/{one.id}/{four.id}"
    assert info["parent"] == one.id
    assert info["depth"] == 2


def test_hidden_top_level_promotes_to_top(app_ctx):
    one = add_category("One", visible=False)
    two = add_category("Two", one)
    db.session.commit()

    result = by_id(fetch("reader"))

    assert one.id not in result
    assert result[two.id]["parent"] == 0
    assert result[two.id]["path"] == f"/{two.id}"
    assert result[two.id]["depth"] == 1


def test_hidden_is_promoted_but_context_denied_is_excluded(app_ctx):
    hidden = add_category("H", visible=False)
    promoted = add_category("V", hidden)
    denied = add_category("E")
    below_denied = add_category("F", denied)
    db.session.commit()
    restrict(load_user("reader").id, denied.id)

    result = by_id(fetch("reader"))

    assert promoted.id in result
    assert result[promoted.id]["parent"] == 0
    assert hidden.id not in result
    assert denied.id not in result
    assert below_denied.id not in result


def test_descendants_of_denied_hidden_category_are_excluded(app_ctx):
    hidden = add_category("H", visible=False)
    child = add_category("C", hidden)
    db.session.commit()
    restrict(load_user("reader").id, hidden.id)

    assert child.id not in by_id(fetch("reader"))


def test_path_invariant_holds_for_every_record(app_ctx, tree):
    for username in ("reader", "admin"):
        for info in fetch(username):
            segments = path_segments(info["path"])
            assert info["depth"] == len(segments)
            assert segments[-1] == str(info["id"])
            expected_parent = int(segments[-2]) if len(segments) > 1 else 0
            assert info["parent"] == expected_parent


def test_reader_output_skips_hidden_categories(app_ctx, tree):
    result = by_id(fetch("reader"))

    assert set(result) == set(tree.values()) - {tree["archive"], tree["chemistry"]}
    assert result[tree["painting"]]["path"] == f"/{tree['arts']}/{tree['painting']}"
    assert result[tree["painting"]]["parent"] == tree["arts"]


def test_admin_output_keeps_original_paths(app_ctx, tree):
    result = by_id(fetch("admin"))

    assert set(result) == set(tree.values())
    assert result[tree["painting"]]["path"] == f"/{tree['arts']}/{tree['archive']}/{tree['painting']}"
    assert result[tree["painting"]]["depth"] == 3


def test_results_are_ordered_by_sortorder(app_ctx, tree):
    sortorders = [info["sortorder"] for info in fetch("reader")]

    assert sortorders == sorted(sortorders)


def test_admin_fields_are_redacted_for_operators(app_ctx, tree):
    reader_info = by_id(fetch("reader"))[tree["arts"]]
    admin_info = by_id(fetch("admin"))[tree["arts"]]

    for field in ("idnumber", "visible", "visibleold", "timemodified", "theme"):
        assert field not in reader_info
        assert field in admin_info
    assert admin_info["idnumber"] == "ARTS"
    assert admin_info["visible"] == 1
    assert isinstance(admin_info["timemodified"], int)


def test_subcategories_are_included_by_default(app_ctx, tree):
    criteria = [{"key": "id", "value": tree["arts"]}]

    with_subs = by_id(fetch("reader", criteria))
    without_subs = by_id(fetch("reader", criteria, addsubcategories=False))

    assert set(with_subs) == {tree["arts"], tree["painting"], tree["sculpture"], tree["music"]}
    assert set(without_subs) == {tree["arts"]}


def test_subcategories_honour_visible_criterion(app_ctx, tree):
    criteria = [{"key": "visible", "value": "0"}]

    result = by_id(fetch("admin", criteria))

    assert set(result) == {tree["archive"], tree["chemistry"]}


def test_ids_and_parent_criteria(app_ctx, tree):
    ids = f"{tree['music']},{tree['physics']}, x"
    assert set(by_id(fetch("reader", [{"key": "ids", "value": ids}]))) == {tree["music"], tree["physics"]}

    top_level = fetch("reader", [{"key": "parent", "value": "0"}], addsubcategories=False)
    assert [info["id"] for info in top_level] == [tree["arts"], tree["science"]]

    by_name = fetch("reader", [{"key": "name", "value": " Music "}])
    assert [info["id"] for info in by_name] == [tree["music"]]


def test_duplicate_criteria_keys_use_first_value(app_ctx, tree):
    criteria = [{"key": "id", "value": tree["music"]}, {"key": "id", "value": tree["arts"]}]

    assert [info["id"] for info in fetch("reader", criteria)] == [tree["music"]]


def test_unknown_criteria_key_is_rejected(app_ctx, tree):
    with pytest.raises(InvalidCriteria) as excinfo:
        fetch("admin", [{"key": "password", "value": "x"}])
    assert excinfo.value.key == "password"


@pytest.mark.parametrize("key", ["idnumber", "visible", "theme"])
def test_privileged_criteria_need_capability(app_ctx, tree, key):
    with pytest.raises(ForbiddenCriteria) as excinfo:
        fetch("reader", [{"key": key, "value": "1"}])
    assert key in excinfo.value.message


def test_privileged_criteria_allowed_for_managers(app_ctx, tree):
    result = fetch("manager", [{"key": "idnumber", "value": "SCI"}], addsubcategories=False)
    assert [info["id"] for info in result] == [tree["science"]]

    themed = fetch("manager", [{"key": "theme", "value": "boost"}])
    assert [info["id"] for info in themed] == [tree["music"]]


def test_exclusively_requested_denied_category_raises(app_ctx, tree):
    reader = load_user("reader")
    restrict(reader.id, tree["music"], reason="locked")

    with pytest.raises(ContextInvalid) as excinfo:
        fetch("reader", [{"key": "id", "value": tree["music"]}])
    assert excinfo.value.category_id == tree["music"]

    broader = by_id(fetch("reader", [{"key": "ids", "value": str(tree["music"])}]))
    assert broader == {}


def test_parse_criteria_strips_key_noise(app_ctx):
    conditions, ids, used = parse_criteria([{"key": " i-d ", "value": "7abc"}], load_user("reader"))

    assert conditions == {"id": 0}
    assert ids is None
    assert used == ["id"]


def test_no_matching_categories_is_empty(app_ctx, tree):
    assert fetch("reader", [{"key": "name", "value": "Nothing"}]) == []
