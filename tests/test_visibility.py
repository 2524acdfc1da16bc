from flask import g
from flask_login import login_user

from catview.services import visibility as visibility_module
from catview.services.visibility import (
    VisibilityOracle,
    VisibilitySet,
    current_visibility,
    user_has_capability,
)

from conftest import load_user, restrict


def test_operator_cannot_view_hidden_categories(app_ctx, tree):
    oracle = VisibilityOracle(load_user("reader"))

    assert oracle.all_ids() == set(tree.values())
    assert oracle.hidden_ids() == {tree["archive"], tree["chemistry"]}
    assert oracle.viewable_ids() == set(tree.values()) - oracle.hidden_ids()


def test_viewhidden_capability_sees_everything(app_ctx, tree):
    for username in ("admin", "manager"):
        oracle = VisibilityOracle(load_user(username))
        assert oracle.viewable_ids() == oracle.all_ids()
        assert oracle.hidden_ids() == set()


def test_denied_ids_come_from_restrictions(app_ctx, tree):
    reader = load_user("reader")
    restrict(reader.id, tree["science"])

    assert VisibilityOracle(reader).denied_ids() == {tree["science"]}
    assert VisibilityOracle(load_user("admin")).denied_ids() == set()


def test_visibility_set_partitions_known_ids(app_ctx, tree):
    visibility = VisibilitySet.from_oracle(VisibilityOracle(load_user("reader")))

    assert visibility.viewable | visibility.hidden == set(tree.values())
    assert not visibility.viewable & visibility.hidden
    assert visibility.is_hidden(tree["archive"])
    assert not visibility.is_hidden(tree["arts"])


def test_fingerprint_tracks_hidden_ids():
    first = VisibilitySet.build(viewable={1, 3}, hidden={2, 4})
    same = VisibilitySet.build(viewable={1}, hidden={4, 2})
    other = VisibilitySet.build(viewable={1, 2, 3, 4})

    assert first.fingerprint == same.fingerprint
    assert first.fingerprint != other.fingerprint


def test_anonymous_principal_has_no_capabilities(app_ctx):
    assert not user_has_capability(None, "category:manage")
    assert user_has_capability(load_user("admin"), "category:manage")
    assert not user_has_capability(load_user("reader"), "category:viewhiddencategories")


def test_current_visibility_is_computed_once_per_request(app, tree, monkeypatch):
    calls = []
    original = VisibilitySet.from_oracle

    def counting(oracle):
        calls.append(oracle)
        return original(oracle)

    monkeypatch.setattr(visibility_module.VisibilitySet, "from_oracle", staticmethod(counting))
    with app.test_request_context("/"):
        login_user(load_user("reader"))
        first = current_visibility()
        second = current_visibility()
        assert first is second
        assert g.category_visibility is first
        assert first.hidden == {tree["archive"], tree["chemistry"]}
    assert len(calls) == 1
