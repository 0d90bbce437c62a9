from __future__ import annotations

import pytest

from pilaf import StateManager, diff_values
from pilaf.state import format_path, resolve_path, truncate


def test_store_is_last_write_wins(state: StateManager) -> None:
    state.store("inv", {"items": [1]})
    state.store("inv", {"items": [2]})

    assert state.retrieve("inv") == {"items": [2]}
    assert state.keys() == ["inv"]


def test_retrieve_missing_returns_none(state: StateManager) -> None:
    assert state.retrieve("nothing") is None
    assert not state.exists("nothing")


def test_stored_values_are_snapshots(state: StateManager) -> None:
    original = {"items": ["dirt"]}
    state.store("inv", original)
    original["items"].append("stone")
    state.retrieve("inv")["items"].append("sand")

    assert state.retrieve("inv") == {"items": ["dirt"]}


def test_empty_name_is_rejected(state: StateManager) -> None:
    with pytest.raises(ValueError):
        state.store("", 1)


def test_compare_equal_values_has_no_changes(state: StateManager) -> None:
    state.store("a", {"x": 1, "nested": {"list": [1, 2, {"k": "v"}]}})
    state.store("b", {"nested": {"list": [1, 2, {"k": "v"}]}, "x": 1.0})

    comparison = state.compare("a", "b")

    assert not comparison.has_changes
    assert comparison.diff == ()


def test_compare_single_leaf_change_is_one_replace(state: StateManager) -> None:
    state.store("before", {"player": {"health": 20, "pos": [1, 64, 2]}})
    state.store("after", {"player": {"health": 20, "pos": [1, 70, 2]}})

    comparison = state.compare("before", "after")

    assert len(comparison.diff) == 1
    operation = comparison.diff[0]
    assert operation.op == "replace"
    assert operation.path == ".player.pos[1]"
    assert (operation.old, operation.new) == (64, 70)


def test_compare_missing_names_compares_nulls(state: StateManager) -> None:
    assert not state.compare("a", "b").has_changes

    state.store("b", 5)
    comparison = state.compare("a", "b")
    assert [operation.to_dict() for operation in comparison.diff] == [
        {"op": "replace", "path": "", "old_value": None, "value": 5}
    ]


def test_diff_classifies_add_and_remove() -> None:
    operations = diff_values({"keep": 1, "gone": 2}, {"keep": 1, "new": 3})

    assert [(operation.op, operation.path) for operation in operations] == [
        ("remove", ".gone"),
        ("add", ".new"),
    ]


def test_diff_arrays_by_index() -> None:
    operations = diff_values([1, 2, 3], [1, 5])

    assert [(operation.op, operation.path) for operation in operations] == [
        ("replace", "[1]"),
        ("remove", "[2]"),
    ]


def test_diff_type_change_is_replace() -> None:
    operations = diff_values({"a": [1]}, {"a": {"0": 1}})

    assert len(operations) == 1
    assert operations[0].op == "replace"
    assert operations[0].path == ".a"


def test_diff_booleans_are_not_numbers() -> None:
    assert diff_values(True, 1)[0].op == "replace"
    assert diff_values(1, 1.0) == []


def test_diff_leaf_equality() -> None:
    assert diff_values(None, None) == []
    assert diff_values("stone", "stone") == []
    assert diff_values({"a": None}, {"a": {}})[0].op == "replace"
    assert diff_values([], {})[0].path == ""


def test_move_detection_reports_single_move() -> None:
    operations = diff_values(["a", "b", "c"], ["b", "c", "a"], detect_moves=True)

    assert [(operation.op, operation.path, operation.from_path) for operation in operations] == [
        ("move", "[2]", "[0]"),
    ]


def test_move_detection_prefers_lowest_original_index() -> None:
    operations = diff_values(["x", "a", "x"], ["a", "x", "x", "x"], detect_moves=True)
    moves = [operation for operation in operations if operation.op == "move"]

    assert all(operation.from_path == "[0]" for operation in moves)


def test_insertion_in_middle_does_not_cascade_with_moves() -> None:
    operations = diff_values([1, 2, 3], [1, 9, 2, 3], detect_moves=True)

    assert [(operation.op, operation.path) for operation in operations] == [("add", "[1]")]


def test_large_values_are_truncated_for_display_only(state: StateManager) -> None:
    big = "x" * 2000
    state.store("a", {"blob": big})
    state.store("b", {"blob": big + "y"})

    comparison = state.compare("a", "b")
    described = comparison.describe(limit=100)

    assert comparison.diff[0].new == big + "y"
    assert "...truncated, 2003 total chars" in described


def test_truncate_marker() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("abcdefghij", 4) == "abcd...truncated, 10 total chars"


def test_format_and_resolve_paths() -> None:
    document = {"players": [{"name": "Steve", "inv": {"slots": [None, "dirt"]}}]}

    assert format_path([]) == ""
    assert format_path(["players", 0, "name"]) == ".players[0].name"
    assert resolve_path(document, "$.players[0].inv.slots[1]") == "dirt"
    assert resolve_path(document, "players[0].name") == "Steve"
    assert resolve_path(document, "$") == document


def test_resolve_path_errors() -> None:
    with pytest.raises(LookupError):
        resolve_path({"a": []}, "$.a[0]")
    with pytest.raises(LookupError):
        resolve_path({"a": 1}, "$.b")
    with pytest.raises(ValueError):
        resolve_path({"a": 1}, "$.a[x]")
