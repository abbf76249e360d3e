"""Tests for JSON tree helpers."""

from __future__ import annotations

from custom_components.wifipool.wifipool.tree import (
    collect_uuids,
    dedupe,
    dig,
    is_uuid,
    values_for_keys,
    walk,
)

U1 = "00000001-0000-4000-8000-000000000001"
U2 = "00000002-0000-1000-a000-000000000002"


def test_is_uuid_is_strict():
    assert is_uuid(U1) is True
    assert is_uuid(U1.upper()) is True
    assert is_uuid(f" {U2} ") is True
    # Version 0 and bad variant are rejected.
    assert is_uuid("00000001-0000-0000-8000-000000000001") is False
    assert is_uuid("00000001-0000-4000-c000-000000000001") is False
    assert is_uuid(f"{U1}.o3") is False
    assert is_uuid(12) is False


def test_walk_visits_every_node_depth_first():
    tree = {"a": [1, {"b": 2}], "c": 3}

    pairs = list(walk(tree))

    assert pairs[0] == (None, tree)
    assert ("a", [1, {"b": 2}]) in pairs
    assert (None, 1) in pairs
    assert ("b", 2) in pairs
    assert pairs[-1] == ("c", 3)


def test_collect_uuids_dedupes_in_first_seen_order():
    tree = [{"x": U2, "nested": {"y": [U1, U2, "nope"]}}, U1]

    assert collect_uuids(tree) == [U2, U1]


def test_values_for_keys_at_any_depth():
    tree = {"devices": [1], "g": [{"devices": [2]}, {"other": {"devices": [3]}}]}

    assert values_for_keys(tree, ("devices",)) == [[1], [2], [3]]


def test_dig_follows_keys_and_indexes():
    tree = {"mobile_group_data": {"devices": [{"id": U1}]}}

    assert dig(tree, "mobile_group_data", "devices", 0, "id") == U1
    assert dig(tree, "mobile_group_data", "devices", 1, "id") is None
    assert dig(tree, "mobile_group_data", "devices", "id") is None
    assert dig(tree, "missing") is None


def test_dedupe_preserves_order():
    assert dedupe(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]
