"""Tests for removal of unused extensions."""
import json
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from extension_pruner import is_used_extension, prune_unused_extensions


def prune(tree, used=None, indent=2):
    return json.loads(prune_unused_extensions(tree, used, indent=indent))


def test_keeps_used_and_drops_unused():
    """Only extensions listed as used should survive under 'extensions'."""
    tree = {
        "extensionsUsed": ["A"],
        "extensions": {
            "A": {"value": [1, 2, 3], "nested": {"deep": True}},
            "B": {"value": 4},
        },
    }
    result = prune(tree)

    assert list(result["extensions"]) == ["A"]
    assert result["extensions"]["A"] == tree["extensions"]["A"]


def test_keeps_empty_used_extension():
    """A used extension should be kept even when its value is empty."""
    tree = {"extensions": {"A": {}, "B": {}}}
    result = prune(tree, ["A"])

    assert result["extensions"] == {"A": {}}


def test_nested_extensions_are_pruned():
    """Extensions on nested objects should be filtered too."""
    tree = {
        "nodes": [
            {"name": "head", "extensions": {"A": {"x": 1}, "B": {"y": 2}}},
            {"name": "body", "extensions": {"B": {"y": 3}}},
        ]
    }
    result = prune(tree, ["A"])

    assert result["nodes"][0]["extensions"] == {"A": {"x": 1}}
    assert result["nodes"][1]["extensions"] == {}
    assert result["nodes"][1]["name"] == "body"


def test_keys_outside_extensions_are_kept():
    """Keys named like extensions elsewhere must never be removed."""
    tree = {
        "extras": {"A": 1, "B": 2},
        "B": {"A": {"B": 3}},
        "extensionsUsed": ["A"],
    }
    result = prune(tree)

    assert result == tree


def test_lists_under_extensions_are_copied():
    """Only maps directly under 'extensions' are filtered, not lists."""
    tree = {"extensions": [{"B": 1}, {"A": 2}]}
    result = prune(tree, ["A"])

    assert result == tree


def test_extensions_key_inside_extension_payload_is_filtered():
    """A map keyed 'extensions' is filtered wherever it appears."""
    tree = {
        "extensions": {
            "A": {"extensions": {"A": 1, "B": 2}, "other": {"B": 3}},
        }
    }
    result = prune(tree, ["A"])

    assert result["extensions"]["A"]["extensions"] == {"A": 1}
    assert result["extensions"]["A"]["other"] == {"B": 3}


def test_defaults_to_root_extensions_used():
    """Without an explicit list the tree's extensionsUsed should be used."""
    tree = {"extensionsUsed": ["B"], "extensions": {"A": 1, "B": 2}}
    result = prune(tree)

    assert result["extensions"] == {"B": 2}


def test_missing_extensions_used_strips_everything():
    """A document without extensionsUsed should lose all extension blocks."""
    tree = {"extensions": {"A": 1}, "meshes": [{"extensions": {"B": 2}}]}
    result = prune(tree)

    assert result["extensions"] == {}
    assert result["meshes"][0]["extensions"] == {}


def test_preserves_key_order_and_format():
    """Output should be formatted like json.dumps of the pruned tree."""
    tree = {
        "z": 1,
        "extensions": {"B": 0, "A": {"k": [1.5, None, "s"]}},
        "a": [True, False],
    }
    expected = {"z": 1, "extensions": {"A": {"k": [1.5, None, "s"]}}, "a": [True, False]}

    text = prune_unused_extensions(tree, ["A"], indent=2)

    assert text == json.dumps(expected, indent=2)


def test_scalar_and_malformed_input():
    """Non-document input should be copied through, not rejected."""
    assert prune_unused_extensions(5, []) == "5"
    assert prune_unused_extensions([{"extensions": 3}], []) == json.dumps([{"extensions": 3}], indent=2)


def test_is_used_extension():
    assert is_used_extension(["A", "B"], "A")
    assert not is_used_extension(["A"], "C")
    assert not is_used_extension([], "A")
