"""Removes unused extension blocks from a glTF JSON tree before output.

Only direct children of a map stored under the key ``extensions`` are
filtered: a child survives when its key is listed in ``extensionsUsed``.
Everything else, lists included, is copied through unchanged.
"""
from typing import Any, Iterable, Optional

from json_writer import JsonWriter
from packer_logging import get_logger

logger = get_logger(__name__)

EXTENSIONS_KEY = "extensions"


def is_used_extension(extensions_used: Iterable[str], key: str) -> bool:
    """Check whether an extension name is declared in extensionsUsed."""
    return key in extensions_used


def _traverse(node: Any, used: frozenset, writer: JsonWriter, parent_key: Optional[str]):
    if isinstance(node, dict):
        writer.begin_map()
        for key, value in node.items():
            if parent_key == EXTENSIONS_KEY and not is_used_extension(used, key):
                logger.debug("Skipping unused extension %s", key)
                continue
            writer.key(key)
            _traverse(value, used, writer, key)
        writer.end_map()
    elif isinstance(node, list):
        writer.begin_list()
        for item in node:
            _traverse(item, used, writer, None)
        writer.end_list()
    else:
        writer.value(node)


def write_pruned(tree: Any, extensions_used: Iterable[str], writer: JsonWriter):
    """Stream tree into writer, dropping extensions missing from extensions_used."""
    _traverse(tree, frozenset(extensions_used or ()), writer, None)


def prune_unused_extensions(
    tree: Any,
    extensions_used: Optional[Iterable[str]] = None,
    indent: Optional[int] = 2,
) -> str:
    """Serialize a JSON tree without its unused extension blocks.

    Args:
        tree: Parsed JSON (dicts, lists and scalars)
        extensions_used: Extension names to keep, defaults to the
            root extensionsUsed list of the tree
        indent: Indentation of the output text, None for a single line

    Returns:
        JSON text
    """
    if extensions_used is None:
        extensions_used = tree.get("extensionsUsed", []) if isinstance(tree, dict) else []
    writer = JsonWriter(indent=indent)
    write_pruned(tree, extensions_used, writer)
    return writer.getvalue()
