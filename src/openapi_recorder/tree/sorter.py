"""Stable ordering for document maps whose key order depends on test order."""

import copy
from typing import Any

from openapi_recorder.tree.selector import dig, matched_paths

SORTED_SELECTORS = (
    "paths",
    "paths.*",
    "paths.*.*.responses",
    "paths.*.*.responses.*.content",
)


def deep_sort(tree: dict) -> dict:
    """Return a copy of ``tree`` with paths, methods, statuses and media types sorted."""
    result = copy.deepcopy(tree)
    for selector in SORTED_SELECTORS:
        for path in matched_paths(result, selector):
            _sort_in_place(dig(result, path))
    return result


def _sort_in_place(node: Any) -> None:
    if not isinstance(node, dict):
        return
    entries = sorted(node.items(), key=lambda kv: str(kv[0]))
    node.clear()
    node.update(entries)
