"""Structural cleanup of a target tree against a reference tree.

Removes map entries and list elements from the target that the reference no
longer contains, limited to what a selector reaches. Inputs are never
mutated; every function returns a new tree.
"""

import copy
import logging
from typing import Any, Sequence

from openapi_recorder.errors import IncompatibleArrayCleanup, SelectorDepthMismatch
from openapi_recorder.tree.selector import PathSelector, dig, exists, matched_paths

logger = logging.getLogger(__name__)

_ABSENT = ("absent",)


def cleanup_field(target: Any, reference: Any, selector: "str | PathSelector") -> Any:
    """Delete every selector-matched node of ``target`` whose path is missing in ``reference``.

    Only existence is tested; values may differ. Ancestors of a deleted node
    are kept even when they end up empty.
    """
    result = copy.deepcopy(target)
    stale = [path for path in matched_paths(result, selector) if not exists(reference, path)]

    # Reverse pre-order keeps list indices valid while deleting.
    for path in reversed(stale):
        _delete(result, path)
        logger.debug("Removed stale field %s", list(path), extra={"selector": str(selector)})
    return result


def cleanup_array(
    target: Any,
    reference: Any,
    selector: "str | PathSelector",
    compare_keys: Sequence[str] | None = None,
) -> Any:
    """Drop list elements of ``target`` that have no equivalent in ``reference``.

    Without ``compare_keys`` two elements are equivalent when structurally
    equal. With ``compare_keys`` only those keys are compared, and the full
    target element is kept. Order of the kept elements is preserved.

    Raises:
        IncompatibleArrayCleanup: If a matched node is not a list in the
            target, or exists in the reference but is not a list there.
    """
    result = copy.deepcopy(target)
    for path in matched_paths(result, selector):
        target_array = dig(result, path)
        if not isinstance(target_array, list):
            raise IncompatibleArrayCleanup(path, "target", target_array)
        try:
            reference_array = dig(reference, path)
        except SelectorDepthMismatch:
            # Nothing to compare against.
            continue
        if not isinstance(reference_array, list):
            raise IncompatibleArrayCleanup(path, "reference", reference_array)

        identities = {identity(e, compare_keys) for e in reference_array}
        kept = [e for e in target_array if identity(e, compare_keys) in identities]
        if len(kept) != len(target_array):
            logger.debug(
                "Removed %d stale elements at %s",
                len(target_array) - len(kept),
                list(path),
                extra={"selector": str(selector)},
            )
        target_array[:] = kept
    return result


def cleanup_empty_required(tree: Any) -> Any:
    """Remove ``required: []`` from schema objects anywhere in the tree."""
    if isinstance(tree, list):
        return [cleanup_empty_required(v) for v in tree]
    if not isinstance(tree, dict):
        return tree

    is_schema = "type" in tree or "properties" in tree
    return {
        k: cleanup_empty_required(v)
        for k, v in tree.items()
        if not (k == "required" and is_schema and v == [])
    }


def identity(value: Any, compare_keys: Sequence[str] | None = None) -> tuple:
    """Hashable identity of a tree value, optionally restricted to some keys."""
    if compare_keys and isinstance(value, dict):
        return tuple(
            canonical(value[k]) if k in value else _ABSENT for k in compare_keys
        )
    return canonical(value)


def canonical(value: Any) -> tuple:
    """Order-insensitive, hashable form of a tree used for strict equality.

    Booleans never compare equal to numbers.
    """
    if value is None:
        return ("null",)
    if isinstance(value, bool):
        return ("bool", value)
    if isinstance(value, (int, float)):
        return ("number", value)
    if isinstance(value, str):
        return ("string", value)
    if isinstance(value, dict):
        items = sorted(((str(k), canonical(v)) for k, v in value.items()), key=lambda kv: kv[0])
        return ("map", tuple(items))
    if isinstance(value, (list, tuple)):
        return ("list", tuple(canonical(v) for v in value))
    return ("other", repr(value))


def _delete(tree: Any, path: tuple) -> None:
    parent = dig(tree, path[:-1])
    key = path[-1]
    if isinstance(parent, list):
        del parent[int(key)]
    else:
        del parent[key]
