"""Reconciliation of a freshly generated document with a persisted one.

The persisted document may carry manual edits. Only fields reached by an
owned selector are machine-owned: those are pruned when the fresh document
no longer produces them and overwritten with the fresh values otherwise.
Everything else in the persisted document is left exactly as it was.
"""

import copy
import logging
from typing import Any, Iterable, Sequence

from pydantic import BaseModel

from openapi_recorder.tree.cleaner import canonical, cleanup_array, cleanup_field, identity
from openapi_recorder.tree.selector import PathSelector, as_selector, matched_paths

logger = logging.getLogger(__name__)


class OwnedSelector(BaseModel):
    """A machine-owned region of the document.

    ``compare_keys`` marks the selected node as a list whose elements are
    identified by those keys, e.g. parameters by ``name`` and ``in``.
    """

    selector: str
    compare_keys: list[str] | None = None


DEFAULT_OWNED_SELECTORS = [
    OwnedSelector(selector="paths.*"),
    OwnedSelector(selector="paths.*.*"),
    OwnedSelector(selector="paths.*.*.parameters", compare_keys=["name", "in"]),
    OwnedSelector(selector="paths.*.*.requestBody.content.application/json.schema.properties.*"),
    OwnedSelector(selector="paths.*.*.requestBody.content.application/json.example.*"),
    OwnedSelector(selector="paths.*.*.responses.*.content.application/json.schema.properties.*"),
    OwnedSelector(selector="paths.*.*.responses.*.content.application/json.example.*"),
]

# A fresh schema joins an existing oneOf option only above this similarity.
SIMILARITY_THRESHOLD = 0.5


def reconcile(
    persisted: dict,
    candidate: dict,
    owned_selectors: Iterable["OwnedSelector | tuple"] | None = None,
) -> dict:
    """Merge ``candidate`` into ``persisted`` and return the result.

    For each owned selector, in order, stale content is first removed from
    the persisted side using the candidate as reference, then the candidate
    values at the selector's paths are written over it. Neither input is
    modified.
    """
    if owned_selectors is None:
        owned_selectors = DEFAULT_OWNED_SELECTORS

    unpacked = [_unpack(owned) for owned in owned_selectors]
    # Lists named like an identity-keyed selector keep their identity when
    # overwritten as part of a larger subtree.
    list_keys = {sel.segments[-1]: keys for sel, keys in unpacked if keys}

    result = copy.deepcopy(persisted) if persisted else {}
    for selector, compare_keys in unpacked:
        logger.debug("Reconciling %s", selector, extra={"selector": str(selector)})
        if compare_keys:
            result = cleanup_array(result, candidate, selector, compare_keys)
        else:
            result = cleanup_field(result, candidate, selector)
        result = overwrite(result, candidate, selector, compare_keys, list_keys)
    return result


def overwrite(
    persisted: Any,
    candidate: Any,
    selector: "str | PathSelector",
    compare_keys: Sequence[str] | None = None,
    list_keys: dict[str, list[str]] | None = None,
) -> Any:
    """Write the candidate's value at every selector-matched path into a copy of ``persisted``.

    Missing intermediate containers are created. Paths passing through a
    persisted ``$ref`` map, or beside a persisted ``oneOf``, are skipped.
    """
    result = copy.deepcopy(persisted) if persisted is not None else {}
    for path in matched_paths(candidate, selector):
        fresh = _dig_value(candidate, path)
        parent = _ensure_parent(result, path)
        if parent is None:
            continue
        key = path[-1]
        current = _get_child(parent, key)
        _set_child(parent, key, deep_overwrite(current, fresh, compare_keys, list_keys))
    return result


def deep_overwrite(
    base: Any,
    fresh: Any,
    compare_keys: Sequence[str] | None = None,
    list_keys: dict[str, list[str]] | None = None,
) -> Any:
    """Recursively overlay ``fresh`` on ``base`` keeping keys only ``base`` has.

    - a ``base`` map with ``$ref`` is a hand-written reference and is kept;
    - a ``fresh`` map with ``oneOf`` replaces ``base`` wholesale;
    - a ``base`` map with ``oneOf`` takes ``fresh`` into its closest option;
    - a single ``example`` meeting an ``examples`` map is converted first;
    - ``properties``/``required`` are not added next to ``additionalProperties``;
    - a ``required`` list is dropped when ``fresh`` has properties but none required;
    - lists with ``compare_keys``, or stored under a key of ``list_keys``,
      are merged element-wise by identity;
    - everything else: the fresh value wins.
    """
    if isinstance(base, dict) and isinstance(fresh, dict):
        if "$ref" in base:
            return base
        if "oneOf" in fresh:
            return copy.deepcopy(fresh)
        if isinstance(base.get("oneOf"), list):
            merged = dict(base)
            merged["oneOf"] = _merge_closest_option(base["oneOf"], fresh, list_keys)
            return merged

        if "example" in base and "examples" in fresh:
            base = _example_to_examples(base)
        elif "examples" in base and "example" in fresh:
            fresh = _example_to_examples(fresh)

        merged = dict(base)
        for key, value in fresh.items():
            if "additionalProperties" in base and key in ("properties", "required") and key not in base:
                continue
            if key in base:
                merged[key] = deep_overwrite(base[key], value, (list_keys or {}).get(key), list_keys)
            else:
                merged[key] = copy.deepcopy(value)
        if "properties" in fresh and "required" not in fresh and "additionalProperties" not in base:
            # Nothing observed is required any more.
            merged.pop("required", None)
        return merged

    if isinstance(base, list) and isinstance(fresh, list) and compare_keys:
        if _identified(base, compare_keys) and _identified(fresh, compare_keys):
            return _merge_by_identity(base, fresh, compare_keys, list_keys)

    return copy.deepcopy(fresh)


# -- internals ----------------------------------------------------------------

_MISSING = object()


def _unpack(owned: "OwnedSelector | tuple | str") -> tuple[PathSelector, list[str] | None]:
    if isinstance(owned, OwnedSelector):
        return as_selector(owned.selector), owned.compare_keys
    if isinstance(owned, (str, PathSelector)):
        return as_selector(owned), None
    selector, compare_keys = owned
    return as_selector(selector), list(compare_keys) if compare_keys else None


def _identified(elements: list, compare_keys: Sequence[str]) -> bool:
    return all(isinstance(e, dict) and all(k in e for k in compare_keys) for e in elements)


def _merge_by_identity(
    base: list, fresh: list, compare_keys: Sequence[str], list_keys: dict[str, list[str]] | None
) -> list:
    merged = list(base)
    positions = {identity(e, compare_keys): i for i, e in enumerate(merged)}
    for element in fresh:
        key = identity(element, compare_keys)
        if key in positions:
            merged[positions[key]] = deep_overwrite(merged[positions[key]], element, list_keys=list_keys)
        else:
            positions[key] = len(merged)
            merged.append(copy.deepcopy(element))
    return merged


def _merge_closest_option(options: list, fresh: dict, list_keys: dict[str, list[str]] | None) -> list:
    merged = list(options)
    best_index, best_score = None, 0.0
    for i, option in enumerate(options):
        score = _similarity(option, fresh)
        if best_index is None or score > best_score:
            best_index, best_score = i, score

    if best_index is not None and isinstance(options[best_index], dict) and "$ref" in options[best_index]:
        return merged
    if best_index is not None and best_score > SIMILARITY_THRESHOLD:
        merged[best_index] = deep_overwrite(options[best_index], fresh, list_keys=list_keys)
    else:
        merged.append(copy.deepcopy(fresh))
    return merged


def _similarity(first: Any, second: Any) -> float:
    """Share of structure two values have in common, between 0 and 1."""
    if first == second:
        return 1.0
    if isinstance(first, list) and isinstance(second, list):
        common = {canonical(v) for v in first} & {canonical(v) for v in second}
        return len(common) / max(len(first), len(second))
    if isinstance(first, dict) and isinstance(second, dict):
        if "$ref" in first or "$ref" in second:
            return 1.0
        common = first.keys() & second.keys()
        return sum(_similarity(first[k], second[k]) for k in common) / max(len(first), len(second))
    return 0.0


def _example_to_examples(media: dict) -> dict:
    converted = {k: v for k, v in media.items() if k != "example"}
    converted["examples"] = {"default": {"value": media["example"]}}
    return converted


def _dig_value(tree: Any, path: tuple) -> Any:
    node = tree
    for key in path:
        node = node[key]
    return node


def _get_child(parent: Any, key: Any) -> Any:
    if isinstance(parent, dict):
        return parent.get(key, _MISSING)
    if isinstance(parent, list) and isinstance(key, int) and key < len(parent):
        return parent[key]
    return _MISSING


def _set_child(parent: Any, key: Any, value: Any) -> None:
    if isinstance(parent, list):
        if isinstance(key, int) and key < len(parent):
            parent[key] = value
        else:
            parent.append(value)
    else:
        parent[key] = value


def _ensure_parent(tree: Any, path: tuple) -> Any:
    node = tree
    for depth, key in enumerate(path[:-1]):
        if _closed(node, key):
            return None
        child = _get_child(node, key)
        if not isinstance(child, (dict, list)):
            # A scalar in the way of a machine-owned path is replaced.
            child = [] if isinstance(path[depth + 1], int) else {}
            _set_child(node, key, child)
        node = child
    if _closed(node, path[-1]):
        return None
    return node


def _closed(node: Any, key: Any) -> bool:
    # Hand-written references and oneOf options are only merged through deep_overwrite.
    if not isinstance(node, dict):
        return False
    return "$ref" in node or ("oneOf" in node and key != "oneOf")
