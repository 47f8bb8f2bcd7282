"""Refresh of ``components.schemas`` entries referenced from operations.

When a persisted request or response body schema has been replaced by hand
with ``$ref: '#/components/schemas/Name'``, reconciliation keeps the
reference. The freshly inferred schema found at the same place in the
candidate document is written into ``components.schemas.Name`` instead.
"""

import logging
from typing import Any

from openapi_recorder.document.merger import deep_overwrite, overwrite
from openapi_recorder.tree.cleaner import cleanup_field
from openapi_recorder.tree.selector import (
    PathSelector,
    dig,
    exists,
    matched_paths,
    matched_paths_deeply_nested,
)

logger = logging.getLogger(__name__)

SCHEMA_REF_PREFIX = "#/components/schemas/"

MEDIA_SELECTORS = (
    "paths.*.*.requestBody.content.application/json",
    "paths.*.*.responses.*.content.application/json",
)


def update_components(persisted: dict, candidate: dict) -> dict:
    """Return ``persisted`` with referenced component schemas refreshed from ``candidate``."""
    top_level_refs = _paths_to_top_level_refs(persisted)
    if not top_level_refs:
        return persisted

    fresh = _build_fresh_schemas(top_level_refs, persisted, candidate)

    # Schemas referenced from properties of the refreshed schemas.
    generated = set(fresh)
    for path in _nested_refs(persisted, generated):
        needle = [p for p in path if not isinstance(p, int) and p != "oneOf"][2:-1]
        nested = _get(fresh, needle)
        if not isinstance(nested, dict):
            # The property holding the reference is no longer produced.
            continue
        name = _ref_name(dig(persisted, path))
        fresh[name] = deep_overwrite(fresh.get(name, {}), nested)

    result = persisted
    for name, schema in fresh.items():
        reference = {"components": {"schemas": {name: schema}}}
        result = overwrite(result, reference, PathSelector.from_segments(["components", "schemas", name]))
        result = cleanup_field(
            result,
            reference,
            PathSelector.from_segments(["components", "schemas", name, "properties", "*"]),
        )
        logger.debug("Refreshed component schema %s", name)
    return result


def _paths_to_top_level_refs(tree: dict) -> list[tuple]:
    refs: list[tuple] = []
    for selector in MEDIA_SELECTORS:
        for path in matched_paths(tree, selector):
            schema = _schema_at(tree, path)
            if not isinstance(schema, dict):
                continue
            if _ref_name(schema.get("$ref")):
                refs.append(path)
            elif isinstance(schema.get("oneOf"), list):
                refs.extend(
                    path + (i,)
                    for i, option in enumerate(schema["oneOf"])
                    if isinstance(option, dict) and _ref_name(option.get("$ref"))
                )
    return refs


def _build_fresh_schemas(refs: list[tuple], persisted: dict, candidate: dict) -> dict[str, Any]:
    fresh: dict[str, Any] = {}
    for path in refs:
        name = _ref_name(_schema_at(persisted, path)["$ref"])
        body = _schema_at(candidate, tuple(p for p in path if not isinstance(p, int)))
        if not isinstance(body, dict):
            continue
        fresh[name] = deep_overwrite(fresh[name], body) if name in fresh else body
    return fresh


def _nested_refs(tree: dict, generated: set[str]) -> list[tuple]:
    paths = [
        *matched_paths_deeply_nested(tree, "components.schemas", "properties.*.$ref"),
        *matched_paths_deeply_nested(tree, "components.schemas", "properties.*.items.$ref"),
    ]
    return [p for p in paths if _ref_name(dig(tree, p)) and _ref_name(dig(tree, p)) not in generated]


def _schema_at(tree: dict, path: tuple) -> Any:
    """Schema under a media-type path: array items first, then the schema itself.

    A trailing integer selects a ``oneOf`` entry of the schema.
    """
    if path and isinstance(path[-1], int):
        return _get(tree, path[:-1] + ("schema", "oneOf", path[-1]))
    items = _get(tree, path + ("schema", "items"))
    if items is not None:
        return items
    return _get(tree, path + ("schema",))


def _get(tree: Any, path: Any) -> Any:
    path = tuple(path)
    return dig(tree, path) if exists(tree, path) else None


def _ref_name(ref: Any) -> str | None:
    if isinstance(ref, str) and ref.startswith(SCHEMA_REF_PREFIX):
        return ref[len(SCHEMA_REF_PREFIX):]
    return None
