"""Schema inference from a single observed value."""

from typing import Any

from openapi_recorder.errors import MalformedExchange
from openapi_recorder.schema.merger import MAX_ONE_OF_VARIANTS, merge_all
from openapi_recorder.schema.nodes import (
    ArraySchema,
    BooleanSchema,
    IntegerSchema,
    NullSchema,
    NumberSchema,
    ObjectSchema,
    SchemaNode,
    StringSchema,
)


def infer(
    value: Any,
    formats: dict[str, str] | None = None,
    key: str | None = None,
    max_variants: int = MAX_ONE_OF_VARIANTS,
) -> SchemaNode:
    """Convert one decoded JSON value into a schema node.

    ``formats`` maps property names to a string format that overrides the
    inferred type for that property, e.g. ``{"created_at": "date-time"}``.

    Raises:
        MalformedExchange: If the value is not JSON-like data.
    """
    if formats and key is not None and key in formats:
        return StringSchema(format=formats[key])

    if value is None:
        return NullSchema()
    # bool is a subclass of int
    if isinstance(value, bool):
        return BooleanSchema()
    if isinstance(value, int):
        return IntegerSchema()
    if isinstance(value, float):
        return NumberSchema(format="float")
    if isinstance(value, str):
        return StringSchema()
    if isinstance(value, dict):
        properties = {
            str(k): infer(v, formats=formats, key=str(k), max_variants=max_variants)
            for k, v in value.items()
        }
        return ObjectSchema(properties=properties, required=frozenset(properties))
    if isinstance(value, (list, tuple)):
        items = [infer(v, formats=formats, max_variants=max_variants) for v in value]
        return ArraySchema(items=merge_all(items, max_variants=max_variants))

    raise MalformedExchange(f"type detection is not implemented for: {value!r}")
