"""Accumulating merge of schema nodes.

Folds the schemas inferred from many exchanges of one operation into a
single node. ``merge`` is commutative and associative, and ``merge(a, a)``
returns ``a``, so exchanges can be folded in any order.
"""

import functools
import warnings
from typing import Iterable

from openapi_recorder.errors import SchemaConflictOverflow
from openapi_recorder.schema.nodes import (
    ArraySchema,
    BooleanSchema,
    IntegerSchema,
    NullSchema,
    NumberSchema,
    ObjectSchema,
    OneOfSchema,
    SchemaNode,
    StringSchema,
    UnknownSchema,
)

# Upper bound on distinct shapes listed in a oneOf before the rest are
# folded into an any-variant.
MAX_ONE_OF_VARIANTS = 3

# oneOf variants are listed in this order and dropped from the end on overflow.
SHAPE_ORDER = ("boolean", "numeric", "string", "object", "array")


def shape_of(node: SchemaNode) -> str:
    """Shape class of a node; nodes of one class always merge into one."""
    if isinstance(node, (IntegerSchema, NumberSchema)):
        return "numeric"
    return node.kind


def merge(a: SchemaNode, b: SchemaNode, max_variants: int = MAX_ONE_OF_VARIANTS) -> SchemaNode:
    """Merge two schema nodes observed at the same position."""
    if isinstance(a, UnknownSchema):
        return b
    if isinstance(b, UnknownSchema):
        return a
    if isinstance(a, NullSchema):
        return _nullable(b)
    if isinstance(b, NullSchema):
        return _nullable(a)

    nullable = a.nullable or b.nullable
    if isinstance(a, OneOfSchema) or isinstance(b, OneOfSchema) or shape_of(a) != shape_of(b):
        return _merge_variants(a, b, nullable, max_variants)
    return _merge_same_shape(a, b, max_variants).model_copy(update={"nullable": nullable})


def merge_all(nodes: Iterable[SchemaNode], max_variants: int = MAX_ONE_OF_VARIANTS) -> SchemaNode:
    """Fold any number of nodes; an empty input yields the unknown placeholder."""
    return functools.reduce(
        lambda acc, node: merge(acc, node, max_variants), nodes, UnknownSchema()
    )


def _nullable(node: SchemaNode) -> SchemaNode:
    if node.nullable:
        return node
    return node.model_copy(update={"nullable": True})


def _merge_same_shape(a: SchemaNode, b: SchemaNode, max_variants: int) -> SchemaNode:
    if isinstance(a, ObjectSchema) and isinstance(b, ObjectSchema):
        properties = dict(a.properties)
        for name, node in b.properties.items():
            properties[name] = merge(properties[name], node, max_variants) if name in properties else node
        # A field missing from any observation is never required.
        return ObjectSchema(properties=properties, required=a.required & b.required)

    if isinstance(a, ArraySchema) and isinstance(b, ArraySchema):
        return ArraySchema(items=merge(a.items, b.items, max_variants))

    if isinstance(a, IntegerSchema) and isinstance(b, IntegerSchema):
        return IntegerSchema(format=_same_format(a, b))
    if isinstance(a, NumberSchema) and isinstance(b, NumberSchema):
        return NumberSchema(format=_same_format(a, b))
    if isinstance(a, NumberSchema) or isinstance(b, NumberSchema):
        number = a if isinstance(a, NumberSchema) else b
        return NumberSchema(format=number.format)

    if isinstance(a, StringSchema):
        return StringSchema(format=_same_format(a, b))
    if isinstance(a, BooleanSchema):
        return BooleanSchema()

    raise TypeError(f"cannot merge {a.kind} with {b.kind}")


def _same_format(a: SchemaNode, b: SchemaNode) -> str | None:
    fmt = getattr(a, "format", None)
    return fmt if fmt == getattr(b, "format", None) else None


def _merge_variants(a: SchemaNode, b: SchemaNode, nullable: bool, max_variants: int) -> SchemaNode:
    by_shape: dict[str, SchemaNode] = {}
    for node in _variants(a) + _variants(b):
        node = node.model_copy(update={"nullable": False}) if node.nullable else node
        shape = shape_of(node)
        by_shape[shape] = merge(by_shape[shape], node, max_variants) if shape in by_shape else node

    overflow = _overflowed(a) or _overflowed(b)
    ordered = [by_shape[shape] for shape in SHAPE_ORDER if shape in by_shape]
    if len(ordered) > max_variants:
        warnings.warn(
            f"{len(ordered)} incompatible shapes exceed the oneOf cap of {max_variants}; "
            f"folding {', '.join(shape_of(n) for n in ordered[max_variants:])} into an any-variant",
            SchemaConflictOverflow,
            stacklevel=3,
        )
        ordered = ordered[:max_variants]
        overflow = True

    if len(ordered) == 1 and not overflow:
        return ordered[0].model_copy(update={"nullable": nullable})
    return OneOfSchema(variants=tuple(ordered), overflow=overflow, nullable=nullable)


def _variants(node: SchemaNode) -> list[SchemaNode]:
    if isinstance(node, OneOfSchema):
        return list(node.variants)
    return [node]


def _overflowed(node: SchemaNode) -> bool:
    return isinstance(node, OneOfSchema) and node.overflow
