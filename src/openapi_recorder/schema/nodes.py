"""Schema node models inferred from observed values.

Every node is an immutable pydantic model. ``to_tree`` renders a node as the
OpenAPI 3.0 schema object written into documents.
"""

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class SchemaNode(BaseModel):
    """Base class of the schema tagged union."""

    model_config = ConfigDict(frozen=True)

    kind: ClassVar[str] = ""

    nullable: bool = False

    def to_tree(self) -> dict:
        raise NotImplementedError

    def _with_nullable(self, tree: dict) -> dict:
        if self.nullable:
            tree["nullable"] = True
        return tree


class UnknownSchema(SchemaNode):
    """Placeholder for the items of an empty array; merging replaces it."""

    kind: ClassVar[str] = "unknown"

    def to_tree(self) -> dict:
        return self._with_nullable({})


class NullSchema(SchemaNode):
    """A position where only ``null`` has been observed."""

    kind: ClassVar[str] = "null"
    nullable: bool = True

    def to_tree(self) -> dict:
        return {"nullable": True}


class ScalarSchema(SchemaNode):
    format: str | None = None

    def to_tree(self) -> dict:
        tree: dict = {"type": self.kind}
        if self.format:
            tree["format"] = self.format
        return self._with_nullable(tree)


class BooleanSchema(ScalarSchema):
    kind: ClassVar[str] = "boolean"


class IntegerSchema(ScalarSchema):
    kind: ClassVar[str] = "integer"


class NumberSchema(ScalarSchema):
    kind: ClassVar[str] = "number"


class StringSchema(ScalarSchema):
    kind: ClassVar[str] = "string"


class ObjectSchema(SchemaNode):
    """An object; ``required`` is always a subset of the property names."""

    kind: ClassVar[str] = "object"

    properties: dict[str, SchemaNode] = {}
    required: frozenset[str] = frozenset()

    def to_tree(self) -> dict:
        tree: dict = {
            "type": "object",
            "properties": {name: node.to_tree() for name, node in self.properties.items()},
        }
        required = [name for name in self.properties if name in self.required]
        if required:
            tree["required"] = required
        return self._with_nullable(tree)


class ArraySchema(SchemaNode):
    kind: ClassVar[str] = "array"

    items: SchemaNode = UnknownSchema()

    def to_tree(self) -> dict:
        return self._with_nullable({"type": "array", "items": self.items.to_tree()})


class OneOfSchema(SchemaNode):
    """Incompatible shapes seen at one position.

    ``overflow`` records that shapes beyond the variant cap were folded into
    an any-variant, rendered as a trailing ``{}``.
    """

    kind: ClassVar[str] = "oneOf"

    variants: tuple[SchemaNode, ...] = ()
    overflow: bool = False

    def to_tree(self) -> dict:
        options = [v.to_tree() for v in self.variants]
        if self.overflow:
            options.append({})
        return self._with_nullable({"oneOf": options})


ObjectSchema.model_rebuild()
ArraySchema.model_rebuild()
OneOfSchema.model_rebuild()
