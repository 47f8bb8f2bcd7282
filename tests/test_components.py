import copy

from openapi_recorder.document.components import update_components

TABLE_ITEM = {
    "type": "object",
    "properties": {
        "id": {"type": "integer"},
        "name": {"type": "string"},
        "database": {
            "type": "object",
            "properties": {"id": {"type": "integer"}, "name": {"type": "string"}},
            "required": ["id", "name"],
        },
    },
    "required": ["id", "name", "database"],
}


def _with_response_schema(schema: dict) -> dict:
    return {
        "paths": {
            "/tables": {
                "get": {
                    "responses": {
                        "200": {
                            "description": "OK",
                            "content": {"application/json": {"schema": schema}},
                        }
                    }
                }
            }
        }
    }


class TestUpdateComponents:
    def test_refreshes_referenced_schema(self):
        persisted = _with_response_schema({"type": "array", "items": {"$ref": "#/components/schemas/Table"}})
        persisted["components"] = {
            "schemas": {
                "Table": {
                    "description": "A table",
                    "type": "object",
                    "properties": {
                        "id": {"type": "integer"},
                        "old": {"type": "string"},
                        "database": {"$ref": "#/components/schemas/Database"},
                    },
                },
                "Database": {"type": "object", "properties": {"id": {"type": "integer"}}},
            }
        }
        candidate = _with_response_schema({"type": "array", "items": TABLE_ITEM})

        result = update_components(persisted, candidate)
        table = result["components"]["schemas"]["Table"]
        assert table["description"] == "A table"
        assert table["properties"] == {
            "id": {"type": "integer"},
            "database": {"$ref": "#/components/schemas/Database"},
            "name": {"type": "string"},
        }
        assert table["required"] == ["id", "name", "database"]

        database = result["components"]["schemas"]["Database"]
        assert database["properties"] == {"id": {"type": "integer"}, "name": {"type": "string"}}

        # The hand-written reference itself stays in place
        schema = result["paths"]["/tables"]["get"]["responses"]["200"]["content"]["application/json"]["schema"]
        assert schema == {"type": "array", "items": {"$ref": "#/components/schemas/Table"}}

    def test_creates_missing_component(self):
        persisted = _with_response_schema({"$ref": "#/components/schemas/Table"})
        candidate = _with_response_schema(TABLE_ITEM)
        result = update_components(persisted, candidate)
        assert result["components"]["schemas"]["Table"] == TABLE_ITEM

    def test_one_of_references(self):
        persisted = _with_response_schema(
            {"oneOf": [{"$ref": "#/components/schemas/Table"}, {"type": "string"}]}
        )
        candidate = _with_response_schema(TABLE_ITEM)
        result = update_components(persisted, candidate)
        assert result["components"]["schemas"]["Table"]["properties"]["name"] == {"type": "string"}

    def test_without_references_unchanged(self):
        persisted = _with_response_schema({"type": "string"})
        snapshot = copy.deepcopy(persisted)
        assert update_components(persisted, _with_response_schema(TABLE_ITEM)) == snapshot

    def test_missing_candidate_operation(self):
        persisted = _with_response_schema({"$ref": "#/components/schemas/Table"})
        result = update_components(persisted, {"paths": {}})
        assert "components" not in result
