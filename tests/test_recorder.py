"""End-to-end tests: exchanges + persisted document -> final document."""

import logging
from pathlib import Path

import yaml

from openapi_recorder.config import RecorderConfig
from openapi_recorder.exchange.base import Exchange
from openapi_recorder.recorder import ResultRecorder

FIXTURES = Path(__file__).parent / "fixtures"


def _load_persisted() -> dict:
    return yaml.safe_load((FIXTURES / "openapi.yaml").read_text(encoding="utf-8"))


EXCHANGES = [
    Exchange(
        method="GET",
        path="/users",
        status=200,
        summary="List users",
        description="returns users",
        query_params={"page": "2"},
        required_request_params=["page"],
        response_content_type="application/json",
        response_body=[{"id": 1, "name": "a"}],
    ),
    Exchange(
        method="GET",
        path="/users",
        status=200,
        summary="List users",
        description="returns users",
        response_content_type="application/json",
        response_body='[{"id": 2, "name": "b", "email": null}]',
    ),
    Exchange(
        method="GET",
        path="/users/:id",
        status=200,
        path_params={"id": "1"},
        response_content_type="application/json",
        response_body={"id": 1, "name": "a"},
    ),
    Exchange(
        method="GET",
        path="/users/:id",
        status=200,
        path_params={"id": "2"},
        response_content_type="application/json",
        response_body="{oops",
    ),
]


class TestRecordAgainstPersisted:
    def test_stale_operations_pruned(self):
        doc = ResultRecorder().record(_load_persisted(), EXCHANGES)
        assert list(doc["paths"]) == ["/users", "/users/{id}"]
        assert list(doc["paths"]["/users/{id}"]) == ["get"]

    def test_hand_written_fields_survive(self):
        doc = ResultRecorder().record(_load_persisted(), EXCHANGES)
        op = doc["paths"]["/users"]["get"]
        assert op["description"] == "Custom"
        assert op["x-rate-limit"] == 100
        assert doc["info"] == {
            "title": "Users API",
            "version": "0.9.0",
            "description": "Hand written API overview",
        }

    def test_parameters_reconciled(self):
        doc = ResultRecorder().record(_load_persisted(), EXCHANGES)
        params = doc["paths"]["/users"]["get"]["parameters"]
        assert params == [
            {
                "name": "page",
                "in": "query",
                "required": False,
                "description": "Page number, starts at 1",
                "schema": {"type": "integer"},
                "example": 2,
            }
        ]

    def test_referenced_component_refreshed(self):
        doc = ResultRecorder().record(_load_persisted(), EXCHANGES)
        content = doc["paths"]["/users"]["get"]["responses"]["200"]["content"]["application/json"]
        assert content["schema"] == {"type": "array", "items": {"$ref": "#/components/schemas/User"}}

        user = doc["components"]["schemas"]["User"]
        assert user["description"] == "An account holder"
        assert user["properties"] == {
            "id": {"type": "integer"},
            "name": {"type": "string"},
            "email": {"nullable": True},
        }
        assert user["required"] == ["id", "name"]

    def test_malformed_exchange_skipped(self, caplog):
        recorder = ResultRecorder()
        with caplog.at_level(logging.WARNING, logger="openapi_recorder.recorder"):
            doc = recorder.record(_load_persisted(), EXCHANGES)

        assert recorder.has_errors()
        assert len(recorder.errors) == 1
        assert "GET /users/:id -> 200" in recorder.error_message()
        assert "Skipping GET /users/:id" in caplog.text
        # The good exchange for the same operation was still recorded
        example = doc["paths"]["/users/{id}"]["get"]["responses"]["200"]["content"]["application/json"]["example"]
        assert example == {"id": 1, "name": "a"}

    def test_idempotent_across_runs(self):
        first = ResultRecorder().record(_load_persisted(), EXCHANGES)
        second = ResultRecorder().record(first, EXCHANGES)
        assert second == first


class TestRecordFromScratch:
    def test_new_document(self):
        config = RecorderConfig(title="Users API", servers=[{"url": "http://localhost:3000"}])
        doc = ResultRecorder(config).record(None, EXCHANGES[:2])
        assert doc["openapi"] == "3.0.3"
        assert doc["info"] == {"title": "Users API", "version": "1.0.0"}
        assert doc["servers"] == [{"url": "http://localhost:3000"}]
        schema = doc["paths"]["/users"]["get"]["responses"]["200"]["content"]["application/json"]["schema"]
        assert schema == {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "integer"},
                    "name": {"type": "string"},
                    "email": {"nullable": True},
                },
                "required": ["id", "name"],
            },
        }

    def test_security_schemes_seeded(self):
        config = RecorderConfig(security_schemes={"bearer": {"type": "http", "scheme": "bearer"}})
        persisted = {"components": {"securitySchemes": {"bearer": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}}}
        doc = ResultRecorder(config).record(persisted, [])
        assert doc["components"]["securitySchemes"]["bearer"]["bearerFormat"] == "JWT"
        assert doc["paths"] == {}


def _item_exchange(body, **kwargs) -> Exchange:
    return Exchange(
        method="GET",
        path="/items",
        status=200,
        response_content_type="application/json",
        response_body=body,
        **kwargs,
    )


def _media(doc: dict) -> dict:
    return doc["paths"]["/items"]["get"]["responses"]["200"]["content"]["application/json"]


class TestRerecord:
    def test_required_follows_new_observations(self):
        persisted = ResultRecorder().record(None, [_item_exchange({"a": 1, "b": 2})])
        assert _media(persisted)["schema"]["required"] == ["a", "b"]

        doc = ResultRecorder().record(persisted, [_item_exchange({"a": 1}), _item_exchange({"b": 2})])
        assert _media(doc)["schema"] == {
            "type": "object",
            "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}},
        }

    def test_required_never_names_removed_properties(self):
        persisted = ResultRecorder().record(None, [_item_exchange({"a": 1, "b": 2})])
        doc = ResultRecorder().record(persisted, [_item_exchange({"c": 1}), _item_exchange({"d": 2})])
        schema = _media(doc)["schema"]
        assert set(schema["properties"]) == {"c", "d"}
        assert set(schema.get("required", [])) <= set(schema["properties"])

    def test_single_example_becomes_examples(self):
        persisted = ResultRecorder().record(None, [_item_exchange({"id": 1})])
        assert _media(persisted)["example"] == {"id": 1}

        config = RecorderConfig(max_examples=2)
        doc = ResultRecorder(config).record(persisted, [_item_exchange({"id": 1}), _item_exchange({"id": 2})])
        media = _media(doc)
        assert "example" not in media
        assert media["examples"] == {
            "default": {"value": {"id": 1}},
            "default_2": {"value": {"id": 2}},
        }
