from pathlib import Path

import pytest
from pydantic import ValidationError

from openapi_recorder.config import RecorderConfig, load_config
from openapi_recorder.document.merger import DEFAULT_OWNED_SELECTORS, OwnedSelector
from openapi_recorder.schema.merger import MAX_ONE_OF_VARIANTS

FIXTURES = Path(__file__).parent / "fixtures"


class TestRecorderConfig:
    def test_defaults(self):
        config = RecorderConfig()
        assert config.title == "app"
        assert config.application_version == "1.0.0"
        assert config.enable_example is True
        assert config.max_examples == 1
        assert config.max_one_of_variants == MAX_ONE_OF_VARIANTS
        assert config.owned_selectors == DEFAULT_OWNED_SELECTORS

    def test_default_selectors_not_shared(self):
        config = RecorderConfig()
        config.owned_selectors[2].compare_keys.append("x")
        assert DEFAULT_OWNED_SELECTORS[2].compare_keys == ["name", "in"]

    def test_max_examples_must_be_positive(self):
        with pytest.raises(ValidationError):
            RecorderConfig(max_examples=0)

    def test_max_variants_must_be_positive(self):
        with pytest.raises(ValidationError):
            RecorderConfig(max_one_of_variants=0)


class TestLoadConfig:
    def test_load_fixture(self):
        config = load_config(FIXTURES / "recorder.yaml")
        assert config.title == "Users API"
        assert config.info == {"description": "Generated from request specs"}
        assert config.servers == [{"url": "http://localhost:3000"}]
        assert config.request_headers == ["X-Authorization-Token"]
        assert config.response_headers == ["X-Cursor"]
        assert config.max_examples == 3
        assert config.max_one_of_variants == 2

    def test_owned_selector_entries(self):
        config = load_config(FIXTURES / "recorder.yaml")
        assert config.owned_selectors == [
            OwnedSelector(selector="paths.*"),
            OwnedSelector(selector="paths.*.*"),
            OwnedSelector(selector="paths.*.*.parameters", compare_keys=["name", "in"]),
        ]

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == RecorderConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("max_examples: 0\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)
