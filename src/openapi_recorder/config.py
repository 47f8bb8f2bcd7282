"""Configuration loading and Pydantic models for openapi-recorder."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from openapi_recorder.document.merger import DEFAULT_OWNED_SELECTORS, OwnedSelector
from openapi_recorder.schema.merger import MAX_ONE_OF_VARIANTS


class RecorderConfig(BaseModel):
    """Settings consumed by the recorder pipeline."""

    title: str = "app"
    application_version: str = "1.0.0"
    info: dict[str, Any] = Field(default_factory=dict)
    servers: list[dict[str, Any]] = Field(default_factory=list)
    security_schemes: dict[str, Any] = Field(default_factory=dict)

    # Header names worth documenting; matched case-insensitively.
    request_headers: list[str] = Field(default_factory=list)
    response_headers: list[str] = Field(default_factory=list)

    enable_example: bool = True
    max_examples: int = Field(default=1, ge=1)
    max_one_of_variants: int = Field(default=MAX_ONE_OF_VARIANTS, ge=1)

    owned_selectors: list[OwnedSelector] = Field(
        default_factory=lambda: [s.model_copy() for s in DEFAULT_OWNED_SELECTORS]
    )


def _parse_owned_selectors(data: list | None) -> list[dict[str, Any]] | None:
    """Accept both ``"paths.*"`` and ``{selector: ..., compare_keys: [...]}`` entries."""
    if data is None:
        return None
    result = []
    for entry in data:
        if isinstance(entry, str):
            result.append({"selector": entry})
        else:
            result.append(
                {"selector": entry.get("selector"), "compare_keys": entry.get("compare_keys")}
            )
    return result


def load_config(path: Path) -> RecorderConfig:
    """Load a RecorderConfig from a YAML file.

    Raises:
        FileNotFoundError: If the config file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If a value has the wrong type or range.
    """
    with open(path, "r", encoding="utf-8") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    owned = _parse_owned_selectors(raw.pop("owned_selectors", None))
    if owned is not None:
        raw["owned_selectors"] = owned
    return RecorderConfig(**raw)
