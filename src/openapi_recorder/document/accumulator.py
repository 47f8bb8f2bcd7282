"""Per-operation accumulation of observed exchanges into a candidate document.

One ``DocumentAccumulator`` is created by the caller for a test run. Every
exchange is folded into the ``OperationAccumulator`` keyed by
``(method, templated path)``; ``build_document`` assembles the fresh
OpenAPI document from all of them at the end of the run.
"""

import logging
from http import HTTPStatus
from typing import Any

from openapi_recorder.config import RecorderConfig
from openapi_recorder.exchange.base import Exchange
from openapi_recorder.exchange.normalize import (
    decode_body,
    normalize_content_type,
    normalize_example_key,
    parameter_name,
    try_cast,
)
from openapi_recorder.schema.inferrer import infer
from openapi_recorder.schema.merger import merge
from openapi_recorder.schema.nodes import SchemaNode, StringSchema, UnknownSchema
from openapi_recorder.tree.cleaner import canonical

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.3"

# Methods whose request bodies are never documented.
BODYLESS_METHODS = ("get", "delete")


class ContentAccumulator:
    """Schema and retained examples for one media type."""

    def __init__(self, max_examples: int, max_variants: int):
        self.max_examples = max_examples
        self.max_variants = max_variants
        self.schema: SchemaNode = UnknownSchema()
        self.examples: list[tuple[str, str | None, Any]] = []

    def add(self, schema: SchemaNode, example: Any = None, name: str | None = None, keep_example: bool = False) -> None:
        self.schema = merge(self.schema, schema, self.max_variants)
        if keep_example:
            self._keep(example, name)

    def _keep(self, value: Any, name: str | None) -> None:
        if len(self.examples) >= self.max_examples:
            return
        if any(canonical(v) == canonical(value) for _, _, v in self.examples):
            return
        key = normalize_example_key(name) or "default"
        taken = {k for k, _, _ in self.examples}
        suffix = 2
        unique = key
        while unique in taken:
            unique = f"{key}_{suffix}"
            suffix += 1
        self.examples.append((unique, name, value))

    def to_tree(self) -> dict:
        tree: dict = {"schema": self.schema.to_tree()}
        if len(self.examples) == 1:
            tree["example"] = self.examples[0][2]
        elif self.examples:
            examples = {}
            for key, summary, value in self.examples:
                entry: dict = {}
                if summary:
                    entry["summary"] = summary
                entry["value"] = value
                examples[key] = entry
            tree["examples"] = examples
        return tree


class ParameterAccumulator:
    def __init__(self, name: str, location: str, required: bool):
        self.name = name
        self.location = location
        self.required = required
        self.schema: SchemaNode = UnknownSchema()
        self.example: Any = None
        self.has_example = False

    def to_tree(self) -> dict:
        tree = {
            "name": self.name,
            "in": self.location,
            "required": self.required,
            "schema": self.schema.to_tree(),
        }
        if self.has_example:
            tree["example"] = self.example
        return tree


class ResponseAccumulator:
    def __init__(self, status: str):
        self.status = status
        self.description = ""
        self.headers: dict[str, SchemaNode] = {}
        self.content: dict[str, ContentAccumulator] = {}

    def to_tree(self) -> dict:
        tree: dict = {"description": self.description or _status_phrase(self.status)}
        if self.headers:
            tree["headers"] = {name: {"schema": node.to_tree()} for name, node in self.headers.items()}
        if self.content:
            tree["content"] = {media: c.to_tree() for media, c in self.content.items()}
        return tree


class OperationAccumulator:
    """Everything observed for one ``(method, path)`` operation."""

    def __init__(self, method: str, path: str, config: RecorderConfig):
        self.method = method
        self.path = path
        self.config = config
        self.exchange_count = 0
        self.summary: str | None = None
        self.tags: list[str] | None = None
        self.operation_id: str | None = None
        self.security: list[dict] | None = None
        self.deprecated = False
        self.parameters: dict[tuple[str, str], ParameterAccumulator] = {}
        self.request_body: dict[str, ContentAccumulator] = {}
        self.responses: dict[str, ResponseAccumulator] = {}

    def add(self, exchange: Exchange) -> None:
        """Fold one exchange in.

        Raises:
            MalformedExchange: If a body cannot be decoded or inferred. The
                accumulator is left unchanged in that case.
        """
        params = self._observe_parameters(exchange)
        request = self._observe_request_body(exchange)
        response = self._observe_response_body(exchange)
        response_headers = self._observe_headers(exchange.response_headers, self.config.response_headers, exchange)

        self._apply_parameters(params)
        if request is not None:
            media, node, value = request
            self._content(self.request_body, media).add(
                node, value, exchange.example_name, keep_example=self.config.enable_example
            )

        status = str(exchange.status)
        resp = self.responses.setdefault(status, ResponseAccumulator(status))
        if exchange.description:
            resp.description = exchange.description
        for name, node in response_headers:
            resp.headers[name] = merge(resp.headers[name], node, self._max_variants) if name in resp.headers else node
        if response is not None:
            media, node, value, binary = response
            self._content(resp.content, media).add(
                node,
                value,
                exchange.example_name,
                keep_example=self.config.enable_example and not binary,
            )

        self.summary = exchange.summary or self.summary or f"{exchange.method.upper()} {self.path}"
        if exchange.tags is not None:
            self.tags = exchange.tags
        if exchange.operation_id is not None:
            self.operation_id = exchange.operation_id
        if exchange.security is not None:
            self.security = exchange.security
        self.deprecated = exchange.deprecated
        self.exchange_count += 1

    def to_tree(self) -> dict:
        tree: dict = {"summary": self.summary}
        if self.tags is not None:
            tree["tags"] = self.tags
        if self.operation_id is not None:
            tree["operationId"] = self.operation_id
        if self.security is not None:
            tree["security"] = self.security
        if self.deprecated:
            tree["deprecated"] = True
        if self.parameters:
            tree["parameters"] = [p.to_tree() for p in self.parameters.values()]
        if self.request_body:
            tree["requestBody"] = {
                "content": {media: c.to_tree() for media, c in self.request_body.items()}
            }
        tree["responses"] = {status: r.to_tree() for status, r in self.responses.items()}
        return tree

    # -- observation (no state changes) ---------------------------------------

    @property
    def _max_variants(self) -> int:
        return self.config.max_one_of_variants

    def _infer(self, value: Any, formats: dict[str, str] | None = None, key: str | None = None) -> SchemaNode:
        return infer(value, formats=formats, key=key, max_variants=self._max_variants)

    def _observe_parameters(self, exchange: Exchange) -> list[tuple[str, str, bool, SchemaNode, Any]]:
        observed = []
        for key, value in exchange.path_params.items():
            name, value = parameter_name(key, value)
            value = try_cast(value)
            observed.append((name, "path", True, self._infer(value, exchange.formats, name), value))

        for key, value in exchange.query_params.items():
            name, value = parameter_name(key, value)
            value = try_cast(value)
            required = key in exchange.required_request_params or name in exchange.required_request_params
            observed.append((name, "query", required, self._infer(value, exchange.formats, name), value))

        for name, node in self._observe_headers(exchange.request_headers, self.config.request_headers, exchange):
            value = try_cast(_header_value(exchange.request_headers, name))
            observed.append((name, "header", True, node, value))
        return observed

    def _observe_headers(
        self, headers: dict[str, str], significant: list[str], exchange: Exchange
    ) -> list[tuple[str, SchemaNode]]:
        observed = []
        for name in significant:
            value = _header_value(headers, name)
            if value is not None:
                observed.append((name, self._infer(try_cast(value), exchange.formats, name)))
        return observed

    def _observe_request_body(self, exchange: Exchange) -> tuple[str, SchemaNode, Any] | None:
        media = normalize_content_type(exchange.request_content_type)
        if media is None or exchange.http_method in BODYLESS_METHODS or exchange.status >= 400:
            return None
        value = decode_body(exchange.request_body, media)
        if value is None:
            return None
        return media, self._infer(value, exchange.formats), value

    def _observe_response_body(self, exchange: Exchange) -> tuple[str, SchemaNode, Any, bool] | None:
        media = normalize_content_type(exchange.response_content_type)
        if media is None or exchange.response_body is None:
            return None
        if normalize_content_type(exchange.response_content_disposition):
            return media, StringSchema(format="binary"), None, True
        value = decode_body(exchange.response_body, media)
        if value is None:
            return None
        return media, self._infer(value, exchange.formats), value, False

    # -- application ----------------------------------------------------------

    def _apply_parameters(self, observed: list[tuple[str, str, bool, SchemaNode, Any]]) -> None:
        seen = set()
        for name, location, required, node, value in observed:
            key = (name, location)
            seen.add(key)
            param = self.parameters.get(key)
            if param is None:
                # A parameter missing from earlier exchanges was optional there.
                first_seen = self.exchange_count == 0 or location == "path"
                param = self.parameters[key] = ParameterAccumulator(name, location, required and first_seen)
            else:
                param.required = param.required and (required or location == "path")
            param.schema = merge(param.schema, node, self._max_variants)
            if self.config.enable_example:
                param.example = value
                param.has_example = True

        for key, param in self.parameters.items():
            if key not in seen and param.location != "path":
                param.required = False

    def _content(self, contents: dict[str, ContentAccumulator], media: str) -> ContentAccumulator:
        if media not in contents:
            contents[media] = ContentAccumulator(self.config.max_examples, self._max_variants)
        return contents[media]


class DocumentAccumulator:
    """Caller-owned accumulator for a whole run, keyed by ``(method, templated path)``."""

    def __init__(self, config: RecorderConfig | None = None):
        self.config = config or RecorderConfig()
        self.operations: dict[tuple[str, str], OperationAccumulator] = {}

    def add(self, exchange: Exchange) -> None:
        """Fold one exchange into its operation.

        Raises:
            MalformedExchange: If the exchange cannot be inferred; nothing is recorded.
        """
        key = exchange.operation_key
        operation = self.operations.get(key)
        if operation is None:
            operation = OperationAccumulator(key[0], key[1], self.config)
            operation.add(exchange)
            self.operations[key] = operation
        else:
            operation.add(exchange)
        logger.debug(
            "Recorded %s %s -> %s",
            exchange.method.upper(),
            key[1],
            exchange.status,
            extra={"method": exchange.method.upper(), "path": key[1], "status": exchange.status},
        )

    def build_document(self) -> dict:
        """Assemble the candidate OpenAPI document from everything recorded so far."""
        info = {"title": self.config.title, "version": self.config.application_version}
        info.update(self.config.info)

        paths: dict[str, dict] = {}
        for (method, path), operation in self.operations.items():
            paths.setdefault(path, {})[method] = operation.to_tree()

        document: dict = {
            "openapi": OPENAPI_VERSION,
            "info": info,
            "servers": list(self.config.servers),
            "paths": paths,
        }
        if self.config.security_schemes:
            document["components"] = {"securitySchemes": dict(self.config.security_schemes)}
        return document


def _header_value(headers: dict[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _status_phrase(status: str) -> str:
    try:
        return HTTPStatus(int(status)).phrase
    except ValueError:
        return status
