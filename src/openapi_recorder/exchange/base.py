"""Canonical record of one observed HTTP exchange.

Capture hooks (RSpec-style callbacks, Rack/WSGI middleware, test clients)
convert whatever they intercept into this model before handing it to the
recorder.
"""

from typing import Any

from pydantic import BaseModel

from openapi_recorder.exchange.normalize import normalize_path


class Exchange(BaseModel):
    """A single request/response pair captured during a test run."""

    method: str  # GET / POST / PUT / DELETE / PATCH
    path: str  # /users/{id} or /users/:id
    status: int
    path_params: dict[str, Any] = {}
    query_params: dict[str, Any] = {}
    request_headers: dict[str, str] = {}
    request_body: Any = None  # decoded value, or raw str/bytes
    request_content_type: str | None = None
    required_request_params: list[str] = []
    response_body: Any = None
    response_headers: dict[str, str] = {}
    response_content_type: str | None = None
    response_content_disposition: str | None = None

    summary: str | None = None
    tags: list[str] | None = None
    operation_id: str | None = None
    description: str = ""
    security: list[dict] | None = None
    deprecated: bool = False
    formats: dict[str, str] = {}  # property name -> string format
    example_name: str | None = None

    @property
    def http_method(self) -> str:
        return self.method.lower()

    @property
    def templated_path(self) -> str:
        return normalize_path(self.path)

    @property
    def operation_key(self) -> tuple[str, str]:
        """Accumulator key: (lower-case method, templated path)."""
        return self.http_method, self.templated_path
