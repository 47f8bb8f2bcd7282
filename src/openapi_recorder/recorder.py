"""End-to-end recording: exchanges plus a persisted document in, final document out."""

import copy
import logging
from typing import Iterable

from openapi_recorder.config import RecorderConfig
from openapi_recorder.document.accumulator import DocumentAccumulator
from openapi_recorder.document.components import update_components
from openapi_recorder.document.merger import reconcile
from openapi_recorder.errors import MalformedExchange
from openapi_recorder.exchange.base import Exchange
from openapi_recorder.tree.cleaner import cleanup_empty_required
from openapi_recorder.tree.sorter import deep_sort

logger = logging.getLogger(__name__)

# Top-level keys copied from the fresh document only when the persisted one lacks them.
SEEDED_KEYS = ("openapi", "info", "servers", "paths")


class ResultRecorder:
    """Builds the final document for one output file.

    Exchanges that cannot be inferred are skipped and kept in ``errors`` so
    one bad response does not fail the whole run.
    """

    def __init__(self, config: RecorderConfig | None = None):
        self.config = config or RecorderConfig()
        self.errors: list[tuple[MalformedExchange, Exchange]] = []

    def record(self, persisted: dict | None, exchanges: Iterable[Exchange]) -> dict:
        accumulator = DocumentAccumulator(self.config)
        for exchange in exchanges:
            try:
                accumulator.add(exchange)
            except MalformedExchange as e:
                e.exchange = exchange
                self.errors.append((e, exchange))
                logger.warning(
                    "Skipping %s %s: %s",
                    exchange.method.upper(),
                    exchange.path,
                    e.message,
                    extra={"method": exchange.method.upper(), "path": exchange.path, "status": exchange.status},
                )

        candidate = accumulator.build_document()
        document = copy.deepcopy(persisted) if persisted else {}
        for key in SEEDED_KEYS:
            if key not in document:
                document[key] = copy.deepcopy(candidate[key])
        if "components" in candidate:
            components = document.setdefault("components", {})
            for name, scheme in candidate["components"].get("securitySchemes", {}).items():
                components.setdefault("securitySchemes", {}).setdefault(name, scheme)

        document = reconcile(document, candidate, self.config.owned_selectors)
        document = update_components(document, candidate)
        document = cleanup_empty_required(document)
        return deep_sort(document)

    def has_errors(self) -> bool:
        return bool(self.errors)

    def error_message(self) -> str:
        lines = [f"openapi-recorder got errors building {len(self.errors)} requests", ""]
        for error, exchange in self.errors:
            lines.append(f"{error.message}: {exchange.method.upper()} {exchange.path} -> {exchange.status}")
        return "\n".join(lines) + "\n"
