import json
import logging

from openapi_recorder.logging_config import JSONFormatter, configure_logging


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="openapi_recorder.recorder",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Skipping %s %s",
        args=("GET", "/users"),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "openapi_recorder.recorder"
        assert entry["message"] == "Skipping GET /users"
        assert "timestamp" in entry
        assert "method" not in entry

    def test_exchange_fields(self):
        entry = json.loads(JSONFormatter().format(_record(method="GET", path="/users", status=200)))
        assert entry["method"] == "GET"
        assert entry["path"] == "/users"
        assert entry["status"] == 200


class TestConfigureLogging:
    def teardown_method(self):
        root = logging.getLogger()
        for handler in root.handlers[:]:
            root.removeHandler(handler)
        root.setLevel(logging.WARNING)
        logging.captureWarnings(False)

    def test_text_format(self):
        configure_logging("debug")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_json_format(self):
        configure_logging("WARNING", fmt="json")
        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_unknown_level_falls_back_to_info(self):
        configure_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_warnings_routed_to_logging(self, monkeypatch):
        calls = []
        monkeypatch.setattr(logging, "captureWarnings", calls.append)
        configure_logging()
        configure_logging(capture_warnings=False)
        assert calls == [True, False]
