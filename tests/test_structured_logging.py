import io
import json
import logging
import uuid

import pytest

from minifly.structured_logging import (
    OFF,
    TRACE,
    LogFormat,
    LoggingConfig,
    init_default_logging,
    init_logging,
    log_operation_result,
    new_correlation_id,
    new_error_id,
    new_request_id,
    operation_span,
    parse_level_filter,
)


@pytest.fixture
def clean_root(monkeypatch):
    monkeypatch.delenv("MINIFLY_LOG_FILTER", raising=False)
    monkeypatch.delenv("MINIFLY_LOG_JSON", raising=False)
    monkeypatch.delenv("MINIFLY_LOG_LEVEL", raising=False)
    root = logging.getLogger()
    level = root.level
    handlers = list(root.handlers)
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)
    logging.getLogger("minifly").setLevel(logging.NOTSET)


def _capture(handler):
    stream = io.StringIO()
    handler.setStream(stream)
    return stream


def _json_lines(stream):
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


def test_logging_config_default():
    config = LoggingConfig()
    assert config.service_name == "minifly"
    assert config.environment == "development"
    assert config.format is LogFormat.HUMAN
    assert config.level == "info"


def test_logging_config_builder():
    config = (
        LoggingConfig.new("test-service")
        .with_format(LogFormat.JSON)
        .with_level("debug")
        .with_environment("production")
    )
    assert config.service_name == "test-service"
    assert config.level == "debug"
    assert config.environment == "production"
    assert config.format is LogFormat.JSON


def test_correlation_id_generation():
    id1 = new_correlation_id()
    id2 = new_correlation_id()
    assert id1 != id2
    assert str(uuid.UUID(id1)) == id1
    assert str(uuid.UUID(id2)) == id2


def test_request_and_error_ids_are_uuids():
    for value in (new_request_id(), new_error_id()):
        assert uuid.UUID(value).version == 4


def test_from_env(monkeypatch):
    monkeypatch.setenv("MINIFLY_LOG_FORMAT", "json")
    monkeypatch.setenv("MINIFLY_LOG_LEVEL", "debug")
    monkeypatch.setenv("MINIFLY_ENVIRONMENT", "staging")
    config = LoggingConfig.from_env("svc")
    assert config.service_name == "svc"
    assert config.format is LogFormat.JSON
    assert config.level == "debug"
    assert config.environment == "staging"


def test_from_env_defaults(monkeypatch):
    for name in ("MINIFLY_LOG_FORMAT", "MINIFLY_LOG_LEVEL", "MINIFLY_ENVIRONMENT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("MINIFLY_LOG_FORMAT", "text")
    config = LoggingConfig.from_env("svc")
    assert config.format is LogFormat.HUMAN
    assert config.level == "info"
    assert config.environment == "development"


@pytest.mark.parametrize(
    "spec, expected",
    [
        ("info", {"": logging.INFO}),
        ("", {"": logging.ERROR}),
        (
            "minifly_cli=info,minifly_logging=warn",
            {"": logging.ERROR, "minifly_cli": logging.INFO, "minifly_logging": logging.WARNING},
        ),
        ("debug,a::b=trace", {"": logging.DEBUG, "a.b": TRACE}),
        ("off,x=bogus", {"": OFF}),
        ("mymod", {"": logging.ERROR, "mymod": TRACE}),
    ],
)
def test_parse_level_filter(spec, expected):
    assert parse_level_filter(spec) == expected


def test_init_logging_json(clean_root):
    handler = init_logging(LoggingConfig.new("svc").with_format(LogFormat.JSON))
    stream = _capture(handler)
    logging.getLogger("minifly.test").info("hello", extra={"fields": {"region": "local"}})
    logging.getLogger("minifly.test").debug("hidden")
    records = _json_lines(stream)
    assert len(records) == 1
    assert records[0]["fields"] == {"message": "hello", "region": "local"}
    assert records[0]["level"] == "INFO"
    assert records[0]["target"] == "minifly.test"
    assert "threadId" in records[0]


def test_init_logging_human_with_target(clean_root):
    handler = init_logging(LoggingConfig.new("svc").with_level("warn"))
    stream = _capture(handler)
    logging.getLogger("minifly.human").info("quiet")
    logging.getLogger("minifly.human").warning("loud")
    output = stream.getvalue()
    assert "quiet" not in output
    assert "WARN minifly.human: loud" in output


def test_filter_env_overrides_level(clean_root, monkeypatch):
    monkeypatch.setenv("MINIFLY_LOG_FILTER", "error")
    handler = init_logging(LoggingConfig.new("svc").with_format(LogFormat.JSON))
    stream = _capture(handler)
    logging.getLogger("minifly.x").warning("skip")
    logging.getLogger("minifly.x").error("keep")
    assert [r["fields"]["message"] for r in _json_lines(stream)] == ["keep"]


def test_operation_span_fields_and_records(clean_root):
    handler = init_logging(LoggingConfig.new("svc").with_format(LogFormat.JSON))
    stream = _capture(handler)
    with operation_span("deploy", app="myapp") as span:
        logging.getLogger("minifly.op").info("inside")
    logging.getLogger("minifly.op").info("outside")
    assert span.fields["operation"] == "deploy"
    assert span.fields["app"] == "myapp"
    uuid.UUID(span.fields["correlation_id"])
    inside, outside = _json_lines(stream)
    assert inside["spans"] == [
        {"name": "operation", "operation": "deploy",
         "correlation_id": span.fields["correlation_id"], "app": "myapp"}
    ]
    assert "spans" not in outside


def test_log_operation_result(clean_root):
    handler = init_logging(LoggingConfig.new("svc").with_format(LogFormat.JSON))
    stream = _capture(handler)
    log_operation_result(None, "done", "broken")
    log_operation_result(ValueError("boom"), "done", "broken")
    success, failure = _json_lines(stream)
    assert success["fields"] == {"message": "done", "operation.status": "success"}
    assert failure["level"] == "ERROR"
    assert failure["fields"] == {
        "message": "broken",
        "operation.status": "failed",
        "error.message": "boom",
    }


def test_init_default_logging_json(clean_root, monkeypatch):
    monkeypatch.setenv("MINIFLY_LOG_JSON", "1")
    handler = init_default_logging()
    stream = _capture(handler)
    logging.getLogger("minifly.cli").info("visible")
    logging.getLogger("other").info("filtered")
    messages = [r["fields"]["message"] for r in _json_lines(stream)]
    assert messages == ["visible"]


def test_reinit_replaces_handler(clean_root):
    first = init_logging(LoggingConfig.new("a"))
    second = init_logging(LoggingConfig.new("b"))
    handlers = logging.getLogger().handlers
    assert second in handlers
    assert first not in handlers