import json
import logging

from one_time_share.utils.logging import (
    JsonFormatter,
    LogTimer,
    get_request_id,
    level_from_name,
    set_request_id,
    short_token,
)


def _record(msg="event", **extra):
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


def test_payload_fields_are_masked():
    out = json.loads(JsonFormatter().format(_record(message_data="top secret", user_token="u-123", removed=3)))
    assert out["message_data"] == "***MASKED***"
    assert out["user_token"] == "***MASKED***"
    assert out["removed"] == 3
    assert "top secret" not in json.dumps(out)


def test_request_id_in_output():
    set_request_id("req-42")
    try:
        out = json.loads(JsonFormatter().format(_record()))
    finally:
        set_request_id(None)
    assert out["request_id"] == "req-42"
    assert get_request_id() is None


def test_short_token():
    assert short_token("0123456789abcdef") == "01234567..."
    assert short_token("short") == "***"


def test_level_from_name():
    assert level_from_name("debug") == logging.DEBUG
    assert level_from_name("warn") == logging.WARNING
    assert level_from_name("nonsense") == logging.INFO


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def test_log_timer_reports_failure():
    logger = logging.getLogger("test.log_timer")
    handler = _ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        with LogTimer(logger, "expiry_purge", now_ts=10):
            pass
        try:
            with LogTimer(logger, "expiry_purge"):
                raise RuntimeError("disk full")
        except RuntimeError:
            pass
    finally:
        logger.removeHandler(handler)

    ok, failed = handler.records
    assert ok.getMessage() == "expiry_purge_completed"
    assert ok.now_ts == 10
    assert failed.getMessage() == "expiry_purge_failed"
    assert failed.error_type == "RuntimeError"
