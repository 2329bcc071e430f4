import json
import logging

from backend.app.logging_config import get_logger, log_event


class _Capture(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def _capture():
    handler = _Capture()
    get_logger().addHandler(handler)
    return handler


def test_level_named_fields_are_written_as_data():
    handler = _capture()
    try:
        log_event("risk_scored", risk_id="r1", score=60, risk_level="HIGH", level="HIGH")
    finally:
        get_logger().removeHandler(handler)
    record = handler.records[-1]
    assert record.levelno == logging.INFO
    assert json.loads(record.getMessage()) == {
        "event": "risk_scored",
        "risk_id": "r1",
        "score": 60,
        "risk_level": "HIGH",
        "level": "HIGH",
    }


def test_log_level_is_positional():
    handler = _capture()
    try:
        log_event("request_error", logging.ERROR, status=500)
    finally:
        get_logger().removeHandler(handler)
    record = handler.records[-1]
    assert record.levelno == logging.ERROR
    assert json.loads(record.getMessage())["status"] == 500
