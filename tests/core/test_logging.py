"""JSON log lines: event key, whitelisted extra fields, exceptions."""
import json
import logging
import sys

from app.core.logging import QUIET_LOGGERS, JsonFormatter, configure_logging


def _record(msg="settlement_completed", exc_info=None, **extra):
    record = logging.LogRecord("app.fulfillment.engine", logging.INFO, __file__, 1, msg, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_whitelisted_fields_only():
    line = JsonFormatter().format(
        _record(payment_id="pay_P1", order_id="order_O1", channel="webhook", signature="deadbeef")
    )
    payload = json.loads(line)

    assert payload["event"] == "settlement_completed"
    assert payload["level"] == "INFO"
    assert payload["payment_id"] == "pay_P1"
    assert payload["channel"] == "webhook"
    assert "signature" not in payload


def test_reconcile_counts_emitted():
    payload = json.loads(JsonFormatter().format(_record("entitlements_reconciled", total=3, restored=2, already_granted=1)))
    assert (payload["total"], payload["restored"], payload["already_granted"]) == (3, 2, 1)


def test_exception_included():
    try:
        raise RuntimeError("db down")
    except RuntimeError:
        record = _record("entitlement_persist_failed", exc_info=sys.exc_info())
    payload = json.loads(JsonFormatter().format(record))
    assert "RuntimeError: db down" in payload["exception"]


def test_configure_logging_quiets_noisy_loggers():
    root = logging.getLogger()
    saved = root.handlers[:], root.level
    try:
        configure_logging()
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
    finally:
        root.handlers, level = saved
        root.setLevel(level)
