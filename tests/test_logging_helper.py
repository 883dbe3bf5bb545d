import logging

from utils.logging_helper import (
    CorrelationIdFilter,
    RedactSecretsFilter,
    correlation_id_var,
    redact_connection_string,
    setup_logging,
)


def make_record(msg, *args):
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


def test_redact_connection_string_plain_and_braced():
    text = "DRIVER={FreeTDS};UID=CORP\\alice;PWD={a;b}}c};TDS_Version=8.0"
    assert redact_connection_string(text) == (
        "DRIVER={FreeTDS};UID=CORP\\alice;PWD=***;TDS_Version=8.0"
    )
    assert redact_connection_string("Password=secret") == "Password=***"


def test_redact_filter_rewrites_message():
    record = make_record("Connecting with %s", "UID=sa;PWD=pw")
    assert RedactSecretsFilter().filter(record) is True
    assert record.getMessage() == "Connecting with UID=sa;PWD=***"


def test_correlation_filter_uses_context_id():
    token = correlation_id_var.set("abc123")
    try:
        record = make_record("hello")
        CorrelationIdFilter().filter(record)
    finally:
        correlation_id_var.reset(token)
    assert record.correlation_id == "abc123"


def test_setup_logging_installs_filters_once():
    cid = setup_logging()
    setup_logging()
    assert len(cid) == 32
    handler = logging.getLogger().handlers[0]
    assert sum(isinstance(f, CorrelationIdFilter) for f in handler.filters) == 1
    assert sum(isinstance(f, RedactSecretsFilter) for f in handler.filters) == 1
