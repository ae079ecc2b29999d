import json
import logging

from variant_preview.config import LoggingConfig
from variant_preview.utils.logging import get_logger, log_event, redact_url, setup_logging, truncate_text


def test_jsonl_file_log_carries_event_fields(tmp_path):
    cfg = LoggingConfig(console=False, file=True, format="jsonl", filename="logs/run.jsonl")
    root = setup_logging(cfg, log_dir=tmp_path)
    try:
        log_event(get_logger("batch"), "Batch committed", event="batch_commit", loaded=["modern"], generation=3)
        for handler in root.handlers:
            handler.flush()
        lines = (tmp_path / "logs" / "run.jsonl").read_text(encoding="utf-8").splitlines()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers = []

    record = json.loads(lines[-1])
    assert record["message"] == "Batch committed"
    assert record["logger"] == "variant_preview.batch"
    assert record["event"] == "batch_commit"
    assert record["loaded"] == ["modern"]
    assert record["generation"] == 3


def test_level_is_applied():
    root = setup_logging(LoggingConfig(level="warning", console=False))
    assert root.level == logging.WARNING
    assert root.handlers == []


def test_log_event_without_logger_is_a_no_op():
    log_event(None, "nothing", event="ignored")


def test_redact_and_truncate():
    assert redact_url("https://user:pw@example.com/a") == "https://[REDACTED]@example.com/a"
    assert redact_url("https://example.com/a") == "https://example.com/a"
    assert truncate_text("abc", 5) == "abc"
    assert truncate_text("abcdef", 3) == "abc...(truncated)"
