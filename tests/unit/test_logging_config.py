# tests/unit/test_logging_config.py
"""Unit tests for structured logging helpers."""

import json
import logging

import pytest

from post_lifecycle.logging_config import (
    JSONFormatter,
    ProgressTracker,
    log_sweep,
    sweep_var,
    trace_id_var,
)


def _record(msg="hello", **extra):
    record = logging.LogRecord("post_lifecycle.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self):
        payload = json.loads(JSONFormatter().format(_record()))

        assert payload["level"] == "INFO"
        assert payload["logger"] == "post_lifecycle.test"
        assert payload["message"] == "hello"
        assert payload["timestamp"].endswith("Z")

    def test_extra_fields_copied(self):
        payload = json.loads(
            JSONFormatter().format(_record(event="post_transition", post_id=7, related_records={"a": 1}))
        )

        assert payload["event"] == "post_transition"
        assert payload["post_id"] == 7
        assert payload["related_records"] == {"a": 1}

    def test_unknown_extras_ignored(self):
        payload = json.loads(JSONFormatter().format(_record(secret="x")))

        assert "secret" not in payload

    def test_includes_sweep_context(self):
        with log_sweep("destroy_stubs", trace_id="abc-123"):
            payload = json.loads(JSONFormatter().format(_record()))

        assert payload["trace_id"] == "abc-123"
        assert payload["sweep"] == "destroy_stubs"


class TestLogSweep:
    """Tests for log_sweep()."""

    def test_resets_context_after_exit(self):
        with log_sweep("destroy_stubs"):
            assert sweep_var.get() == "destroy_stubs"
            assert trace_id_var.get() is not None

        assert sweep_var.get() is None
        assert trace_id_var.get() is None

    def test_logs_and_reraises_failure(self, caplog):
        with caplog.at_level(logging.INFO, logger="post_lifecycle.sweep"):
            with pytest.raises(RuntimeError):
                with log_sweep("destroy_old_hidden_posts"):
                    raise RuntimeError("boom")

        assert "Sweep destroy_old_hidden_posts failed: boom" in caplog.text
        assert sweep_var.get() is None

    def test_logs_start_and_completion(self, caplog):
        with caplog.at_level(logging.INFO, logger="post_lifecycle.sweep"):
            with log_sweep("destroy_stubs"):
                pass

        events = [getattr(r, "event", None) for r in caplog.records]
        assert events == ["sweep_start", "sweep_complete"]


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_counts_successes_and_failures(self):
        tracker = ProgressTracker(total=3, stage="destroy_stubs")
        tracker.increment()
        tracker.increment(success=False)
        tracker.increment()

        summary = tracker.finish()

        assert summary["processed"] == 3
        assert summary["succeeded"] == 2
        assert summary["failed"] == 1
