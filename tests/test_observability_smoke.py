from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from stackgraph import context as capture_context
from stackgraph.context import CaptureContext
from stackgraph.util import (
    MetricsEmitter,
    log_event,
    set_request_id,
    setup_json_logger,
)


def test_structured_log_contains_required_fields() -> None:
    stream = io.StringIO()
    logger = setup_json_logger("tests.observability", stream=stream)
    set_request_id("req-smoke-001")

    log_event(logger, "smoke.event", command="capture", nodes=3)

    payload = json.loads(stream.getvalue().strip())
    for key in ("event", "level", "logger", "message", "request_id", "ts"):
        assert key in payload
    assert payload["request_id"] == "req-smoke-001"
    assert payload["nodes"] == 3


def test_metrics_emitter_contains_required_fields(tmp_path: Path) -> None:
    set_request_id("req-smoke-002")
    out = tmp_path / "metrics.jsonl"
    emitter = MetricsEmitter(out)

    emitter.emit(metric="stackgraph.command", status="success", latency_ms=12.2, nodes=4)

    lines = out.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 1
    payload = json.loads(lines[0])
    for key in (
        "error",
        "latency_bucket",
        "latency_ms",
        "metric",
        "nodes",
        "request_id",
        "status",
        "success",
        "ts",
    ):
        assert key in payload
    assert payload["latency_bucket"] == "le_50ms"
    assert payload["request_id"] == "req-smoke-002"
    assert payload["success"] is True


@pytest.mark.parametrize(
    ("latency_ms", "bucket"),
    [(0.5, "le_50ms"), (99.0, "le_100ms"), (4999.0, "le_5000ms"), (7500.0, "gt_5000ms")],
)
def test_latency_buckets(latency_ms: float, bucket: str) -> None:
    assert MetricsEmitter._latency_bucket(latency_ms) == bucket


def test_capture_events_are_logged(monkeypatch: pytest.MonkeyPatch) -> None:
    stream = io.StringIO()
    monkeypatch.setattr(
        capture_context, "_LOG", setup_json_logger("tests.observability.capture", stream=stream)
    )
    set_request_id("req-smoke-003")
    ctx = CaptureContext()

    ctx.root("pulumi_aws").s3.Bucket("logged")
    ctx.root("pulumi_aws").s3.Bucket()

    events = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [e["event"] for e in events] == [
        "capture.node.recorded",
        "capture.label.missing",
        "capture.node.recorded",
    ]
    assert events[0]["pulumi_class"] == "pulumi_aws.s3.Bucket"
    assert events[1]["level"] == "WARNING"
    assert events[2]["label"] == "<unnamed>"
    assert all(e["request_id"] == "req-smoke-003" for e in events)
