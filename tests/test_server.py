from __future__ import annotations

import json
import threading
import urllib.error
import urllib.request
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest

from stackgraph.classify import LinkArg
from stackgraph.graph import GraphNode
from stackgraph.server import UI_MISSING_MESSAGE, make_server, server_url

GRAPH = [
    GraphNode("pulumi_aws.s3.Bucket", "bucket"),
    GraphNode("pulumi_aws.sqs.Queue", "queue", (("policy", LinkArg(prop="arn", source=0)),)),
]


@contextmanager
def _running(ui_dir: Path | None = None) -> Iterator[str]:
    try:
        server = make_server(GRAPH, host="127.0.0.1", port=0, ui_dir=ui_dir)
    except OSError as exc:
        pytest.skip(f"cannot bind local test server: {exc}")
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server_url(server)
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


def _get(url: str) -> tuple[int, dict, bytes]:
    try:
        with urllib.request.urlopen(url, timeout=5) as resp:
            return resp.status, dict(resp.headers), resp.read()
    except urllib.error.HTTPError as exc:
        return exc.code, dict(exc.headers), exc.read()


def test_data_endpoint_serves_graph_without_caching() -> None:
    with _running() as base:
        status, headers, body = _get(base + "data")

    assert status == 200
    assert headers["Cache-Control"] == "no-store"
    assert headers["Content-Type"].startswith("application/json")
    data = json.loads(body)
    assert data[1]["argsFlat"] == [["policy", {"type": "link", "prop": "arn", "source": 0}]]


def test_root_without_ui_explains_how_to_build_it() -> None:
    with _running() as base:
        status, _, body = _get(base)

    assert status == 404
    assert body.decode("utf-8") == UI_MISSING_MESSAGE


def test_static_ui_is_served(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<html>graph</html>", encoding="utf-8")
    (tmp_path / "assets").mkdir()
    (tmp_path / "assets" / "app.js").write_text("console.log(1)", encoding="utf-8")

    with _running(tmp_path) as base:
        index = _get(base)
        script = _get(base + "assets/app.js")
        missing = _get(base + "assets/none.js")

    assert index[0] == 200
    assert index[2] == b"<html>graph</html>"
    assert script[0] == 200
    assert script[1]["Content-Type"].startswith("application/javascript")
    assert missing[0] == 404


def test_static_paths_cannot_escape_ui_dir(tmp_path: Path) -> None:
    ui = tmp_path / "ui"
    ui.mkdir()
    (ui / "index.html").write_text("ok", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("secret", encoding="utf-8")

    with _running(ui) as base:
        status, _, body = _get(base + "assets/../../secret.txt")

    assert status == 403
    assert b"secret" not in body


def test_unknown_paths_are_not_found() -> None:
    with _running() as base:
        status, _, _ = _get(base + "graphql")

    assert status == 404
