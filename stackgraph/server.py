from __future__ import annotations

import webbrowser
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Sequence
from urllib.parse import urlsplit

from .graph import GraphNode, graph_to_json
from .util import log_event, log_warning, setup_json_logger

_LOG = setup_json_logger("stackgraph.server")

CONTENT_TYPES = {
    ".html": "text/html; charset=UTF-8",
    ".js": "application/javascript; charset=UTF-8",
    ".css": "text/css; charset=UTF-8",
    ".map": "application/json; charset=UTF-8",
    ".json": "application/json; charset=UTF-8",
    ".svg": "image/svg+xml",
    ".png": "image/png",
}
UI_MISSING_MESSAGE = (
    "UI not built. Set server.ui_dir in the stackgraph config to a directory "
    "containing index.html; the graph itself is available at /data."
)


def make_handler(graph_json: bytes, ui_dir: Path | None) -> type[BaseHTTPRequestHandler]:
    ui_root = ui_dir.resolve() if ui_dir is not None else None

    class GraphRequestHandler(BaseHTTPRequestHandler):
        def do_GET(self) -> None:  # noqa: N802 - http.server uses do_* naming
            url = urlsplit(self.path).path or "/"
            if url == "/" or url.startswith("/index.html") or url.startswith("/assets/"):
                self._serve_static(url)
                return
            if url.startswith("/data"):
                self._send(
                    200,
                    "application/json; charset=UTF-8",
                    graph_json,
                    extra_headers={"Cache-Control": "no-store"},
                )
                return
            self._send(404, "text/plain", b"Not found")

        def _serve_static(self, url: str) -> None:
            if ui_root is None or not (ui_root / "index.html").is_file():
                self._send(404, "text/plain", UI_MISSING_MESSAGE.encode("utf-8"))
                return
            requested = "index.html" if url == "/" else url.lstrip("/")
            file_path = (ui_root / requested).resolve()
            if not file_path.is_relative_to(ui_root):
                self._send(403, "text/plain", b"Forbidden")
                return
            if not file_path.is_file():
                self._send(404, "text/plain", b"Not found")
                return
            content_type = CONTENT_TYPES.get(file_path.suffix.lower(), "application/octet-stream")
            self._send(200, content_type, file_path.read_bytes())

        def _send(
            self,
            status: int,
            content_type: str,
            body: bytes,
            *,
            extra_headers: dict[str, str] | None = None,
        ) -> None:
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            for key, value in (extra_headers or {}).items():
                self.send_header(key, value)
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, format: str, *args: object) -> None:
            log_event(_LOG, "server.request", client=self.client_address[0], line=format % args)

    return GraphRequestHandler


def make_server(
    graph: Sequence[GraphNode],
    *,
    host: str = "127.0.0.1",
    port: int = 0,
    ui_dir: Path | None = None,
) -> ThreadingHTTPServer:
    """Bind a server for ``graph``; port 0 picks a free port."""
    payload = graph_to_json(graph).encode("utf-8")
    server = ThreadingHTTPServer((host, port), make_handler(payload, ui_dir))
    log_event(_LOG, "server.bind", host=host, port=server.server_port, nodes=len(graph))
    return server


def server_url(server: ThreadingHTTPServer) -> str:
    host, port = server.server_address[:2]
    return f"http://{host}:{port}/"


def serve_forever(server: ThreadingHTTPServer, *, open_browser: bool = True) -> None:
    url = server_url(server)
    log_event(_LOG, "server.ready", url=url)
    print(f"Graph UI available at {url}", flush=True)
    if open_browser:
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as exc:
            opened = False
            log_warning(_LOG, "server.browser.error", error=str(exc))
        if not opened:
            log_warning(_LOG, "server.browser.unavailable", url=url)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        log_event(_LOG, "server.interrupted")
    finally:
        server.server_close()
