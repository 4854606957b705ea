from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

from .config import CaptureConfig, default_config, load_config
from .graph import graph_from_data, graph_to_json
from .loader import capture_graph
from .server import make_server, serve_forever
from .util import (
    MetricsEmitter,
    generate_request_id,
    get_request_id,
    log_event,
    read_json,
    set_request_id,
    setup_json_logger,
    write_text,
)

_LOG = setup_json_logger("stackgraph.cli")

GLOBAL_FLAGS = ("--config", "--metrics-out", "--request-id")


def _normalize_global_flags(argv: list[str]) -> list[str]:
    """Allow global flags after the subcommand.

    `argparse` only accepts global args before the subcommand, so
    `stackgraph capture . --config X` becomes `stackgraph --config X capture .`.
    """
    if not argv:
        return argv

    out = list(argv)
    for flag in GLOBAL_FLAGS:
        if flag in out:
            i = out.index(flag)
            if i + 1 < len(out):
                val = out[i + 1]
                del out[i : i + 2]
                out = [flag, val, *out]
    return out


def _load(cfg_path: Path | None) -> CaptureConfig:
    return load_config(cfg_path) if cfg_path is not None else default_config()


def cmd_capture(program: Path, cfg_path: Path | None, out_path: Path | None) -> tuple[int, int]:
    cfg = _load(cfg_path)
    graph = capture_graph(program, cfg)
    payload = graph_to_json(graph)
    if out_path is not None:
        write_text(out_path, payload)
        log_event(_LOG, "cli.capture.written", out=str(out_path), nodes=len(graph))
    else:
        print(payload)
    return 0, len(graph)


def _serve(graph, cfg: CaptureConfig, host: str | None, port: int | None, open_browser: bool) -> None:
    server = make_server(
        graph,
        host=host or cfg.server.host,
        port=cfg.server.port if port is None else port,
        ui_dir=cfg.server.ui_dir,
    )
    serve_forever(server, open_browser=open_browser)


def cmd_serve(
    program: Path,
    cfg_path: Path | None,
    *,
    host: str | None,
    port: int | None,
    open_browser: bool,
) -> tuple[int, int]:
    cfg = _load(cfg_path)
    graph = capture_graph(program, cfg)
    _serve(graph, cfg, host, port, open_browser)
    return 0, len(graph)


def cmd_show(
    graph_path: Path,
    cfg_path: Path | None,
    *,
    host: str | None,
    port: int | None,
    open_browser: bool,
) -> tuple[int, int]:
    cfg = _load(cfg_path)
    graph = graph_from_data(read_json(graph_path))
    _serve(graph, cfg, host, port, open_browser)
    return 0, len(graph)


def _run_command_with_observability(
    *,
    command_name: str,
    fn,
    metrics: MetricsEmitter | None,
) -> int:
    started = time.perf_counter()
    log_event(_LOG, "cli.command.start", command=command_name)
    try:
        rc, nodes = fn()
    except Exception as exc:
        latency_ms = (time.perf_counter() - started) * 1000.0
        log_event(
            _LOG,
            "cli.command.error",
            command=command_name,
            error=str(exc),
            latency_ms=round(latency_ms, 3),
        )
        if metrics is not None:
            metrics.emit(
                metric="stackgraph.command",
                status="error",
                latency_ms=latency_ms,
                error=type(exc).__name__,
            )
        raise

    latency_ms = (time.perf_counter() - started) * 1000.0
    status = "success" if rc == 0 else "error"
    log_event(
        _LOG,
        "cli.command.finish",
        command=command_name,
        latency_ms=round(latency_ms, 3),
        nodes=nodes,
        status=status,
    )
    if metrics is not None:
        metrics.emit(
            metric="stackgraph.command",
            status=status,
            latency_ms=latency_ms,
            nodes=nodes,
            error=(None if rc == 0 else f"exit_code={rc}"),
        )
    return rc


def _add_server_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--host", default=None, help="Bind address (default from config, 127.0.0.1).")
    p.add_argument("--port", type=int, default=None, help="Bind port (default from config, 0 = any free port).")
    p.add_argument("--no-browser", action="store_true", help="Do not open a browser window.")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="stackgraph",
        description="Extract a resource dependency graph from a Pulumi Python program without deploying it.",
    )
    p.add_argument("--config", default=None, help="Path to a stackgraph config JSON file.")
    p.add_argument(
        "--metrics-out",
        default=None,
        help="Append JSONL command metrics to this file.",
    )
    p.add_argument(
        "--request-id",
        default=None,
        help="Correlation/request identifier for all structured logs and metrics.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    cap = sub.add_parser("capture", help="Capture the graph and print it as JSON.")
    cap.add_argument("program", help="Program file or Pulumi project directory.")
    cap.add_argument("--out", default=None, help="Write the graph JSON here instead of stdout.")

    srv = sub.add_parser("serve", help="Capture the graph and serve it over HTTP.")
    srv.add_argument("program", help="Program file or Pulumi project directory.")
    _add_server_flags(srv)

    show = sub.add_parser("show", help="Serve a previously captured graph JSON file.")
    show.add_argument("graph", help="Path to a graph JSON file.")
    _add_server_flags(show)
    return p


def main(argv: list[str] | None = None) -> None:
    argv = _normalize_global_flags(argv if argv is not None else sys.argv[1:])
    args = build_parser().parse_args(argv)
    cfg_path = Path(args.config) if args.config else None

    set_request_id(args.request_id or generate_request_id())
    metrics = MetricsEmitter(Path(args.metrics_out)) if args.metrics_out else None
    log_event(_LOG, "cli.request.context", request_id=get_request_id(), command=args.cmd)

    if args.cmd == "capture":
        rc = _run_command_with_observability(
            command_name=args.cmd,
            fn=lambda: cmd_capture(
                Path(args.program),
                cfg_path,
                Path(args.out) if args.out else None,
            ),
            metrics=metrics,
        )
    elif args.cmd == "serve":
        rc = _run_command_with_observability(
            command_name=args.cmd,
            fn=lambda: cmd_serve(
                Path(args.program),
                cfg_path,
                host=args.host,
                port=args.port,
                open_browser=not args.no_browser,
            ),
            metrics=metrics,
        )
    elif args.cmd == "show":
        rc = _run_command_with_observability(
            command_name=args.cmd,
            fn=lambda: cmd_show(
                Path(args.graph),
                cfg_path,
                host=args.host,
                port=args.port,
                open_browser=not args.no_browser,
            ),
            metrics=metrics,
        )
    else:
        raise RuntimeError("unreachable")

    raise SystemExit(rc)


if __name__ == "__main__":
    main()
