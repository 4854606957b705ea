"""Locate and run a Pulumi Python program under the import gate.

The program executes in-process with ``runpy``; it sees stand-ins for the SDK
and real modules for everything else. Nothing is installed or deployed.
"""

from __future__ import annotations

import runpy
import sys
import time
from contextlib import redirect_stdout
from pathlib import Path

import yaml

from .config import CaptureConfig
from .context import CaptureContext
from .gate import ImportGate
from .graph import GraphNode, assemble_graph
from .registry import NodeRegistry
from .util import log_event, setup_json_logger

E_PROGRAM_NOT_FOUND = "E_PROGRAM_NOT_FOUND"
E_RUNTIME_UNSUPPORTED = "E_RUNTIME_UNSUPPORTED"
E_IMPORT_UNRESOLVED = "E_IMPORT_UNRESOLVED"
E_PROGRAM_FAILED = "E_PROGRAM_FAILED"

PROJECT_FILES = ("Pulumi.yaml", "Pulumi.yml")
PYTHON_RUNTIMES = {"python", "python3"}

_LOG = setup_json_logger("stackgraph.loader")


class CaptureError(RuntimeError):
    pass


class ProgramNotFoundError(CaptureError):
    pass


def _runtime_name(project: dict) -> str:
    runtime = project.get("runtime", "")
    if isinstance(runtime, dict):
        runtime = runtime.get("name", "")
    return str(runtime or "")


def read_project(project_dir: Path) -> dict | None:
    for name in PROJECT_FILES:
        candidate = project_dir / name
        if candidate.is_file():
            doc = yaml.safe_load(candidate.read_text(encoding="utf-8"))
            if not isinstance(doc, dict):
                raise ValueError(f"{candidate} must be a mapping")
            return doc
    return None


def _not_found(code: str, message: str, **fields: object) -> ProgramNotFoundError:
    log_event(_LOG, "loader.program.unresolved", error_code=code, **fields)
    return ProgramNotFoundError(f"{code}: {message}")


def resolve_program(path: Path) -> Path:
    """Return the entry file for ``path`` (a .py file or a project directory)."""
    path = path.resolve()
    if path.is_file():
        if path.suffix != ".py":
            raise _not_found(
                E_PROGRAM_NOT_FOUND,
                f"{path} is not a Python file. Fix: pass a .py file or a Pulumi project directory.",
                path=str(path),
            )
        return path
    if not path.is_dir():
        raise _not_found(E_PROGRAM_NOT_FOUND, f"{path} does not exist", path=str(path))

    main: str | None = None
    project = read_project(path)
    if project is not None:
        runtime = _runtime_name(project)
        if runtime not in PYTHON_RUNTIMES:
            raise _not_found(
                E_RUNTIME_UNSUPPORTED,
                f"project runtime {runtime!r} is not supported. "
                "Fix: only Python Pulumi programs can be captured.",
                runtime=runtime,
            )
        if project.get("main"):
            main = str(project["main"])

    base = path / main if main else path
    candidate = base / "__main__.py" if base.is_dir() else base
    if not candidate.is_file():
        raise _not_found(E_PROGRAM_NOT_FOUND, f"no program entry at {candidate}", path=str(candidate))
    log_event(_LOG, "loader.program.resolved", program=str(candidate))
    return candidate


def _purge_program_modules(program_dir: Path, before: set[str]) -> list[str]:
    purged: list[str] = []
    for name in sorted(set(sys.modules) - before):
        module_file = getattr(sys.modules.get(name), "__file__", None)
        if module_file and Path(module_file).resolve().is_relative_to(program_dir):
            sys.modules.pop(name, None)
            purged.append(name)
    return purged


def _program_failed(exc: BaseException) -> CaptureError:
    log_event(
        _LOG,
        "loader.run.failure",
        error_code=E_PROGRAM_FAILED,
        error=f"{type(exc).__name__}: {exc}",
    )
    return CaptureError(f"{E_PROGRAM_FAILED}: {type(exc).__name__}: {exc}")


def run_program(program: Path, context: CaptureContext) -> NodeRegistry:
    """Execute ``program`` to completion with the SDK substituted; return the registry.

    Guest output on stdout is sent to stderr so stdout stays free for the graph.
    """
    program = program.resolve()
    program_dir = program.parent
    modules_before = set(sys.modules)
    path_before = list(sys.path)
    started = time.perf_counter()
    log_event(_LOG, "loader.run.start", program=str(program))

    sys.path.insert(0, str(program_dir))
    try:
        with ImportGate(context).installed(), redirect_stdout(sys.stderr):
            runpy.run_path(str(program), run_name="__main__")
    except ImportError as exc:
        if exc.name is None:
            # Raised by the program itself, not by a failed module lookup.
            raise _program_failed(exc) from exc
        log_event(
            _LOG,
            "loader.run.failure",
            error_code=E_IMPORT_UNRESOLVED,
            module=exc.name,
            error=str(exc),
        )
        raise CaptureError(
            f"{E_IMPORT_UNRESOLVED}: import of {exc.name!r} could not be resolved. "
            "Fix: install the program's non-SDK dependencies."
        ) from exc
    except SystemExit as exc:
        if exc.code not in (None, 0):
            log_event(_LOG, "loader.run.failure", error_code=E_PROGRAM_FAILED, exit_code=exc.code)
            raise CaptureError(f"{E_PROGRAM_FAILED}: program exited with status {exc.code!r}") from exc
    except Exception as exc:
        raise _program_failed(exc) from exc
    finally:
        sys.path[:] = path_before
        purged = _purge_program_modules(program_dir, modules_before)
        if purged:
            log_event(_LOG, "loader.modules.purged", modules=purged)

    log_event(
        _LOG,
        "loader.run.finish",
        program=str(program),
        nodes=len(context.registry),
        latency_ms=round((time.perf_counter() - started) * 1000.0, 3),
    )
    return context.registry


def capture_graph(path: Path, config: CaptureConfig | None = None) -> list[GraphNode]:
    context = CaptureContext(config)
    registry = run_program(resolve_program(path), context)
    return assemble_graph(registry)
