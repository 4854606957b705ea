from __future__ import annotations

import builtins
import hashlib
import json
import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from stackgraph.context import CaptureContext

GUEST_MODULE_PREFIXES = ("guest_",)


def _canonical_env_hash(env: dict[str, str]) -> str:
    payload = json.dumps(sorted(env.items()), ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@pytest.fixture(autouse=True)
def isolate_runtime_state() -> Iterator[None]:
    modules_before = set(sys.modules.keys())
    environ_before = dict(os.environ)
    environ_before_hash = _canonical_env_hash(environ_before)
    import_before = builtins.__import__

    yield

    assert builtins.__import__ is import_before, "import gate leaked out of a test"

    for module_name in set(sys.modules.keys()) - modules_before:
        if module_name.startswith(GUEST_MODULE_PREFIXES):
            sys.modules.pop(module_name, None)

    post_env = dict(os.environ)
    for key in list(post_env.keys()):
        if key not in environ_before:
            os.environ.pop(key, None)
    for key, value in environ_before.items():
        os.environ[key] = value

    assert _canonical_env_hash(dict(os.environ)) == environ_before_hash


@pytest.fixture
def ctx() -> CaptureContext:
    return CaptureContext()


@pytest.fixture
def write_program(tmp_path: Path):
    """Write a guest program (and optional sibling modules) into tmp_path."""

    def _write(source: str, *, name: str = "__main__.py", **modules: str) -> Path:
        for module_name, module_source in modules.items():
            (tmp_path / f"{module_name}.py").write_text(module_source, encoding="utf-8")
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return path

    return _write
