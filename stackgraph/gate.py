from __future__ import annotations

import builtins
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from .context import CaptureContext
from .util import log_event, setup_json_logger

_LOG = setup_json_logger("stackgraph.gate")


class ImportGate:
    """Redirects imports of the SDK namespace to stand-ins for one capture run.

    A module matches when its top-level package is one of ``namespaces`` or a
    provider package named ``<namespace>_*`` (``pulumi_aws``, ``pulumi_random``).
    """

    def __init__(self, context: CaptureContext, namespaces: Sequence[str] | None = None) -> None:
        self.context = context
        self.namespaces = tuple(namespaces or context.config.sdk_namespaces)
        self._original_import = None

    def matches(self, name: str) -> bool:
        top = name.partition(".")[0]
        return any(top == ns or top.startswith(ns + "_") for ns in self.namespaces)

    def substitute(self, name: str, fromlist: Sequence[str] | None):
        # `import a.b` binds `a`; `from a.b import c` reads `c` off `a.b`.
        identifier = name if fromlist else name.partition(".")[0]
        log_event(_LOG, "gate.import.substituted", module=name, identifier=identifier)
        return self.context.root(identifier)

    def _import(self, name, globals=None, locals=None, fromlist=(), level=0) -> Any:
        if level == 0 and self.matches(name):
            return self.substitute(name, fromlist)
        return self._original_import(name, globals, locals, fromlist, level)

    @contextmanager
    def installed(self) -> Iterator[ImportGate]:
        if self._original_import is not None:
            raise RuntimeError("E_GATE_ALREADY_INSTALLED: import gate is already active")
        self._original_import = builtins.__import__
        builtins.__import__ = self._import
        log_event(_LOG, "gate.install", namespaces=list(self.namespaces))
        try:
            yield self
        finally:
            builtins.__import__ = self._original_import
            self._original_import = None
            log_event(_LOG, "gate.uninstall")
