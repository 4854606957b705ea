from __future__ import annotations

from typing import Any, Callable

from .config import CaptureConfig, default_config
from .provenance import CALL_MARKER, FromNode, Provenance, RootImport, join_path
from .registry import CapturedNode, NodeRegistry
from .standin import ResourceBase, StandIn
from .util import log_event, log_warning, setup_json_logger

_LOG = setup_json_logger("stackgraph.capture")

_MISSING = object()


def _canned(value: str) -> Callable[..., str]:
    def _identity(*_args: Any, **_kwargs: Any) -> str:
        return value

    return _identity


def _select_raw_args(args: tuple, kwargs: dict) -> Any:
    # Resource(resource_name, args=None, opts=None, **kwargs)
    if len(args) > 1:
        return args[1]
    if "args" in kwargs:
        return kwargs["args"]
    rest = {k: v for k, v in kwargs.items() if k not in ("resource_name", "opts")}
    return rest or None


class CaptureContext:
    """State of one capture run, threaded through every stand-in it creates.

    Owns the node registry. Stand-ins delegate reads and calls here so the
    resource detection policy lives in one place.
    """

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self.config = config or default_config()
        self.registry = NodeRegistry()
        self._identity_queries = {
            "get_project": _canned(self.config.project_name),
            "get_stack": _canned(self.config.stack_name),
        }

    def root(self, identifier: str) -> StandIn:
        return StandIn(self, RootImport(identifier))

    def read(self, provenance: Provenance, name: str) -> Any:
        canned = self._identity_queries.get(name)
        if canned is not None:
            return canned
        return StandIn(self, provenance.extend(name))

    def class_name(self, provenance: Provenance) -> str | None:
        if not isinstance(provenance, RootImport) or not provenance.path:
            return None
        last = provenance.path[-1]
        if not last.isidentifier() or not last[0].isupper():
            return None
        return last

    def is_input_type(self, provenance: Provenance) -> bool:
        name = self.class_name(provenance)
        return name is not None and name.endswith(self.config.input_type_suffixes)

    def is_resource_class(self, provenance: Provenance) -> bool:
        name = self.class_name(provenance)
        if name is None or name in self.config.non_resource_classes:
            return False
        return not name.endswith(self.config.input_type_suffixes)

    def call(self, provenance: Provenance, args: tuple, kwargs: dict) -> Any:
        if self.is_resource_class(provenance):
            return self.construct(provenance, args, kwargs)
        if self.is_input_type(provenance) and not args:
            return dict(kwargs)
        return StandIn(self, provenance.extend(CALL_MARKER))

    def construct(self, provenance: RootImport, args: tuple, kwargs: dict) -> StandIn:
        name = args[0] if args else kwargs.get("resource_name", _MISSING)
        index = self.record(
            provenance.access_path,
            self.coerce_label(name),
            _select_raw_args(args, kwargs),
        )
        return StandIn(self, FromNode(index))

    def record(self, class_path: tuple[str, ...], label: str, raw_args: Any) -> int:
        index = self.registry.append(CapturedNode(tuple(class_path), label, raw_args))
        log_event(
            _LOG,
            "capture.node.recorded",
            index=index,
            label=label,
            pulumi_class=join_path(class_path),
        )
        return index

    def coerce_label(self, value: object) -> str:
        if value is _MISSING or value is None:
            log_warning(_LOG, "capture.label.missing", placeholder=self.config.unnamed_label)
            return self.config.unnamed_label
        if isinstance(value, str):
            return value
        try:
            return str(value)
        except Exception as exc:
            log_warning(
                _LOG,
                "capture.label.uncoercible",
                error=type(exc).__name__,
                placeholder=self.config.unnamed_label,
            )
            return self.config.unnamed_label

    def component_base(self, provenance: Provenance) -> type:
        path = provenance.access_path if isinstance(provenance, RootImport) else ()
        name = path[-1] if path else "Resource"
        return type(
            name,
            (ResourceBase,),
            {"_sg_context": self, "_sg_base_path": path, "__module__": __name__},
        )
