from __future__ import annotations

from .classify import LinkArg, TextArg, classify_leaf
from .config import CaptureConfig, load_config
from .context import CaptureContext
from .flatten import flatten_args
from .gate import ImportGate
from .graph import GraphNode, assemble_graph, graph_to_json
from .loader import CaptureError, capture_graph, resolve_program, run_program
from .provenance import FromNode, RootImport
from .registry import CapturedNode, NodeRegistry
from .standin import StandIn, provenance_of

__all__ = [
    "__version__",
    "CaptureConfig",
    "CaptureContext",
    "CaptureError",
    "CapturedNode",
    "FromNode",
    "GraphNode",
    "ImportGate",
    "LinkArg",
    "NodeRegistry",
    "RootImport",
    "StandIn",
    "TextArg",
    "assemble_graph",
    "capture_graph",
    "classify_leaf",
    "flatten_args",
    "graph_to_json",
    "load_config",
    "provenance_of",
    "resolve_program",
    "run_program",
]
__version__ = "0.1.0"
