from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from .flatten import Sentinel
from .provenance import FromNode, RootImport
from .standin import provenance_of
from .util import log_warning, setup_json_logger

_LOG = setup_json_logger("stackgraph.classify")

FUNCTION_PLACEHOLDER = "<function>"


@dataclass(frozen=True)
class TextArg:
    content: str

    def to_dict(self) -> dict:
        return {"type": "text", "content": self.content}


@dataclass(frozen=True)
class LinkArg:
    prop: str
    source: int

    def to_dict(self) -> dict:
        return {"type": "link", "prop": self.prop, "source": self.source}


GraphArgValue = Union[TextArg, LinkArg]


def opaque_text(value: object) -> str:
    if callable(value):
        return FUNCTION_PLACEHOLDER
    return f"<opaque:{type(value).__name__}>"


def canonical_text(value: Any, *, path: str = "") -> str:
    if isinstance(value, Sentinel):
        return value.text
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        text = opaque_text(value)
        log_warning(
            _LOG,
            "classify.leaf.opaque",
            path=path,
            value_type=type(value).__name__,
            error=type(exc).__name__,
            placeholder=text,
        )
        return text


def classify_leaf(value: Any, *, path: str = "") -> GraphArgValue:
    """Map one flattened leaf to a link (derived from a node) or text."""
    provenance = provenance_of(value)
    if isinstance(provenance, FromNode):
        return LinkArg(prop=provenance.prop, source=provenance.index)
    if isinstance(provenance, RootImport):
        # Import-level references are informational, never edges.
        return TextArg(provenance.describe())
    return TextArg(canonical_text(value, path=path))
