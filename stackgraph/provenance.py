"""Origin records carried by stand-in values.

A provenance is either rooted at an intercepted import (``RootImport``) or at
a captured node (``FromNode``). Both are immutable; every access produces a
new record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

CALL_MARKER = "()"


def subscript_marker(key: object) -> str:
    return f"[{key!r}]"


def operator_marker(name: str) -> str:
    """Segment for an operator applied to a value, e.g. ``<or>`` for ``x | y``."""
    return f"<{name}>"


def _attaches(segment: str) -> bool:
    return segment.startswith(("(", "[", "<"))


def join_path(segments: Iterable[str]) -> str:
    """Join access segments with dots; call and subscript markers attach directly.

    >>> join_path(["pulumi_aws", "s3", "Bucket"])
    'pulumi_aws.s3.Bucket'
    >>> join_path(["id", "apply", "()"])
    'id.apply()'
    >>> join_path(["arn", "<add>"])
    'arn<add>'
    """
    out = ""
    for segment in segments:
        segment = str(segment)
        if not out or _attaches(segment):
            out += segment
        else:
            out += "." + segment
    return out


@dataclass(frozen=True)
class RootImport:
    identifier: str
    path: tuple[str, ...] = ()

    def extend(self, segment: str) -> RootImport:
        return RootImport(self.identifier, self.path + (segment,))

    @property
    def access_path(self) -> tuple[str, ...]:
        return (self.identifier, *self.path)

    def describe(self) -> str:
        return join_path(self.access_path)


@dataclass(frozen=True)
class FromNode:
    index: int
    path_suffix: tuple[str, ...] = ()

    def extend(self, segment: str) -> FromNode:
        return FromNode(self.index, self.path_suffix + (segment,))

    @property
    def prop(self) -> str:
        return join_path(self.path_suffix)

    def describe(self) -> str:
        return join_path((f"<node {self.index}>", *self.path_suffix))


Provenance = Union[RootImport, FromNode]
