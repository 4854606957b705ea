"""Flatten nested constructor arguments into dotted-path leaves.

Traversal is pre-order depth-first and keeps mapping iteration order, so the
leaf sequence is the argument order a reader sees in the program source.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class Sentinel:
    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text

    def __repr__(self) -> str:
        return f"Sentinel({self.text!r})"


EMPTY_MAPPING = Sentinel("{}")
EMPTY_SEQUENCE = Sentinel("[]")
CYCLE = Sentinel("<cycle>")

Leaf = tuple[str, Any]


def _is_sequence(value: object) -> bool:
    return isinstance(value, (list, tuple))


def _child_path(path: str, key: object) -> str:
    return f"{path}.{key}" if path else str(key)


def flatten_args(raw_args: Any, prefix: str = "") -> list[Leaf]:
    """Return ``(path, value)`` leaves for ``raw_args``.

    Values are kept as-is (stand-ins included) for the classifier. ``None``
    at the top level means no arguments were given and yields no leaves; a
    top-level scalar is reported under ``value``.

    >>> flatten_args({"tags": {"env": "prod"}, "ports": [80, 443]})
    [('tags.env', 'prod'), ('ports.0', 80), ('ports.1', 443)]
    """
    if raw_args is None and not prefix:
        return []
    if not isinstance(raw_args, Mapping) and not _is_sequence(raw_args):
        return [(prefix or "value", raw_args)]

    leaves: list[Leaf] = []
    stack: list[tuple[str, Any, frozenset[int]]] = [(prefix, raw_args, frozenset())]
    while stack:
        path, value, ancestors = stack.pop()
        if value is None:
            leaves.append((path, None))
            continue

        if isinstance(value, Mapping):
            items = [(str(k), v) for k, v in value.items()]
            empty = EMPTY_MAPPING
        elif _is_sequence(value):
            items = [(str(i), v) for i, v in enumerate(value)]
            empty = EMPTY_SEQUENCE
        else:
            leaves.append((path, value))
            continue

        if id(value) in ancestors:
            leaves.append((path, CYCLE))
            continue
        if not items:
            leaves.append((path, empty))
            continue
        inner = ancestors | {id(value)}
        stack.extend((_child_path(path, k), v, inner) for k, v in reversed(items))
    return leaves
