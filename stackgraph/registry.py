from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(frozen=True)
class CapturedNode:
    """One resource construction: which class, under what name, with which raw args."""

    class_path: tuple[str, ...]
    name: str
    raw_args: Any = None


class NodeRegistry:
    """Append-only, construction-ordered store of captured nodes for one run."""

    def __init__(self) -> None:
        self._nodes: list[CapturedNode] = []

    def append(self, node: CapturedNode) -> int:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def nodes(self) -> tuple[CapturedNode, ...]:
        return tuple(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[CapturedNode]:
        return iter(tuple(self._nodes))

    def __getitem__(self, index: int) -> CapturedNode:
        return self._nodes[index]
