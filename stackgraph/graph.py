from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

from .classify import GraphArgValue, LinkArg, TextArg, classify_leaf
from .flatten import flatten_args
from .provenance import join_path
from .registry import CapturedNode
from .util import log_event, setup_json_logger

E_LINK_OUT_OF_RANGE = "E_LINK_OUT_OF_RANGE"
E_GRAPH_MALFORMED = "E_GRAPH_MALFORMED"

_LOG = setup_json_logger("stackgraph.graph")


class GraphConsistencyError(RuntimeError):
    pass


@dataclass(frozen=True)
class GraphNode:
    pulumi_class: str
    label: str
    args_flat: tuple[tuple[str, GraphArgValue], ...] = ()

    def to_dict(self) -> dict:
        return {
            "pulumiClass": self.pulumi_class,
            "label": self.label,
            "argsFlat": [[key, value.to_dict()] for key, value in self.args_flat],
        }


def assemble_node(node: CapturedNode) -> GraphNode:
    return GraphNode(
        pulumi_class=join_path(node.class_path),
        label=node.name,
        args_flat=tuple(
            (path, classify_leaf(value, path=path))
            for path, value in flatten_args(node.raw_args)
        ),
    )


def assemble_graph(nodes: Iterable[CapturedNode]) -> list[GraphNode]:
    """Build the graph, index-aligned with the registry's construction order."""
    graph = [assemble_node(node) for node in nodes]
    check_links(graph)
    log_event(
        _LOG,
        "graph.assembled",
        nodes=len(graph),
        links=sum(1 for _ in iter_links(graph)),
    )
    return graph


def iter_links(graph: Sequence[GraphNode]) -> Iterator[tuple[int, str, LinkArg]]:
    """Yield ``(dependent_index, arg_key, link)`` for every link in the graph."""
    for index, node in enumerate(graph):
        for key, value in node.args_flat:
            if isinstance(value, LinkArg):
                yield index, key, value


def check_links(graph: Sequence[GraphNode]) -> None:
    for index, key, link in iter_links(graph):
        if not 0 <= link.source < len(graph):
            log_event(
                _LOG,
                "graph.link.out_of_range",
                node=index,
                key=key,
                source=link.source,
                size=len(graph),
                error_code=E_LINK_OUT_OF_RANGE,
            )
            raise GraphConsistencyError(
                f"{E_LINK_OUT_OF_RANGE}: node {index} arg {key!r} links to "
                f"{link.source}, graph has {len(graph)} nodes"
            )


def graph_to_data(graph: Sequence[GraphNode]) -> list[dict]:
    return [node.to_dict() for node in graph]


def graph_to_json(graph: Sequence[GraphNode], *, indent: int | None = 2) -> str:
    return json.dumps(graph_to_data(graph), indent=indent, ensure_ascii=False)


def _arg_from_data(raw: Any) -> GraphArgValue:
    if isinstance(raw, dict) and raw.get("type") == "text" and isinstance(raw.get("content"), str):
        return TextArg(raw["content"])
    if (
        isinstance(raw, dict)
        and raw.get("type") == "link"
        and isinstance(raw.get("prop"), str)
        and isinstance(raw.get("source"), int)
        and not isinstance(raw.get("source"), bool)
    ):
        return LinkArg(prop=raw["prop"], source=raw["source"])
    raise ValueError(f"{E_GRAPH_MALFORMED}: unrecognised arg value {raw!r}")


def graph_from_data(data: Any) -> list[GraphNode]:
    """Parse serialized graph data back into nodes; links are range-checked."""
    if not isinstance(data, list):
        raise ValueError(f"{E_GRAPH_MALFORMED}: graph must be a JSON array")
    graph: list[GraphNode] = []
    for position, raw in enumerate(data):
        if not isinstance(raw, dict):
            raise ValueError(f"{E_GRAPH_MALFORMED}: node {position} must be an object")
        args = raw.get("argsFlat", [])
        if not isinstance(args, list) or not all(
            isinstance(pair, list) and len(pair) == 2 and isinstance(pair[0], str)
            for pair in args
        ):
            raise ValueError(f"{E_GRAPH_MALFORMED}: node {position} argsFlat must be [key, value] pairs")
        graph.append(
            GraphNode(
                pulumi_class=str(raw.get("pulumiClass", "")),
                label=str(raw.get("label", "")),
                args_flat=tuple((key, _arg_from_data(value)) for key, value in args),
            )
        )
    check_links(graph)
    return graph
