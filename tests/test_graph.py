from __future__ import annotations

import json

import pytest

from stackgraph.classify import LinkArg, TextArg
from stackgraph.context import CaptureContext
from stackgraph.graph import (
    GraphConsistencyError,
    GraphNode,
    assemble_graph,
    check_links,
    graph_from_data,
    graph_to_json,
    iter_links,
)
from stackgraph.registry import CapturedNode


def _scenario_graph(ctx: CaptureContext) -> list[GraphNode]:
    aws = ctx.root("pulumi_aws")
    bucket = aws.s3.Bucket("bucket")
    aws.sqs.Queue("queue", {"bucketArn": bucket.arn})
    aws.s3.BucketObject("tagged", {"tags": {"env": "prod"}})
    aws.s3.BucketObject("empty", {"items": []})
    return assemble_graph(ctx.registry)


def test_scenarios(ctx: CaptureContext) -> None:
    graph = _scenario_graph(ctx)

    assert graph[0] == GraphNode("pulumi_aws.s3.Bucket", "bucket", ())
    assert graph[1].args_flat == (("bucketArn", LinkArg(prop="arn", source=0)),)
    assert graph[2].args_flat == (("tags.env", TextArg('"prod"')),)
    assert graph[3].args_flat == (("items", TextArg("[]")),)


def test_graph_is_index_aligned_with_construction_order(ctx: CaptureContext) -> None:
    aws = ctx.root("pulumi_aws")
    names = ["zeta", "alpha", "mid", "beta"]
    for name in names:
        aws.s3.Bucket(name)

    graph = assemble_graph(ctx.registry)

    assert [node.label for node in graph] == names


def test_args_keep_flattener_order(ctx: CaptureContext) -> None:
    aws = ctx.root("pulumi_aws")
    vpc = aws.ec2.Vpc("vpc")
    aws.ec2.Subnet(
        "subnet",
        vpc_id=vpc.id,
        cidr_block="10.0.1.0/24",
        tags={"Name": "subnet", "Tier": None},
        ports=[80, vpc.default_security_group_id],
    )

    graph = assemble_graph(ctx.registry)

    assert graph[1].args_flat == (
        ("vpc_id", LinkArg(prop="id", source=0)),
        ("cidr_block", TextArg('"10.0.1.0/24"')),
        ("tags.Name", TextArg('"subnet"')),
        ("tags.Tier", TextArg("null")),
        ("ports.0", TextArg("80")),
        ("ports.1", LinkArg(prop="default_security_group_id", source=0)),
    )


def test_every_link_is_in_range(ctx: CaptureContext) -> None:
    graph = _scenario_graph(ctx)

    links = list(iter_links(graph))

    assert links == [(1, "bucketArn", LinkArg(prop="arn", source=0))]
    assert all(0 <= link.source < len(graph) for _, _, link in links)


def test_out_of_range_link_is_a_consistency_fault() -> None:
    graph = [GraphNode("pulumi_aws.s3.Bucket", "b", (("x", LinkArg(prop="id", source=3)),))]

    with pytest.raises(GraphConsistencyError, match="E_LINK_OUT_OF_RANGE"):
        check_links(graph)


def test_assembly_rejects_registry_with_dangling_link() -> None:
    other = CaptureContext()
    aws = other.root("pulumi_aws")
    aws.s3.Bucket("a")
    aws.s3.Bucket("b")
    foreign_arn = aws.s3.Bucket("c").arn

    nodes = [CapturedNode(("pulumi_aws", "s3", "Bucket"), "only", {"arn": foreign_arn})]

    with pytest.raises(GraphConsistencyError):
        assemble_graph(nodes)


def test_assembly_is_deterministic(ctx: CaptureContext) -> None:
    first = graph_to_json(_scenario_graph(ctx))
    second = graph_to_json(assemble_graph(ctx.registry))

    assert first == second


def test_serialized_shape(ctx: CaptureContext) -> None:
    data = json.loads(graph_to_json(_scenario_graph(ctx)))

    assert data[0] == {"pulumiClass": "pulumi_aws.s3.Bucket", "label": "bucket", "argsFlat": []}
    assert data[1] == {
        "pulumiClass": "pulumi_aws.sqs.Queue",
        "label": "queue",
        "argsFlat": [["bucketArn", {"type": "link", "prop": "arn", "source": 0}]],
    }
    assert list(data[2]) == ["pulumiClass", "label", "argsFlat"]


def test_graph_from_data_accepts_serialized_graph(ctx: CaptureContext) -> None:
    graph = _scenario_graph(ctx)

    assert graph_from_data(json.loads(graph_to_json(graph))) == graph


@pytest.mark.parametrize(
    "data",
    [
        {"not": "a list"},
        ["not an object"],
        [{"pulumiClass": "x", "label": "y", "argsFlat": [["k"]]}],
        [{"pulumiClass": "x", "label": "y", "argsFlat": [["k", {"type": "blob"}]]}],
        [{"pulumiClass": "x", "label": "y", "argsFlat": [["k", {"type": "link", "prop": "p", "source": True}]]}],
    ],
)
def test_graph_from_data_rejects_malformed_input(data) -> None:
    with pytest.raises(ValueError, match="E_GRAPH_MALFORMED"):
        graph_from_data(data)


def test_graph_from_data_rejects_dangling_links() -> None:
    data = [{"pulumiClass": "x", "label": "y", "argsFlat": [["k", {"type": "link", "prop": "", "source": 5}]]}]

    with pytest.raises(GraphConsistencyError):
        graph_from_data(data)
