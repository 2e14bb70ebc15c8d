"""Tests for the resource graph."""

from __future__ import annotations

import pytest

from infra.errors import DuplicateResourceError, GraphError, UnresolvedReferenceError
from infra.graph import DependencyEdge, Ref, ResourceGraph, ResourceNode, iter_refs


def test_refs_explicit_dependencies_and_provider_become_edges(graph: ResourceGraph):
    provider = graph.add("aws", "pulumi:providers:aws", {})
    vpc = graph.add("vpc", "aws:ec2/vpc:Vpc", {}, provider=provider)
    igw = graph.add("igw", "aws:ec2/internetGateway:InternetGateway", {"vpc_id": vpc.ref()})
    graph.add("rt", "aws:ec2/routeTable:RouteTable", {"vpc_id": vpc.ref()}, depends_on=[igw])

    assert set(graph.edges) == {
        DependencyEdge("vpc", "aws"),
        DependencyEdge("igw", "vpc"),
        DependencyEdge("rt", "igw"),
        DependencyEdge("rt", "vpc"),
    }


def test_repeated_reference_is_a_single_edge(graph: ResourceGraph):
    vpc = graph.add("vpc", "aws:ec2/vpc:Vpc", {})
    graph.add(
        "subnet",
        "aws:ec2/subnet:Subnet",
        {"vpc_id": vpc.ref(), "tags": {"vpc": vpc.ref()}},
        depends_on=[vpc],
    )

    assert graph.edges == [DependencyEdge("subnet", "vpc")]


def test_duplicate_name_is_rejected(graph: ResourceGraph):
    graph.add("vpc", "aws:ec2/vpc:Vpc", {})

    with pytest.raises(DuplicateResourceError, match="vpc"):
        graph.add("vpc", "aws:ec2/vpc:Vpc", {})


def test_reference_to_undeclared_resource_is_rejected(graph: ResourceGraph):
    with pytest.raises(UnresolvedReferenceError) as exc_info:
        graph.add("igw", "aws:ec2/internetGateway:InternetGateway", {"vpc_id": Ref("vpc")})

    assert exc_info.value.consumer == "igw"
    assert exc_info.value.reference == "vpc"
    assert "igw" not in graph


def test_topological_order_puts_producers_first_and_breaks_ties_by_declaration(graph: ResourceGraph):
    a = graph.add("a", "test:A", {})
    graph.add("b", "test:B", {})
    c = graph.add("c", "test:C", {"x": a.ref()})
    graph.add("d", "test:D", {"x": c.ref()}, depends_on=[a])

    assert graph.topological_order() == ["a", "b", "c", "d"]


def test_cycle_is_reported(graph: ResourceGraph):
    graph.nodes["a"] = ResourceNode("a", "test:A", {"x": Ref("b")})
    graph.nodes["b"] = ResourceNode("b", "test:B", {"x": Ref("a")})

    with pytest.raises(GraphError, match="cycle"):
        graph.validate()


def test_validate_catches_nodes_inserted_without_add(graph: ResourceGraph):
    graph.nodes["a"] = ResourceNode("a", "test:A", {}, depends_on=("ghost",))

    with pytest.raises(UnresolvedReferenceError):
        graph.validate()


def test_ownership_map_lists_children_in_declaration_order(graph: ResourceGraph):
    graph.add("net-vpc", "aws:ec2/vpc:Vpc", {}, owner="net")
    graph.add("net-igw", "aws:ec2/internetGateway:InternetGateway", {}, owner="net")
    graph.add("k8s-cluster", "eks:index:Cluster", {}, owner="k8s")

    assert graph.children("net") == ["net-vpc", "net-igw"]
    assert graph.children("k8s") == ["k8s-cluster"]
    assert graph.children("missing") == []


def test_iter_refs_walks_nested_values():
    spec = {"a": Ref("x"), "b": [{"c": Ref("y", "arn")}, "plain"], "d": (Ref("z"),)}

    assert [r.name for r in iter_refs(spec)] == ["x", "y", "z"]
