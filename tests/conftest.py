"""Shared factories for graph-building tests."""

from __future__ import annotations

import pytest

from infra.components.eks import EksCluster, build_cluster
from infra.components.networking import NetworkTopology, build_networking
from infra.config import (
    AwsConfig,
    ClusterConfig,
    FluxConfig,
    NatGatewayStrategy,
    NetworkConfig,
    NodeGroupConfig,
    NodeGroups,
)
from infra.graph import ResourceGraph, ResourceHandle
from infra.providers import declare_aws_provider

ZONES = ["us-east-1a", "us-east-1b", "us-east-1c"]


def make_network_config(
    zones: list[str] | None = None,
    cidr_block: str = "10.0.0.0/16",
    strategy: NatGatewayStrategy = NatGatewayStrategy.ONE_PER_AZ,
) -> NetworkConfig:
    return NetworkConfig(
        cidr_block=cidr_block,
        availability_zones=zones or ZONES,
        nat_gateway_strategy=strategy,
    )


def make_cluster_config(instance_types: list[str] | None = None) -> ClusterConfig:
    return ClusterConfig(
        version="1.31",
        node_groups=NodeGroups(
            workers=NodeGroupConfig(
                instance_types=instance_types or ["m5.large"],
                min_size=1,
                max_size=4,
                desired_size=2,
            )
        ),
    )


def make_provider(graph: ResourceGraph, stack: str = "dev") -> ResourceHandle:
    return declare_aws_provider(graph, stack, stack, AwsConfig(region="us-east-1"))


def make_topology(
    graph: ResourceGraph,
    config: NetworkConfig | None = None,
) -> NetworkTopology:
    provider = make_provider(graph)
    return build_networking(graph, "dev-networking", config or make_network_config(), provider)


def make_cluster(graph: ResourceGraph) -> EksCluster:
    topology = make_topology(graph)
    provider = graph.handle("dev-aws")
    return build_cluster(graph, "dev-k8s", make_cluster_config(), topology, provider)


@pytest.fixture
def graph() -> ResourceGraph:
    return ResourceGraph()


@pytest.fixture
def cluster(graph: ResourceGraph) -> EksCluster:
    return make_cluster(graph)


@pytest.fixture
def flux_config() -> FluxConfig:
    return FluxConfig()


def assert_topological(graph: ResourceGraph) -> None:
    order = graph.topological_order()
    position = {name: i for i, name in enumerate(order)}
    assert len(order) == len(graph)
    for edge in graph.edges:
        assert position[edge.producer] < position[edge.consumer], edge
