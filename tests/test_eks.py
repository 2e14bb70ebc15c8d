"""Tests for the cluster provisioner."""

from __future__ import annotations

import json
import logging

from infra import kinds
from infra.components.eks import build_cluster
from infra.graph import ResourceGraph

from tests.conftest import make_cluster_config, make_topology


def test_cluster_is_bound_to_vpc_and_public_subnets(graph: ResourceGraph):
    topology = make_topology(graph)
    cluster = build_cluster(
        graph, "dev-k8s", make_cluster_config(), topology, graph.handle("dev-aws")
    )

    spec = graph.get(cluster.cluster.name).spec
    assert cluster.cluster.name == "dev-k8s-cluster"
    assert spec["vpc_id"] == topology.vpc.ref()
    assert spec["subnet_ids"] == topology.public_subnet_ids
    assert spec["version"] == "1.31"
    assert (spec["desired_capacity"], spec["min_size"], spec["max_size"]) == (2, 1, 4)


def test_cluster_waits_for_all_routing(graph: ResourceGraph):
    topology = make_topology(graph)
    cluster = build_cluster(
        graph, "dev-k8s", make_cluster_config(), topology, graph.handle("dev-aws")
    )

    node = graph.get(cluster.cluster.name)
    assert set(node.depends_on) == {h.name for h in topology.routing()}
    assert len(node.depends_on) == 4 + 6
    assert node.provider == "dev-aws"


def test_only_first_instance_type_is_used(graph: ResourceGraph, caplog):
    topology = make_topology(graph)
    config = make_cluster_config(["m5.large", "m5.xlarge", "c5.large"])

    with caplog.at_level(logging.WARNING, logger="infra.components.eks"):
        cluster = build_cluster(graph, "dev-k8s", config, topology, graph.handle("dev-aws"))

    assert cluster.instance_type == "m5.large"
    assert graph.get(cluster.cluster.name).spec["instance_type"] == "m5.large"
    assert "m5.xlarge, c5.large" in caplog.text


def test_kubernetes_provider_uses_cluster_kubeconfig(graph: ResourceGraph):
    topology = make_topology(graph)
    cluster = build_cluster(
        graph, "dev-k8s", make_cluster_config(), topology, graph.handle("dev-aws")
    )

    provider = graph.get(cluster.k8s_provider.name)
    assert provider.kind == kinds.K8S_PROVIDER
    assert provider.name == "dev-k8s-k8s-provider"
    kubeconfig = provider.spec["kubeconfig"]
    assert kubeconfig.name == cluster.cluster.name
    assert kubeconfig.attr == "kubeconfig"
    assert kubeconfig.transform is json.dumps
    assert graph.children("dev-k8s") == [cluster.cluster.name, cluster.k8s_provider.name]
