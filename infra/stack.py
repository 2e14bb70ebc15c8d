"""Assemble the whole environment graph."""

from dataclasses import dataclass
from typing import Any, Callable

from infra.components.eks import EksCluster, build_cluster
from infra.components.flux import FluxBootstrap, build_gitops
from infra.components.networking import NetworkTopology, build_networking
from infra.config import EnvironmentConfig
from infra.graph import ResourceGraph, ResourceHandle
from infra.providers import declare_aws_provider


@dataclass
class PlatformStack:
    graph: ResourceGraph
    aws_provider: ResourceHandle
    networking: NetworkTopology
    kubernetes: EksCluster
    flux: FluxBootstrap


def build_stack(
    stack: str,
    environment: str,
    config: EnvironmentConfig,
    resolve_secret: Callable[[str], Any],
) -> PlatformStack:
    """Build and validate the graph for one stack.

    Resource names are prefixed with the stack name, so rebuilding a stack
    yields the same names and Pulumi updates resources in place.
    """
    graph = ResourceGraph()

    aws_provider = declare_aws_provider(graph, stack, environment, config.aws)

    # 1. Networking (VPC, subnets, NAT gateways, routing)
    networking = build_networking(graph, f"{stack}-networking", config.vpc, aws_provider)

    # 2. EKS cluster and its Kubernetes provider
    kubernetes = build_cluster(graph, f"{stack}-k8s", config.eks, networking, aws_provider)

    # 3. Flux and the applications it reconciles
    flux = build_gitops(graph, f"{stack}-flux", kubernetes, config.gitops, resolve_secret)

    graph.validate()
    return PlatformStack(
        graph=graph,
        aws_provider=aws_provider,
        networking=networking,
        kubernetes=kubernetes,
        flux=flux,
    )
