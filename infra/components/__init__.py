"""Platform infrastructure components."""

from infra.components.eks import EksCluster, build_cluster
from infra.components.flux import FluxBootstrap, GitSource, Kustomization, build_gitops
from infra.components.networking import NetworkTopology, build_networking

__all__ = [
    "NetworkTopology",
    "build_networking",
    "EksCluster",
    "build_cluster",
    "FluxBootstrap",
    "GitSource",
    "Kustomization",
    "build_gitops",
]
