"""EKS cluster for an environment."""

import logging
from dataclasses import dataclass

from infra import kinds
from infra.components.networking import NetworkTopology
from infra.config import ClusterConfig
from infra.graph import ResourceGraph, ResourceHandle
from infra.providers import declare_k8s_provider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EksCluster:
    """Declared cluster plus the Kubernetes provider scoped to it."""

    cluster: ResourceHandle
    k8s_provider: ResourceHandle
    instance_type: str

    @property
    def cluster_name(self):
        return self.cluster.ref("eks_cluster.name")

    @property
    def cluster_endpoint(self):
        return self.cluster.ref("eks_cluster.endpoint")

    @property
    def kubeconfig(self):
        return self.cluster.ref("kubeconfig")


def build_cluster(
    graph: ResourceGraph,
    name: str,
    config: ClusterConfig,
    topology: NetworkTopology,
    provider: ResourceHandle,
) -> EksCluster:
    """Declare an EKS cluster in the topology's VPC and public subnets.

    Creates:
    - EKS cluster with the configured Kubernetes version
    - Default node group sized from the ``workers`` node group
    - Kubernetes provider built from the cluster kubeconfig

    The cluster waits for every route and route table association, so
    nodes never boot into a subnet without a default route.
    """
    workers = config.node_groups.workers
    # Only one instance type is supported by the default node group.
    instance_type = workers.instance_types[0]
    if len(workers.instance_types) > 1:
        logger.warning(
            "Cluster %s uses instance type %s; ignoring %s",
            name,
            instance_type,
            ", ".join(workers.instance_types[1:]),
        )

    cluster = graph.add(
        f"{name}-cluster",
        kinds.EKS_CLUSTER,
        {
            "vpc_id": topology.vpc.ref(),
            "subnet_ids": topology.public_subnet_ids,
            "version": config.version,
            "instance_type": instance_type,
            "desired_capacity": workers.desired_size,
            "min_size": workers.min_size,
            "max_size": workers.max_size,
            "tags": {"Name": f"{name}-cluster"},
        },
        depends_on=topology.routing(),
        provider=provider,
        owner=name,
    )

    k8s_provider = declare_k8s_provider(graph, name, cluster, owner=name)

    logger.info(
        "Cluster %s: version %s, %s x%d (%d-%d)",
        name,
        config.version,
        instance_type,
        workers.desired_size,
        workers.min_size,
        workers.max_size,
    )
    return EksCluster(cluster=cluster, k8s_provider=k8s_provider, instance_type=instance_type)
