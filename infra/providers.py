"""AWS and Kubernetes provider declarations."""

import json

from infra import kinds
from infra.config import AwsConfig
from infra.graph import ResourceGraph, ResourceHandle


def declare_aws_provider(
    graph: ResourceGraph,
    stack: str,
    environment: str,
    config: AwsConfig,
) -> ResourceHandle:
    """Declare the AWS provider for the environment's account and region.

    The assume-role session name is derived from the stack only, so the
    provider's inputs stay identical between runs.
    """
    spec: dict = {
        "region": config.region,
        "default_tags": {
            "tags": {
                "ManagedBy": "Pulumi",
                "Environment": environment,
                "Stack": stack,
            },
        },
    }
    if config.profile:
        spec["profile"] = config.profile
    if config.role_arn:
        spec["assume_roles"] = [
            {
                "role_arn": config.role_arn,
                "session_name": f"pulumi-{stack}",
            }
        ]

    return graph.add(f"{stack}-aws", kinds.AWS_PROVIDER, spec, owner=stack)


def declare_k8s_provider(
    graph: ResourceGraph,
    name: str,
    cluster: ResourceHandle,
    owner: str | None = None,
) -> ResourceHandle:
    """Declare a Kubernetes provider scoped to an EKS cluster.

    Args:
        name: Provider name prefix
        cluster: EKS cluster whose kubeconfig the provider uses
        owner: Component recorded as the provider's owner
    """
    return graph.add(
        f"{name}-k8s-provider",
        kinds.K8S_PROVIDER,
        {"kubeconfig": cluster.ref("kubeconfig", json.dumps)},
        depends_on=[cluster],
        owner=owner,
    )
