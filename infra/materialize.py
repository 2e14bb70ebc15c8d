"""Hand a resource graph to the Pulumi engine."""

import logging
from typing import Any, Callable

import pulumi
import pulumi_aws as aws
import pulumi_eks as eks
import pulumi_kubernetes as k8s

from infra import kinds
from infra.errors import MaterializationError, PlatformError
from infra.graph import Ref, ResourceGraph, ResourceNode

logger = logging.getLogger(__name__)

ResourceFactory = Callable[..., pulumi.Resource]

CONSTRUCTORS: dict[str, ResourceFactory] = {
    kinds.AWS_PROVIDER: aws.Provider,
    kinds.K8S_PROVIDER: k8s.Provider,
    kinds.VPC: aws.ec2.Vpc,
    kinds.INTERNET_GATEWAY: aws.ec2.InternetGateway,
    kinds.SUBNET: aws.ec2.Subnet,
    kinds.EIP: aws.ec2.Eip,
    kinds.NAT_GATEWAY: aws.ec2.NatGateway,
    kinds.ROUTE_TABLE: aws.ec2.RouteTable,
    kinds.ROUTE: aws.ec2.Route,
    kinds.ROUTE_TABLE_ASSOCIATION: aws.ec2.RouteTableAssociation,
    kinds.EKS_CLUSTER: eks.Cluster,
    kinds.NAMESPACE: k8s.core.v1.Namespace,
    kinds.SECRET: k8s.core.v1.Secret,
    kinds.HELM_RELEASE: k8s.helm.v3.Release,
    kinds.GIT_REPOSITORY: k8s.apiextensions.CustomResource,
    kinds.KUSTOMIZATION: k8s.apiextensions.CustomResource,
}


class Materializer:
    """Create Pulumi resources for every node, producers first.

    ``Ref`` values in a node's spec become outputs of resources created
    earlier in the walk; explicit dependencies become ``depends_on``.
    """

    def __init__(
        self,
        graph: ResourceGraph,
        constructors: dict[str, ResourceFactory] | None = None,
    ):
        self.graph = graph
        self.constructors = constructors if constructors is not None else CONSTRUCTORS
        self.resources: dict[str, pulumi.Resource] = {}

    def run(self) -> dict[str, pulumi.Resource]:
        self.graph.validate()
        order = self.graph.topological_order()

        for name in order:
            node = self.graph.get(name)
            if node.kind not in self.constructors:
                raise MaterializationError(name, f"no constructor for kind '{node.kind}'")

        for name in order:
            self.resources[name] = self._create(self.graph.get(name))

        logger.info("Registered %d resources with the engine", len(self.resources))
        return self.resources

    def _create(self, node: ResourceNode) -> pulumi.Resource:
        try:
            opts = pulumi.ResourceOptions(
                provider=self.resources[node.provider] if node.provider else None,
                depends_on=[self.resources[dep] for dep in node.depends_on],
            )
            spec = self.resolve(node.spec, consumer=node.name)
            return self.constructors[node.kind](node.name, **spec, opts=opts)
        except PlatformError:
            raise
        except Exception as e:
            raise MaterializationError(node.name, str(e)) from e

    def resolve(self, value: Any, consumer: str | None = None) -> Any:
        """Replace every ``Ref`` in ``value`` with the referenced output.

        ``consumer`` names the resource being created, for error messages.
        """
        if isinstance(value, Ref):
            return self._output(value, consumer)
        if isinstance(value, dict):
            return {k: self.resolve(v, consumer) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self.resolve(v, consumer) for v in value]
        return value

    def _output(self, ref: Ref, consumer: str | None) -> Any:
        if ref.name not in self.resources:
            raise MaterializationError(
                consumer or ref.name, f"references '{ref.name}' before it was created"
            )
        value: Any = self.resources[ref.name]
        for attr in ref.attr.split("."):
            value = getattr(value, attr)
        if ref.transform is not None:
            value = pulumi.Output.from_input(value).apply(ref.transform)
        return value
