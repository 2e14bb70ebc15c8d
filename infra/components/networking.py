"""VPC and networking topology for an environment."""

import logging
from dataclasses import dataclass, field
from enum import Enum

from infra import kinds
from infra.cidr import allocate
from infra.config import NatGatewayStrategy, NetworkConfig
from infra.graph import ResourceGraph, ResourceHandle

logger = logging.getLogger(__name__)

DEFAULT_ROUTE = "0.0.0.0/0"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"


@dataclass(frozen=True)
class Subnet:
    cidr_block: str
    availability_zone: str
    visibility: Visibility
    resource: ResourceHandle


@dataclass(frozen=True)
class RouteTable:
    scope: Visibility
    resource: ResourceHandle
    default_route: ResourceHandle
    # Gateway the default route points at
    target: ResourceHandle
    associated_subnets: tuple[Subnet, ...]
    associations: tuple[ResourceHandle, ...]


@dataclass
class NetworkTopology:
    """Handles of every resource the networking builder declared."""

    vpc_cidr: str
    availability_zones: list[str]
    vpc: ResourceHandle
    internet_gateway: ResourceHandle
    public_subnets: list[Subnet] = field(default_factory=list)
    private_subnets: list[Subnet] = field(default_factory=list)
    nat_eips: list[ResourceHandle] = field(default_factory=list)
    nat_gateways: list[ResourceHandle] = field(default_factory=list)
    public_route_table: RouteTable | None = None
    private_route_tables: list[RouteTable] = field(default_factory=list)

    @property
    def public_subnet_ids(self) -> list:
        return [s.resource.ref() for s in self.public_subnets]

    @property
    def private_subnet_ids(self) -> list:
        return [s.resource.ref() for s in self.private_subnets]

    def routing(self) -> list[ResourceHandle]:
        """Routes and associations; the network is usable once these exist."""
        tables = [self.public_route_table, *self.private_route_tables]
        handles: list[ResourceHandle] = []
        for table in tables:
            if table is None:
                continue
            handles.append(table.default_route)
            handles.extend(table.associations)
        return handles


def build_networking(
    graph: ResourceGraph,
    name: str,
    config: NetworkConfig,
    provider: ResourceHandle,
) -> NetworkTopology:
    """Declare the VPC, subnets, NAT gateways and routing.

    Creates:
    - VPC with the configured CIDR
    - Internet gateway
    - One public and one private /24 subnet per availability zone
    - NAT gateways (one per AZ, or a single shared one)
    - A shared public route table and one private route table per AZ

    Subnet blocks are allocated before anything is declared, so an
    allocation failure leaves the graph untouched.
    """
    zones = list(config.availability_zones)
    public_blocks, private_blocks = allocate(config.cidr_block, len(zones))

    builder = _NetworkBuilder(graph, name, provider)

    vpc = builder.add(
        "vpc",
        kinds.VPC,
        {
            "cidr_block": config.cidr_block,
            "enable_dns_hostnames": True,
            "enable_dns_support": True,
            "tags": {"Name": f"{name}-vpc", "Type": "networking"},
        },
    )

    igw = builder.add(
        "igw",
        kinds.INTERNET_GATEWAY,
        {"vpc_id": vpc.ref(), "tags": {"Name": f"{name}-igw"}},
    )

    topology = NetworkTopology(
        vpc_cidr=config.cidr_block,
        availability_zones=zones,
        vpc=vpc,
        internet_gateway=igw,
    )

    for index, (az, cidr) in enumerate(zip(zones, public_blocks)):
        topology.public_subnets.append(
            builder.subnet(vpc, index, az, cidr, Visibility.PUBLIC)
        )
    for index, (az, cidr) in enumerate(zip(zones, private_blocks)):
        topology.private_subnets.append(
            builder.subnet(vpc, index, az, cidr, Visibility.PRIVATE)
        )

    if config.nat_gateway_strategy == NatGatewayStrategy.SINGLE:
        nat_subnets = topology.public_subnets[:1]
    else:
        nat_subnets = topology.public_subnets
    for index, subnet in enumerate(nat_subnets):
        eip, nat = builder.nat_gateway(index, subnet, igw)
        topology.nat_eips.append(eip)
        topology.nat_gateways.append(nat)

    topology.public_route_table = builder.public_route_table(vpc, igw, topology.public_subnets)

    for index, subnet in enumerate(topology.private_subnets):
        nat = topology.nat_gateways[index % len(topology.nat_gateways)]
        topology.private_route_tables.append(
            builder.private_route_table(vpc, index, nat, subnet)
        )

    logger.info(
        "Network %s: %d zones, %d NAT gateways (%s)",
        name,
        len(zones),
        len(topology.nat_gateways),
        config.nat_gateway_strategy.value,
    )
    return topology


class _NetworkBuilder:
    def __init__(self, graph: ResourceGraph, name: str, provider: ResourceHandle):
        self.graph = graph
        self.name = name
        self.provider = provider

    def add(
        self,
        suffix: str,
        kind: str,
        spec: dict,
        depends_on: list[ResourceHandle] | None = None,
    ) -> ResourceHandle:
        return self.graph.add(
            f"{self.name}-{suffix}",
            kind,
            spec,
            depends_on=depends_on,
            provider=self.provider,
            owner=self.name,
        )

    def subnet(
        self,
        vpc: ResourceHandle,
        index: int,
        az: str,
        cidr: str,
        visibility: Visibility,
    ) -> Subnet:
        subnet_name = f"{self.name}-{visibility.value}-{index}"
        resource = self.add(
            f"{visibility.value}-{index}",
            kinds.SUBNET,
            {
                "vpc_id": vpc.ref(),
                "cidr_block": cidr,
                "availability_zone": az,
                "map_public_ip_on_launch": visibility == Visibility.PUBLIC,
                "tags": {"Name": subnet_name, "Type": visibility.value},
            },
        )
        return Subnet(cidr, az, visibility, resource)

    def nat_gateway(
        self,
        index: int,
        subnet: Subnet,
        igw: ResourceHandle,
    ) -> tuple[ResourceHandle, ResourceHandle]:
        eip = self.add(
            f"nat-eip-{index}",
            kinds.EIP,
            {"domain": "vpc", "tags": {"Name": f"{self.name}-nat-eip-{index}"}},
        )
        # A NAT gateway cannot route until the VPC has an internet gateway.
        nat = self.add(
            f"nat-{index}",
            kinds.NAT_GATEWAY,
            {
                "allocation_id": eip.ref(),
                "subnet_id": subnet.resource.ref(),
                "tags": {"Name": f"{self.name}-nat-{index}"},
            },
            depends_on=[igw],
        )
        return eip, nat

    def public_route_table(
        self,
        vpc: ResourceHandle,
        igw: ResourceHandle,
        subnets: list[Subnet],
    ) -> RouteTable:
        table = self.add(
            "public-rt",
            kinds.ROUTE_TABLE,
            {
                "vpc_id": vpc.ref(),
                "tags": {"Name": f"{self.name}-public-rt", "Type": "public"},
            },
            depends_on=[igw],
        )
        route = self.add(
            "public-route",
            kinds.ROUTE,
            {
                "route_table_id": table.ref(),
                "destination_cidr_block": DEFAULT_ROUTE,
                "gateway_id": igw.ref(),
            },
        )
        associations = tuple(
            self.add(
                f"public-rta-{index}",
                kinds.ROUTE_TABLE_ASSOCIATION,
                {"subnet_id": subnet.resource.ref(), "route_table_id": table.ref()},
            )
            for index, subnet in enumerate(subnets)
        )
        return RouteTable(
            scope=Visibility.PUBLIC,
            resource=table,
            default_route=route,
            target=igw,
            associated_subnets=tuple(subnets),
            associations=associations,
        )

    def private_route_table(
        self,
        vpc: ResourceHandle,
        index: int,
        nat: ResourceHandle,
        subnet: Subnet,
    ) -> RouteTable:
        table = self.add(
            f"private-rt-{index}",
            kinds.ROUTE_TABLE,
            {
                "vpc_id": vpc.ref(),
                "tags": {"Name": f"{self.name}-private-rt-{index}", "Type": "private"},
            },
            depends_on=[nat],
        )
        route = self.add(
            f"private-route-{index}",
            kinds.ROUTE,
            {
                "route_table_id": table.ref(),
                "destination_cidr_block": DEFAULT_ROUTE,
                "nat_gateway_id": nat.ref(),
            },
        )
        association = self.add(
            f"private-rta-{index}",
            kinds.ROUTE_TABLE_ASSOCIATION,
            {"subnet_id": subnet.resource.ref(), "route_table_id": table.ref()},
        )
        return RouteTable(
            scope=Visibility.PRIVATE,
            resource=table,
            default_route=route,
            target=nat,
            associated_subnets=(subnet,),
            associations=(association,),
        )
