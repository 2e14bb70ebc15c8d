"""Deterministic subnet allocation inside a /16 VPC block."""

import ipaddress

from infra.errors import AllocationError

SUBNET_PREFIX = 24


def allocate(base_cidr: str, zone_count: int) -> tuple[list[str], list[str]]:
    """Split a /16 into one public and one private /24 per availability zone.

    Zone ``i`` gets third octet ``2*i`` for its public block and ``2*i + 1``
    for its private block, so a zone keeps its pair of blocks for a given
    zone count.

    Raises:
        AllocationError: if the base is not an IPv4 /16, ``zone_count`` is
            zero or the third octet would run past 255.
    """
    try:
        network = ipaddress.ip_network(base_cidr, strict=True)
    except ValueError as e:
        raise AllocationError(f"Invalid base CIDR '{base_cidr}': {e}") from e

    if network.version != 4 or network.prefixlen != 16:
        raise AllocationError(f"Base CIDR must be an IPv4 /16, got '{base_cidr}'")
    if zone_count < 1:
        raise AllocationError("At least one availability zone is required")
    if 2 * zone_count > 255:
        raise AllocationError(
            f"{zone_count} zones need {2 * zone_count} /24 blocks, "
            f"'{base_cidr}' only has room for {255 // 2} zones"
        )

    first, second = network.network_address.packed[:2]

    def block(third: int) -> str:
        return f"{first}.{second}.{third}.0/{SUBNET_PREFIX}"

    public_blocks = [block(2 * i) for i in range(zone_count)]
    private_blocks = [block(2 * i + 1) for i in range(zone_count)]
    return public_blocks, private_blocks
