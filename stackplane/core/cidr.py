"""Address block parsing and division.

An address block is an ``ipaddress.IPv4Network``; its canonical string form
(``str(block)``, e.g. ``10.0.3.0/24``) is what gets written into stack tags.
"""

import ipaddress

from ..constants import MAX_SUBNET_DIVISIONS, SUBNET_DIVISION_BITS
from .exceptions import InvalidArgumentError

AddressBlock = ipaddress.IPv4Network


def parse_block(value: str | AddressBlock) -> AddressBlock:
    """Parse a canonical CIDR string into an address block.

    Only the ``a.b.c.d/n`` form is accepted: bare addresses, netmask
    notation and padded strings are rejected.

    Raises:
        InvalidArgumentError: If the value is not a canonical IPv4 network
    """
    if isinstance(value, ipaddress.IPv4Network):
        return value

    text = str(value)
    try:
        block = ipaddress.IPv4Network(text, strict=True)
    except (ipaddress.AddressValueError, ipaddress.NetmaskValueError, ValueError) as e:
        raise InvalidArgumentError(f"Invalid address block '{value}': {e}") from e

    if str(block) != text:
        raise InvalidArgumentError(
            f"Invalid address block '{value}': not in canonical form (expected '{block}')"
        )
    return block


def divide_subnet(base: str | AddressBlock, count: int) -> list[AddressBlock]:
    """Split a block into ``count`` equal, disjoint sub-blocks.

    Every sub-block is one eighth of the base block, and the i-th one starts
    ``i`` sub-block sizes past the base address, so ``10.0.0.0/24`` divided
    in four yields ``.0/27``, ``.32/27``, ``.64/27`` and ``.96/27``.

    Args:
        base: Block to divide
        count: Number of sub-blocks, at most MAX_SUBNET_DIVISIONS

    Returns:
        Sub-blocks in ascending order; empty when count is zero

    Raises:
        InvalidArgumentError: If count is out of range or base cannot be divided
    """
    if count < 0:
        raise InvalidArgumentError(f"Division count must not be negative, got {count}")
    if count > MAX_SUBNET_DIVISIONS:
        raise InvalidArgumentError(
            f"Too many divisions: {count} (maximum is {MAX_SUBNET_DIVISIONS})"
        )

    block = parse_block(base)
    if count == 0:
        return []

    new_prefix = block.prefixlen + SUBNET_DIVISION_BITS
    if new_prefix > block.max_prefixlen:
        raise InvalidArgumentError(f"Address block {block} is too small to divide")

    size = 2 ** (block.max_prefixlen - new_prefix)
    base_address = int(block.network_address)
    return [
        ipaddress.IPv4Network((base_address + i * size, new_prefix)) for i in range(count)
    ]
