"""
Subnet Allocator

Finds the first address block not reserved by an existing app stack.

The reserved set is rebuilt from a fresh stack listing on every call and no
lock is taken, so two concurrent callers can pick the same block. The remote
service's acceptance of the subsequent create request is the commit point;
see AppStackService for the retry that resolves such collisions.
"""

from collections.abc import Iterable, Sequence

import structlog

from ..constants import DEFAULT_BASE_NETWORK, DEFAULT_CANDIDATE_PREFIX
from ..core.cidr import AddressBlock, parse_block
from ..core.cloudformation import RemoteStackService
from ..core.exceptions import ExhaustedError, InvalidArgumentError


def candidate_blocks(
    base: str | AddressBlock, prefix: int = DEFAULT_CANDIDATE_PREFIX
) -> list[AddressBlock]:
    """Candidate blocks of a base network in ascending order.

    The first and last blocks of the base are never handed out, so
    ``10.0.0.0/16`` yields ``10.0.1.0/24`` through ``10.0.254.0/24``.

    Raises:
        InvalidArgumentError: If base is malformed or prefix is shorter than the base prefix
    """
    network = parse_block(base)
    if not network.prefixlen <= prefix <= network.max_prefixlen:
        raise InvalidArgumentError(
            f"Candidate prefix /{prefix} does not fit inside {network}"
        )
    blocks = list(network.subnets(new_prefix=prefix))
    return blocks[1:-1]


def first_available(
    candidates: Sequence[AddressBlock], used: Iterable[AddressBlock]
) -> AddressBlock:
    """Lowest candidate that overlaps none of the used blocks.

    Raises:
        ExhaustedError: If every candidate is used
    """
    used_blocks = list(used)
    for candidate in sorted(candidates):
        if not any(candidate.overlaps(block) for block in used_blocks):
            return candidate
    raise ExhaustedError(f"No available subnets: all {len(candidates)} candidates are reserved")


class SubnetAllocator:
    """Allocate app subnets from a base network against the live stack listing."""

    def __init__(
        self,
        stack_service: RemoteStackService,
        base_network: str | AddressBlock = DEFAULT_BASE_NETWORK,
        candidate_prefix: int = DEFAULT_CANDIDATE_PREFIX,
    ):
        self.stack_service = stack_service
        self.base_network = parse_block(base_network)
        self.candidate_prefix = candidate_prefix
        self.logger = structlog.get_logger()

    async def used_subnets(self) -> list[AddressBlock]:
        """Subnets reserved by app stacks, read from a fresh listing."""
        stacks = await self.stack_service.list_stacks()

        used: list[AddressBlock] = []
        for stack in stacks:
            if not stack.is_app:
                continue
            reserved = stack.reserved_subnet
            if not reserved:
                continue
            try:
                used.append(parse_block(reserved))
            except InvalidArgumentError:
                self.logger.warning(
                    "Ignoring malformed subnet tag", stack_name=stack.name, subnet=reserved
                )
        return used

    async def next_available(self, base_network: str | AddressBlock | None = None) -> AddressBlock:
        """Return the first free candidate block.

        Args:
            base_network: Network to allocate from (defaults to the allocator's base)

        Raises:
            ExhaustedError: If every candidate is reserved
            RemoteTimeoutError: If the stack listing times out
            RemoteServiceError: If the stack listing is rejected
        """
        network = parse_block(base_network) if base_network is not None else self.base_network
        candidates = candidate_blocks(network, self.candidate_prefix)
        used = await self.used_subnets()

        try:
            subnet = first_available(candidates, used)
        except ExhaustedError:
            self.logger.error(
                "Subnet space exhausted", base_network=str(network), reserved=len(used)
            )
            raise

        self.logger.info(
            "Selected subnet", subnet=str(subnet), base_network=str(network), reserved=len(used)
        )
        return subnet
