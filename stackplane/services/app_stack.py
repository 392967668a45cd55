"""
App Stack Service

Creates network-bearing app stacks: allocate a subnet, render the app
template around it, submit the create request tagged with the subnet.

Allocation reads are not authoritative. When the remote service rejects a
create (for example because a concurrent caller reserved the same subnet in
the meantime) or a remote call times out, the whole sequence is re-run with a
fresh listing, up to ``max_attempts`` times.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from ..constants import APP_STACK_TYPE, TAG_SUBNET, TAG_TYPE
from ..core.cidr import AddressBlock, divide_subnet
from ..core.exceptions import RemoteServiceError
from ..models.stack import StackDescriptor, StackHandle
from .provisioner import StackProvisioner
from .subnet_allocator import SubnetAllocator

# Rejections, subnet conflicts and timeouts of list and create calls
RETRYABLE_ERRORS = (RemoteServiceError,)


@dataclass
class AppStackResult:
    """Outcome of a successful app stack creation."""

    handle: StackHandle
    subnet: AddressBlock
    attempts: int


class AppStackService:
    """Allocate-then-provision for app stacks with bounded optimistic retry."""

    def __init__(
        self,
        allocator: SubnetAllocator,
        provisioner: StackProvisioner,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
        max_delay: float = 5.0,
        backoff_factor: float = 2.0,
        subnet_divisions: int = 3,
    ):
        """Initialize the app stack service.

        Args:
            allocator: Subnet allocator reading the live stack listing
            provisioner: Provisioner rendering and submitting requests
            max_attempts: Total allocate-then-provision attempts before giving up
            retry_delay: Delay before the first retry (seconds)
            max_delay: Maximum delay between retries (seconds)
            backoff_factor: Exponential backoff multiplier
            subnet_divisions: Sub-blocks carved out of each allocation for the template
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.allocator = allocator
        self.provisioner = provisioner
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.subnet_divisions = subnet_divisions
        self.logger = structlog.get_logger().bind(component="app_stack")

    async def create_app(
        self,
        name: str,
        template_id: str = "app",
        parameters: Mapping[str, str] | None = None,
        tags: Mapping[str, str] | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> AppStackResult:
        """Create an app stack on a freshly allocated subnet.

        The template sees ``name``, ``subnet`` (canonical CIDR string) and
        ``subnets`` (its sub-blocks) in addition to ``context``.

        Raises:
            ExhaustedError: If no subnet is free
            TemplateRenderError: If the template fails to render
            ProvisioningError: If every attempt was rejected by the remote service
            RemoteTimeoutError: If the last attempt timed out
            RemoteServiceError: If the last stack listing was rejected
        """
        delay = self.retry_delay
        attempt = 0

        while True:
            attempt += 1
            log = self.logger.bind(stack_name=name, attempt=attempt)

            try:
                subnet = await self.allocator.next_available()
                request = await self.provisioner.build_request(
                    name,
                    template_id,
                    context=self._template_context(name, subnet, context),
                    parameters=parameters,
                    tags=self._reserved_tags(subnet, tags),
                )
                handle = await self.provisioner.submit(request)
            except RETRYABLE_ERRORS as e:
                if attempt >= self.max_attempts:
                    log.error(
                        "App stack creation failed",
                        error=str(e),
                        error_type=type(e).__name__,
                        max_attempts=self.max_attempts,
                    )
                    raise
                log.warning(
                    "App stack attempt failed, retrying with a fresh allocation",
                    error=str(e),
                    error_type=type(e).__name__,
                    retry_in=delay,
                )
                await asyncio.sleep(delay)
                delay = min(delay * self.backoff_factor, self.max_delay)
                continue

            log.info("App stack created", subnet=str(subnet), stack_id=handle.stack_id)
            return AppStackResult(handle=handle, subnet=subnet, attempts=attempt)

    async def list_apps(self) -> list[StackDescriptor]:
        """App-typed stacks from a fresh listing."""
        stacks = await self.allocator.stack_service.list_stacks()
        return [stack for stack in stacks if stack.is_app]

    def _template_context(
        self, name: str, subnet: AddressBlock, context: Mapping[str, Any] | None
    ) -> dict[str, Any]:
        return {
            **(context or {}),
            "name": name,
            "subnet": str(subnet),
            "subnets": [str(block) for block in divide_subnet(subnet, self.subnet_divisions)],
        }

    @staticmethod
    def _reserved_tags(subnet: AddressBlock, tags: Mapping[str, str] | None) -> dict[str, str]:
        # Reserved keys always win over caller-supplied tags
        return {**(tags or {}), TAG_TYPE: APP_STACK_TYPE, TAG_SUBNET: str(subnet)}
