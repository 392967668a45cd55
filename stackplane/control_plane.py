"""Composition root wiring the remote service, renderer and services together."""

from typing import Any

from .core.cidr import AddressBlock
from .core.cloudformation import CloudFormationStackService, RemoteStackService
from .core.config_loader import StackPlaneConfig
from .core.logging_config import get_logger
from .core.status import StatusNormalizer
from .core.templates import Renderer, TemplateRenderer
from .models.stack import ProvisioningRequest, StackDescriptor, StackHandle
from .services.app_stack import AppStackResult, AppStackService
from .services.provisioner import StackProvisioner
from .services.subnet_allocator import SubnetAllocator


class StackPlane:
    """Control plane for app and service stacks.

    Every instance holds its own remote service, renderer and status
    normalizer; nothing is shared process-wide.
    """

    def __init__(
        self,
        config: StackPlaneConfig,
        stack_service: RemoteStackService | None = None,
        renderer: Renderer | None = None,
    ):
        self.config = config
        self.logger = get_logger()

        self.normalizer = StatusNormalizer(log_level=config.logging.unknown_status_log_level)

        self.stack_service: RemoteStackService = stack_service or CloudFormationStackService(
            region=config.remote.region,
            list_timeout=config.remote.list_timeout,
            create_timeout=config.remote.create_timeout,
        )
        self.renderer: Renderer = renderer or TemplateRenderer(config.templates.template_dir)

        self.allocator = SubnetAllocator(
            self.stack_service,
            base_network=config.network.base_network,
            candidate_prefix=config.network.candidate_prefix,
        )
        self.provisioner = StackProvisioner(
            self.stack_service, self.renderer, render_timeout=config.templates.render_timeout
        )
        self.app_stacks = AppStackService(
            self.allocator,
            self.provisioner,
            max_attempts=config.provisioning.max_attempts,
            retry_delay=config.provisioning.retry_delay,
            max_delay=config.provisioning.max_delay,
            backoff_factor=config.provisioning.backoff_factor,
            subnet_divisions=config.network.subnet_divisions,
        )

        self.logger.info(
            "Stack plane initialized",
            base_network=config.network.base_network,
            region=config.remote.region,
            template_dir=config.templates.template_dir,
            max_attempts=config.provisioning.max_attempts,
        )

    async def next_subnet(self) -> AddressBlock:
        return await self.allocator.next_available()

    async def create_app(
        self,
        name: str,
        template_id: str = "app",
        parameters: dict[str, str] | None = None,
        tags: dict[str, str] | None = None,
        context: dict[str, Any] | None = None,
    ) -> AppStackResult:
        return await self.app_stacks.create_app(name, template_id, parameters, tags, context)

    async def service_request(self, name: str, service_type: str) -> ProvisioningRequest:
        return await self.provisioner.service_request(name, service_type)

    async def create_service(self, name: str, service_type: str) -> StackHandle:
        request = await self.provisioner.service_request(name, service_type)
        return await self.provisioner.submit(request)

    async def list_apps(self) -> list[StackDescriptor]:
        return await self.app_stacks.list_apps()

    async def app_statuses(self) -> dict[str, str]:
        """Application status of every app stack, keyed by stack name."""
        return {
            stack.name: self.normalizer.normalize(stack.status).value
            for stack in await self.list_apps()
        }
