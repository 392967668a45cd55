"""
Stack Provisioner

Renders a stack template and submits the resulting create request to the
remote stack service. Submission failures are surfaced unchanged and never
retried here.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

import structlog

from ..constants import SERVICE_TEMPLATE_PREFIX, SERVICE_TEMPLATE_SECTION
from ..core.cloudformation import RemoteStackService
from ..core.exceptions import ProvisioningError, TemplateRenderError
from ..core.settings import TEMPLATE_RENDER_TIMEOUT
from ..core.templates import Renderer
from ..models.stack import ProvisioningRequest, StackHandle


class StackProvisioner:
    """Build and submit provisioning requests."""

    def __init__(
        self,
        stack_service: RemoteStackService,
        renderer: Renderer,
        render_timeout: float = TEMPLATE_RENDER_TIMEOUT,
    ):
        self.stack_service = stack_service
        self.renderer = renderer
        self.render_timeout = render_timeout
        self.logger = structlog.get_logger()

    async def render(
        self,
        template_id: str,
        context: Mapping[str, Any] | None = None,
        section: str | None = None,
    ) -> str:
        """Render a template off the event loop.

        Raises:
            TemplateRenderError: If rendering fails or exceeds render_timeout
        """
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self.renderer.render, template_id, context, section),
                timeout=self.render_timeout,
            )
        except TimeoutError as e:
            raise TemplateRenderError(
                template_id, f"rendering exceeded {self.render_timeout}s"
            ) from e

    async def build_request(
        self,
        name: str,
        template_id: str,
        context: Mapping[str, Any] | None = None,
        parameters: Mapping[str, str] | None = None,
        tags: Mapping[str, str] | None = None,
        section: str | None = None,
    ) -> ProvisioningRequest:
        """Render a template into a fresh provisioning request.

        Args:
            name: Stack name
            template_id: Template to render (e.g. ``app`` or ``service/postgres``)
            context: Template variables
            parameters: Stack parameters
            tags: Stack tags; network-bearing stacks carry ``type`` and ``subnet``
            section: Optional template block to render

        Raises:
            TemplateRenderError: If rendering fails
        """
        body = await self.render(template_id, context, section)
        return ProvisioningRequest(
            name=name,
            template_body=body,
            parameters=dict(parameters or {}),
            tags=dict(tags or {}),
        )

    async def submit(self, request: ProvisioningRequest) -> StackHandle:
        """Send a create request to the remote service.

        Raises:
            ProvisioningError: If the service rejects the request
            RemoteTimeoutError: If the request exceeds its deadline
        """
        self.logger.info(
            "Submitting stack",
            stack_name=request.name,
            parameters=len(request.parameters),
            tags=request.tags,
        )
        try:
            handle = await self.stack_service.create_stack(
                request.name, request.template_body, request.parameters, request.tags
            )
        except ProvisioningError as e:
            self.logger.warning("Stack submission rejected", stack_name=request.name, error=str(e))
            raise

        self.logger.info("Stack submitted", stack_name=handle.name, stack_id=handle.stack_id)
        return handle

    async def provision(
        self,
        name: str,
        template_id: str,
        context: Mapping[str, Any] | None = None,
        parameters: Mapping[str, str] | None = None,
        tags: Mapping[str, str] | None = None,
        section: str | None = None,
    ) -> StackHandle:
        """Render and submit in one step. No remote call is made if rendering fails."""
        request = await self.build_request(name, template_id, context, parameters, tags, section)
        return await self.submit(request)

    async def service_request(self, name: str, service_type: str) -> ProvisioningRequest:
        """Build the request for a backing service stack (e.g. ``postgres``, ``s3``)."""
        return await self.build_request(
            name,
            f"{SERVICE_TEMPLATE_PREFIX}/{service_type}",
            context={"name": name, "service_type": service_type},
            section=SERVICE_TEMPLATE_SECTION,
        )
