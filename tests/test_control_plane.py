"""Tests for the StackPlane composition root."""

import pytest
from structlog.testing import capture_logs

from stackplane.control_plane import StackPlane
from stackplane.core import status as status_module
from stackplane.core.config_loader import NetworkConfig, ProvisioningConfig, StackPlaneConfig
from stackplane.core.exceptions import ExhaustedError
from stackplane.core.templates import TemplateRenderer
from stackplane.models.enums import ApplicationStatus
from stackplane.models.stack import StackDescriptor
from tests.fakes import app_stack


@pytest.fixture
def config() -> StackPlaneConfig:
    return StackPlaneConfig(provisioning=ProvisioningConfig(retry_delay=0))


@pytest.fixture
def plane(config, stack_service, renderer) -> StackPlane:
    return StackPlane(config, stack_service=stack_service, renderer=renderer)


class TestWiring:
    """Test the plane builds its services from configuration."""

    def test_services_share_remote_handle(self, plane, stack_service, renderer):
        assert plane.allocator.stack_service is stack_service
        assert plane.provisioner.stack_service is stack_service
        assert plane.provisioner.renderer is renderer
        assert plane.app_stacks.allocator is plane.allocator

    def test_config_values_flow_through(self, stack_service, renderer):
        config = StackPlaneConfig(
            network=NetworkConfig(base_network="172.16.0.0/16", subnet_divisions=2),
            provisioning=ProvisioningConfig(max_attempts=5, retry_delay=0),
        )
        plane = StackPlane(config, stack_service=stack_service, renderer=renderer)

        assert plane.app_stacks.max_attempts == 5
        assert plane.app_stacks.subnet_divisions == 2
        assert str(plane.allocator.base_network) == "172.16.0.0/16"

    def test_default_renderer_uses_template_dir(self, stack_service, template_dir):
        config = StackPlaneConfig()
        config.templates.template_dir = str(template_dir)

        plane = StackPlane(config, stack_service=stack_service)

        assert isinstance(plane.renderer, TemplateRenderer)

    def test_unknown_status_log_level_configured(self, config, stack_service, renderer):
        config.logging.unknown_status_log_level = "ERROR"
        plane = StackPlane(config, stack_service=stack_service, renderer=renderer)

        with capture_logs() as logs:
            assert plane.normalizer.normalize("IMPORT_COMPLETE") == ApplicationStatus.UNKNOWN

        assert logs[0]["log_level"] == "error"
        assert logs[0]["status"] == "IMPORT_COMPLETE"

    def test_planes_keep_separate_normalizers(self, stack_service, renderer):
        """Test one plane's unknown-status level does not leak into another."""
        default_normalizer = status_module._default_normalizer
        quiet = StackPlaneConfig(provisioning=ProvisioningConfig(retry_delay=0))
        quiet.logging.unknown_status_log_level = "DEBUG"
        loud = StackPlaneConfig(provisioning=ProvisioningConfig(retry_delay=0))
        loud.logging.unknown_status_log_level = "ERROR"

        quiet_plane = StackPlane(quiet, stack_service=stack_service, renderer=renderer)
        loud_plane = StackPlane(loud, stack_service=stack_service, renderer=renderer)

        with capture_logs() as logs:
            quiet_plane.normalizer.normalize("IMPORT_COMPLETE")
            loud_plane.normalizer.normalize("IMPORT_COMPLETE")

        assert [entry["log_level"] for entry in logs] == ["debug", "error"]
        assert status_module._default_normalizer is default_normalizer


class TestOperations:
    """Test operations delegated to the services."""

    @pytest.mark.asyncio
    async def test_next_subnet(self, plane, stack_service):
        stack_service.stacks["a"] = app_stack("a", "10.0.1.0/24")

        subnet = await plane.next_subnet()

        assert str(subnet) == "10.0.2.0/24"

    @pytest.mark.asyncio
    async def test_create_app(self, plane, stack_service):
        result = await plane.create_app("web", tags={"owner": "ops"})

        assert str(result.subnet) == "10.0.1.0/24"
        assert result.attempts == 1
        call = stack_service.create_calls[0]
        assert call["tags"] == {"owner": "ops", "type": "app", "subnet": "10.0.1.0/24"}
        assert '"Description": "Web"' in call["template_body"]

    @pytest.mark.asyncio
    async def test_create_app_exhausted(self, stack_service, renderer):
        config = StackPlaneConfig(network=NetworkConfig(base_network="10.0.0.0/23"))
        plane = StackPlane(config, stack_service=stack_service, renderer=renderer)

        with pytest.raises(ExhaustedError):
            await plane.create_app("web")
        assert stack_service.create_calls == []

    @pytest.mark.asyncio
    async def test_service_request(self, plane, stack_service):
        request = await plane.service_request("assets", "s3")

        assert request.name == "assets"
        assert request.template_body == '{"Bucket": "assets-s3"}'
        assert stack_service.create_calls == []

    @pytest.mark.asyncio
    async def test_create_service(self, plane, stack_service):
        handle = await plane.create_service("assets", "s3")

        assert handle.name == "assets"
        assert "assets" in stack_service.stacks
        assert not stack_service.stacks["assets"].is_app

    @pytest.mark.asyncio
    async def test_list_apps_and_statuses(self, plane, stack_service):
        stack_service.stacks["web"] = app_stack("web", "10.0.1.0/24", status="CREATE_COMPLETE")
        stack_service.stacks["api"] = app_stack("api", "10.0.2.0/24", status="ROLLBACK_COMPLETE")
        stack_service.stacks["bucket"] = StackDescriptor(name="bucket", status="CREATE_COMPLETE")

        apps = await plane.list_apps()
        statuses = await plane.app_statuses()

        assert {stack.name for stack in apps} == {"web", "api"}
        assert statuses == {"web": "running", "api": "failed"}

    @pytest.mark.asyncio
    async def test_app_statuses_use_plane_normalizer(self, config, stack_service, renderer):
        config.logging.unknown_status_log_level = "ERROR"
        plane = StackPlane(config, stack_service=stack_service, renderer=renderer)
        stack_service.stacks["web"] = app_stack("web", "10.0.1.0/24", status="IMPORT_COMPLETE")

        with capture_logs() as logs:
            statuses = await plane.app_statuses()

        assert statuses == {"web": "unknown"}
        assert logs[-1]["event"] == "Unknown stack status"
        assert logs[-1]["log_level"] == "error"
