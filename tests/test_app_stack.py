"""Tests for allocate-then-provision with optimistic retry."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from stackplane.core.exceptions import (
    ExhaustedError,
    ProvisioningError,
    RemoteServiceError,
    RemoteTimeoutError,
    SubnetConflictError,
    TemplateRenderError,
)
from stackplane.services.app_stack import AppStackService
from stackplane.services.provisioner import StackProvisioner
from stackplane.services.subnet_allocator import SubnetAllocator
from tests.fakes import FakeStackService, app_stack


def make_service(stack_service, renderer, **kwargs) -> AppStackService:
    kwargs.setdefault("retry_delay", 0)
    return AppStackService(
        SubnetAllocator(stack_service, base_network="10.0.0.0/16"),
        StackProvisioner(stack_service, renderer),
        **kwargs,
    )


@pytest.fixture
def fleet_service() -> FakeStackService:
    """Fake service with 10.0.1.0/24 through 10.0.4.0/24 already reserved."""
    return FakeStackService([app_stack(f"app{i}", f"10.0.{i}.0/24") for i in range(1, 5)])


class TestCreateApp:
    """Test single app stack creation."""

    @pytest.mark.asyncio
    async def test_create_app(self, fleet_service, renderer):
        """Test an app gets the next subnet, reserved tags and rendered body."""
        service = make_service(fleet_service, renderer)

        result = await service.create_app(
            "web", parameters={"Image": "nginx:alpine"}, tags={"team": "platform"}
        )

        assert str(result.subnet) == "10.0.5.0/24"
        assert result.attempts == 1
        assert result.handle.name == "web"

        call = fleet_service.create_calls[0]
        assert call["tags"] == {"team": "platform", "type": "app", "subnet": "10.0.5.0/24"}
        assert call["parameters"] == {"Image": "nginx:alpine"}
        assert '"Description": "Web"' in call["template_body"]
        assert '"10.0.5.0/27", "10.0.5.32/27", "10.0.5.64/27"' in call["template_body"]

    @pytest.mark.asyncio
    async def test_reserved_tags_override_caller_tags(self, stack_service, renderer):
        """Test callers cannot override the type and subnet tags."""
        service = make_service(stack_service, renderer)

        await service.create_app("web", tags={"type": "service", "subnet": "1.2.3.0/24"})

        assert stack_service.create_calls[0]["tags"] == {"type": "app", "subnet": "10.0.1.0/24"}

    @pytest.mark.asyncio
    async def test_sequential_apps_get_distinct_subnets(self, stack_service, renderer):
        """Test each created app is visible to the next allocation."""
        service = make_service(stack_service, renderer)

        results = [await service.create_app(f"app{i}") for i in range(3)]

        assert [str(r.subnet) for r in results] == ["10.0.1.0/24", "10.0.2.0/24", "10.0.3.0/24"]

    @pytest.mark.asyncio
    async def test_list_apps(self, stack_service, renderer):
        """Test list_apps returns only app stacks with derived status."""
        service = make_service(stack_service, renderer)
        await service.create_app("web")
        await StackProvisioner(stack_service, renderer).provision(
            "files",
            "service/s3",
            context={"name": "files", "service_type": "s3"},
            section="service",
        )

        apps = await service.list_apps()

        assert [a.name for a in apps] == ["web"]
        assert apps[0].application_status == "creating"

    def test_max_attempts_must_be_positive(self, stack_service, renderer):
        """Test a non-positive attempt bound is rejected."""
        with pytest.raises(ValueError):
            make_service(stack_service, renderer, max_attempts=0)


class TestRetry:
    """Test the optimistic concurrency retry contract."""

    @pytest.mark.asyncio
    async def test_concurrent_creates_resolve_collision(self, fleet_service, renderer):
        """Test two concurrent creates on a stale read end up on .5 and .6."""
        service = make_service(fleet_service, renderer)

        first, second = await asyncio.gather(
            service.create_app("web"), service.create_app("api")
        )

        assert {str(first.subnet), str(second.subnet)} == {"10.0.5.0/24", "10.0.6.0/24"}
        assert sorted([first.attempts, second.attempts]) == [1, 2]

        # Both first attempts chose the same block; one was rejected
        attempted = [call["tags"]["subnet"] for call in fleet_service.create_calls]
        assert attempted.count("10.0.5.0/24") == 2
        assert attempted[-1] == "10.0.6.0/24"

    @pytest.mark.asyncio
    async def test_retry_rereads_used_set(self, fleet_service, renderer):
        """Test a conflict triggers a fresh listing and a new candidate."""
        service = make_service(fleet_service, renderer)
        # Another caller commits 10.0.5.0/24 right after our first read
        original_list = fleet_service.list_stacks

        async def list_then_race():
            snapshot = await original_list()
            if "rival" not in fleet_service.stacks:
                fleet_service.stacks["rival"] = app_stack("rival", "10.0.5.0/24")
            return snapshot

        fleet_service.list_stacks = list_then_race

        result = await service.create_app("web")

        assert str(result.subnet) == "10.0.6.0/24"
        assert result.attempts == 2
        assert fleet_service.list_calls == 2

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self, stack_service, renderer):
        """Test listing and creation timeouts are retried."""
        stack_service.list_errors = [RemoteTimeoutError("list_stacks", 30)]
        stack_service.create_errors = [RemoteTimeoutError("create_stack", 60)]
        service = make_service(stack_service, renderer)

        result = await service.create_app("web")

        assert result.attempts == 3
        assert str(result.subnet) == "10.0.1.0/24"

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, stack_service, renderer):
        """Test the last remote error surfaces once attempts run out."""
        errors = [ProvisioningError(f"rejected {i}", stack_name="web") for i in range(3)]
        stack_service.create_errors = list(errors)
        service = make_service(stack_service, renderer, max_attempts=3)

        with pytest.raises(ProvisioningError) as exc_info:
            await service.create_app("web")

        assert exc_info.value is errors[-1]
        assert len(stack_service.create_calls) == 3

    @pytest.mark.asyncio
    async def test_listing_rejection_retried_then_surfaced(self, stack_service, renderer):
        """Test a persistently rejected listing surfaces as RemoteServiceError."""
        stack_service.list_errors = [
            RemoteServiceError("Rate exceeded", operation="list_stacks") for _ in range(2)
        ]
        service = make_service(stack_service, renderer, max_attempts=2)

        with pytest.raises(RemoteServiceError, match="Rate exceeded"):
            await service.create_app("web")

        assert stack_service.create_calls == []

    @pytest.mark.asyncio
    async def test_exhaustion_is_not_retried(self, renderer):
        """Test exhausted address space halts immediately."""
        stacks = [app_stack(f"app{i}", f"10.0.{i}.0/24") for i in range(1, 255)]
        stack_service = FakeStackService(stacks)
        service = make_service(stack_service, renderer)

        with pytest.raises(ExhaustedError):
            await service.create_app("web")

        assert stack_service.list_calls == 1

    @pytest.mark.asyncio
    async def test_template_error_is_not_retried(self, stack_service, renderer):
        """Test template errors halt immediately with no remote create."""
        service = make_service(stack_service, renderer)

        with pytest.raises(TemplateRenderError):
            await service.create_app("web", template_id="broken")

        assert stack_service.list_calls == 1
        assert stack_service.create_calls == []

    @pytest.mark.asyncio
    async def test_backoff_between_attempts(self, stack_service, renderer):
        """Test retry delays grow by the backoff factor up to max_delay."""
        stack_service.create_errors = [
            SubnetConflictError("dup", stack_name="web") for _ in range(3)
        ]
        service = make_service(
            stack_service,
            renderer,
            max_attempts=4,
            retry_delay=1.0,
            backoff_factor=2.0,
            max_delay=3.0,
        )

        with patch("stackplane.services.app_stack.asyncio.sleep", new=AsyncMock()) as mock_sleep:
            result = await service.create_app("web")

        assert result.attempts == 4
        # Zero-length sleeps come from the fake service yielding to other tasks
        delays = [call.args[0] for call in mock_sleep.await_args_list if call.args[0]]
        assert delays == [1.0, 2.0, 3.0]
