"""Remote stack service interface and its CloudFormation implementation."""

import asyncio
from collections.abc import Mapping
from typing import Any, Protocol

import aioboto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..constants import TAG_SUBNET
from ..models.stack import ProvisioningRequest, StackDescriptor, StackHandle
from .exceptions import (
    ProvisioningError,
    RemoteServiceError,
    RemoteTimeoutError,
    SubnetConflictError,
)
from .settings import STACK_CREATE_TIMEOUT, STACK_LIST_TIMEOUT

logger = structlog.get_logger()


class RemoteStackService(Protocol):
    """Single source of truth for the stacks that exist."""

    async def list_stacks(self) -> list[StackDescriptor]: ...

    async def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: Mapping[str, str],
        tags: Mapping[str, str],
    ) -> StackHandle: ...


def _is_subnet_conflict(error: ClientError) -> bool:
    # Matched on message text: CloudFormation has no error code for this
    message = error.response.get("Error", {}).get("Message", "")
    return TAG_SUBNET in message.lower() and any(
        word in message.lower() for word in ("duplicate", "already", "conflict", "unique")
    )


class CloudFormationStackService:
    """RemoteStackService backed by AWS CloudFormation through aioboto3.

    Credentials come from the session's default provider chain. Every call
    opens its own client from the injected session so one instance can be
    shared by concurrent callers.

    Limitation: CloudFormation does not enforce uniqueness of tag values, so
    it never rejects a second stack carrying an already reserved ``subnet``
    tag. Against plain CloudFormation two concurrent app creations that read
    the same listing can both be accepted with the same subnet; the allocate
    and retry loop only resolves collisions the service actually rejects.
    ``SubnetConflictError`` is raised when a rejection message names the
    subnet tag together with duplicate, already, conflict or unique wording,
    as emitted by hooks or guard rules enforcing subnet uniqueness. Callers
    that need a hard guarantee must serialize app creation per base network.
    """

    def __init__(
        self,
        session: aioboto3.Session | None = None,
        region: str | None = None,
        list_timeout: float = STACK_LIST_TIMEOUT,
        create_timeout: float = STACK_CREATE_TIMEOUT,
    ):
        self.session = session or aioboto3.Session()
        self.region = region
        self.list_timeout = list_timeout
        self.create_timeout = create_timeout
        self.logger = logger.bind(component="cloudformation", region=region)

    def _client(self) -> Any:
        return self.session.client("cloudformation", region_name=self.region)

    async def _describe_all(self) -> list[dict[str, Any]]:
        stacks: list[dict[str, Any]] = []
        async with self._client() as client:
            paginator = client.get_paginator("describe_stacks")
            async for page in paginator.paginate():
                stacks.extend(page.get("Stacks", []))
        return stacks

    async def list_stacks(self) -> list[StackDescriptor]:
        """List every stack visible to the session.

        Raises:
            RemoteTimeoutError: If listing exceeds list_timeout
            RemoteServiceError: If the service rejects the request
        """
        try:
            raw_stacks = await asyncio.wait_for(self._describe_all(), timeout=self.list_timeout)
        except TimeoutError as e:
            self.logger.warning("Stack listing timed out", timeout=self.list_timeout)
            raise RemoteTimeoutError("list_stacks", self.list_timeout) from e
        except (ClientError, BotoCoreError) as e:
            self.logger.error("Stack listing failed", error=str(e))
            code = e.response.get("Error", {}).get("Code") if isinstance(e, ClientError) else None
            raise RemoteServiceError(
                f"Failed to list stacks: {e}", operation="list_stacks", code=code
            ) from e

        self.logger.debug("Listed stacks", count=len(raw_stacks))
        return [StackDescriptor.from_cloudformation(stack) for stack in raw_stacks]

    async def create_stack(
        self,
        name: str,
        template_body: str,
        parameters: Mapping[str, str],
        tags: Mapping[str, str],
    ) -> StackHandle:
        """Submit a create request.

        Raises:
            RemoteTimeoutError: If the request exceeds create_timeout
            SubnetConflictError: If the service rejects a duplicate reserved subnet
            ProvisioningError: If the service rejects the request for any other reason
        """
        request = ProvisioningRequest(
            name=name, template_body=template_body, parameters=dict(parameters), tags=dict(tags)
        )

        async def _create() -> dict[str, Any]:
            async with self._client() as client:
                return await client.create_stack(**request.to_cloudformation())

        try:
            response = await asyncio.wait_for(_create(), timeout=self.create_timeout)
        except TimeoutError as e:
            self.logger.warning(
                "Stack creation timed out", stack_name=name, timeout=self.create_timeout
            )
            raise RemoteTimeoutError("create_stack", self.create_timeout) from e
        except ClientError as e:
            error = e.response.get("Error", {})
            error_class = SubnetConflictError if _is_subnet_conflict(e) else ProvisioningError
            self.logger.error(
                "Stack creation rejected",
                stack_name=name,
                code=error.get("Code"),
                error=error.get("Message", str(e)),
            )
            raise error_class(
                f"Failed to create stack '{name}': {error.get('Message', str(e))}",
                stack_name=name,
                code=error.get("Code"),
            ) from e
        except BotoCoreError as e:
            self.logger.error("Stack creation failed", stack_name=name, error=str(e))
            raise ProvisioningError(f"Failed to create stack '{name}': {e}", stack_name=name) from e

        self.logger.info(
            "Stack creation accepted", stack_name=name, stack_id=response.get("StackId")
        )
        return StackHandle(name=name, stack_id=response.get("StackId"))
