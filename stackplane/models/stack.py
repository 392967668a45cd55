"""Stack-related data models."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..constants import APP_STACK_TYPE, TAG_SUBNET, TAG_TYPE
from ..core.projections import stack_outputs, stack_parameters, stack_tags
from .enums import ApplicationStatus


class StackDescriptor(BaseModel):
    """Read-only snapshot of a stack as reported by the remote service."""

    model_config = ConfigDict(frozen=True)

    name: str
    stack_id: str | None = None
    status: str = ""  # raw lifecycle code
    parameters: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)
    outputs: dict[str, str] = Field(default_factory=dict)
    created_at: datetime | None = None

    @classmethod
    def from_cloudformation(cls, stack: Mapping[str, Any]) -> "StackDescriptor":
        """Build a descriptor from one entry of a describe_stacks response."""
        return cls(
            name=stack["StackName"],
            stack_id=stack.get("StackId"),
            status=stack.get("StackStatus") or "",
            parameters=stack_parameters(stack),
            tags=stack_tags(stack),
            outputs=stack_outputs(stack),
            created_at=stack.get("CreationTime"),
        )

    @property
    def application_status(self) -> ApplicationStatus:
        from ..core.status import normalize_status  # Import at use to avoid circular imports

        # Recomputed on every access so it always follows the raw code
        return normalize_status(self.status)

    @property
    def is_app(self) -> bool:
        return self.tags.get(TAG_TYPE) == APP_STACK_TYPE

    @property
    def reserved_subnet(self) -> str | None:
        return self.tags.get(TAG_SUBNET)


class ProvisioningRequest(BaseModel):
    """Create request for one stack, built fresh per provisioning call."""

    model_config = ConfigDict(frozen=True)

    name: str
    template_body: str
    parameters: dict[str, str] = Field(default_factory=dict)
    tags: dict[str, str] = Field(default_factory=dict)

    def to_cloudformation(self) -> dict[str, Any]:
        """Keyword arguments for a CloudFormation create_stack call."""
        kwargs: dict[str, Any] = {"StackName": self.name, "TemplateBody": self.template_body}
        if self.parameters:
            kwargs["Parameters"] = [
                {"ParameterKey": key, "ParameterValue": value}
                for key, value in self.parameters.items()
            ]
        if self.tags:
            kwargs["Tags"] = [{"Key": key, "Value": value} for key, value in self.tags.items()]
        return kwargs


class StackHandle(BaseModel):
    """Identity of a stack accepted by the remote service."""

    model_config = ConfigDict(frozen=True)

    name: str
    stack_id: str | None = None
