"""RFC 7807 compliant error response helpers.

Each error kind raised by stackplane maps to its own problem type, so a caller
surfacing a failure to an operator gets a distinct title and type per kind:
exhausted address space, template errors and remote rejections never share a
message.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from .exceptions import (
    ExhaustedError,
    ProvisioningError,
    RemoteServiceError,
    RemoteTimeoutError,
    StackPlaneError,
    TemplateRenderError,
)


class ErrorDetail(BaseModel):
    """RFC 7807 compliant error detail structure.

    Required fields:
    - success: Always False for error responses
    - error: Human-readable error message

    Optional RFC 7807 fields:
    - type: URI reference that identifies the problem type
    - title: Short, human-readable summary of the problem type
    - detail: Human-readable explanation specific to this occurrence
    - instance: URI reference that identifies the specific occurrence
    """

    success: bool = Field(default=False, description="Always False for errors")
    error: str = Field(description="Human-readable error message")
    type: str | None = Field(default=None, description="Problem type URI")
    title: str | None = Field(default=None, description="Problem type summary")
    detail: str | None = Field(default=None, description="Specific problem details")
    instance: str | None = Field(default=None, description="Problem occurrence URI")
    retryable: bool = Field(default=False, description="Whether re-running may succeed")
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())


class StackPlaneErrorResponse:
    """Factory for creating standardized stackplane error responses."""

    PROBLEM_TYPES: dict[str, dict[str, str]] = {
        "stackplane-error": {
            "type": "/problems/stackplane-error",
            "title": "Stack Operation Failed",
        },
        "invalid-argument": {
            "type": "/problems/invalid-argument",
            "title": "Invalid Argument",
        },
        "subnets-exhausted": {
            "type": "/problems/subnets-exhausted",
            "title": "No Available Subnets",
        },
        "template-error": {
            "type": "/problems/template-error",
            "title": "Template Rendering Failed",
        },
        "configuration-error": {
            "type": "/problems/configuration-error",
            "title": "Configuration Error",
        },
        "remote-error": {
            "type": "/problems/remote-error",
            "title": "Remote Stack Service Error",
        },
        "provisioning-error": {
            "type": "/problems/provisioning-error",
            "title": "Stack Creation Rejected",
        },
        "subnet-conflict": {
            "type": "/problems/subnet-conflict",
            "title": "Reserved Subnet Conflict",
        },
        "timeout-error": {
            "type": "/problems/timeout-error",
            "title": "Operation Timed Out",
        },
    }

    @classmethod
    def create_error(
        cls,
        error_message: str,
        problem_type: str | None = None,
        detail: str | None = None,
        instance: str | None = None,
        retryable: bool = False,
        context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create a standardized error response.

        Args:
            error_message: Primary error message
            problem_type: Standard problem type key or custom type URI
            detail: Additional problem-specific details
            instance: Identifier for this specific occurrence
            retryable: Whether re-running the operation may succeed
            context: Additional context fields (stack_name, template_id, etc.)

        Returns:
            RFC 7807 compliant error response dictionary
        """
        error_detail = ErrorDetail(
            error=error_message, detail=detail, instance=instance, retryable=retryable
        )

        if problem_type and problem_type in cls.PROBLEM_TYPES:
            problem_info = cls.PROBLEM_TYPES[problem_type]
            error_detail.type = problem_info["type"]
            error_detail.title = problem_info["title"]
        elif problem_type:
            error_detail.type = problem_type

        response = error_detail.model_dump(exclude_none=True)

        if context:
            # Reserved RFC 7807 fields are never overwritten by context
            reserved_fields = set(ErrorDetail.model_fields)
            filtered_context = {k: v for k, v in context.items() if k not in reserved_fields}
            response.update(filtered_context)

        return response

    @classmethod
    def from_exception(cls, error: Exception) -> dict[str, Any]:
        """Build the problem response matching an exception's error kind."""
        if not isinstance(error, StackPlaneError):
            return cls.create_error(
                error_message=str(error), context={"cause": type(error).__name__}
            )

        context: dict[str, Any] = {}
        detail = None
        instance = None

        if isinstance(error, TemplateRenderError):
            context["template_id"] = error.template_id
            detail = "Fix the template and re-run; no stack was submitted."
            instance = f"/templates/{error.template_id}"
        elif isinstance(error, ExhaustedError):
            detail = "Every candidate subnet is reserved by an existing app stack."
        elif isinstance(error, RemoteTimeoutError):
            context["operation"] = error.operation
            context["timeout"] = error.timeout
        elif isinstance(error, ProvisioningError):
            context["stack_name"] = error.stack_name
            if error.code:
                context["code"] = error.code
            instance = f"/stacks/{error.stack_name}" if error.stack_name else None
        elif isinstance(error, RemoteServiceError):
            context["operation"] = error.operation
            if error.code:
                context["code"] = error.code

        return cls.create_error(
            error_message=str(error),
            problem_type=error.problem_type,
            detail=detail,
            instance=instance,
            retryable=isinstance(error, RemoteServiceError),
            context=context,
        )
