"""Core exceptions for stack provisioning and subnet allocation."""


class StackPlaneError(Exception):
    """Base exception for stackplane operations."""

    problem_type = "stackplane-error"


class InvalidArgumentError(StackPlaneError, ValueError):
    """Caller supplied an invalid address block or division count."""

    problem_type = "invalid-argument"


class ExhaustedError(StackPlaneError):
    """Every candidate address block is already reserved."""

    problem_type = "subnets-exhausted"


class TemplateRenderError(StackPlaneError):
    """Template could not be loaded or rendered."""

    problem_type = "template-error"

    def __init__(self, template_id: str, message: str):
        super().__init__(f"Failed to render template '{template_id}': {message}")
        self.template_id = template_id


class ConfigurationError(StackPlaneError):
    """Configuration validation or loading failed."""

    problem_type = "configuration-error"


class RemoteServiceError(StackPlaneError):
    """Remote stack service rejected a request."""

    problem_type = "remote-error"

    def __init__(self, message: str, operation: str = "", code: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.code = code


class ProvisioningError(RemoteServiceError):
    """Remote stack service rejected a create request."""

    problem_type = "provisioning-error"

    def __init__(self, message: str, stack_name: str = "", code: str | None = None):
        super().__init__(message, operation="create_stack", code=code)
        self.stack_name = stack_name


class SubnetConflictError(ProvisioningError):
    """Create request collided with a stack holding the same reserved subnet."""

    problem_type = "subnet-conflict"


class RemoteTimeoutError(RemoteServiceError):
    """Remote list or create call exceeded its deadline."""

    problem_type = "timeout-error"

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            f"Remote {operation} did not complete within {timeout}s", operation=operation
        )
        self.timeout = timeout
