"""Data models for stackplane."""

from .enums import ApplicationStatus  # noqa: F401
from .stack import (  # noqa: F401
    ProvisioningRequest,
    StackDescriptor,
    StackHandle,
)

__all__ = [
    "ApplicationStatus",
    "ProvisioningRequest",
    "StackDescriptor",
    "StackHandle",
]
