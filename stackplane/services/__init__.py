"""
stackplane Services

Service layer for allocation, provisioning and app stack creation.
"""

from .app_stack import AppStackResult, AppStackService  # noqa: F401
from .provisioner import StackProvisioner  # noqa: F401
from .subnet_allocator import SubnetAllocator  # noqa: F401

__all__ = [
    "AppStackResult",
    "AppStackService",
    "StackProvisioner",
    "SubnetAllocator",
]
