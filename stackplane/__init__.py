"""Stack provisioning and subnet allocation for application stacks."""

__version__ = "0.1.0"
