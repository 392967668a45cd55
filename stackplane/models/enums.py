"""Enum definitions for application-facing stack state."""

from enum import Enum


class ApplicationStatus(str, Enum):
    """Application-level state derived from a stack's raw lifecycle code."""

    NEW = "new"
    CREATING = "creating"
    RUNNING = "running"
    UPDATING = "updating"
    DELETING = "deleting"
    ROLLBACK = "rollback"
    FAILED = "failed"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value
