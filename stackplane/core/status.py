"""Normalization of remote stack lifecycle codes into application states.

The remote service's lifecycle vocabulary grows independently of this
package, so normalization never fails: codes missing from the table degrade to
``ApplicationStatus.UNKNOWN`` and are reported to the ``status`` logger.
"""

import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType

from ..models.enums import ApplicationStatus
from .logging_config import get_status_logger

STATUS_TABLE: Mapping[str, ApplicationStatus] = MappingProxyType(
    {
        "": ApplicationStatus.NEW,
        "CREATE_IN_PROGRESS": ApplicationStatus.CREATING,
        "CREATE_COMPLETE": ApplicationStatus.RUNNING,
        "DELETE_FAILED": ApplicationStatus.RUNNING,
        "DELETE_IN_PROGRESS": ApplicationStatus.DELETING,
        "ROLLBACK_IN_PROGRESS": ApplicationStatus.ROLLBACK,
        "ROLLBACK_COMPLETE": ApplicationStatus.FAILED,
        "UPDATE_IN_PROGRESS": ApplicationStatus.UPDATING,
        "UPDATE_COMPLETE_CLEANUP_IN_PROGRESS": ApplicationStatus.UPDATING,
        "UPDATE_COMPLETE": ApplicationStatus.RUNNING,
        "UPDATE_ROLLBACK_IN_PROGRESS": ApplicationStatus.ROLLBACK,
        "UPDATE_ROLLBACK_COMPLETE": ApplicationStatus.FAILED,
    }
)

TRANSITIONAL_STATUSES = frozenset(
    {
        ApplicationStatus.CREATING,
        ApplicationStatus.UPDATING,
        ApplicationStatus.DELETING,
        ApplicationStatus.ROLLBACK,
    }
)


class StatusNormalizer:
    """Map raw lifecycle codes to ApplicationStatus values."""

    def __init__(
        self,
        log_level: str | int = "warning",
        on_unknown: Callable[[str], None] | None = None,
    ):
        """Initialize the normalizer.

        Args:
            log_level: Level of the event logged for an unrecognized code
            on_unknown: Optional extra sink called with each unrecognized code
        """
        if isinstance(log_level, str):
            level = logging.getLevelName(log_level.upper())
            if not isinstance(level, int):
                raise ValueError(f"Unknown log level: {log_level}")
            log_level = level
        self.log_level = log_level
        self.on_unknown = on_unknown
        self.logger = get_status_logger()

    def normalize(self, raw: str | None) -> ApplicationStatus:
        code = raw or ""
        status = STATUS_TABLE.get(code)
        if status is not None:
            return status

        self.logger.log(self.log_level, "Unknown stack status", status=code)
        if self.on_unknown is not None:
            self.on_unknown(code)
        return ApplicationStatus.UNKNOWN


_default_normalizer = StatusNormalizer()


def configure_normalizer(
    log_level: str | int = "warning",
    on_unknown: Callable[[str], None] | None = None,
) -> StatusNormalizer:
    """Replace the normalizer used by normalize_status and StackDescriptor."""
    global _default_normalizer
    _default_normalizer = StatusNormalizer(log_level=log_level, on_unknown=on_unknown)
    return _default_normalizer


def normalize_status(raw: str | None) -> ApplicationStatus:
    """Normalize a raw lifecycle code using the default normalizer."""
    return _default_normalizer.normalize(raw)


def is_transitional(status: ApplicationStatus) -> bool:
    """True while the remote service is still acting on the stack."""
    return status in TRANSITIONAL_STATUSES
