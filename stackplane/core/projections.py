"""Key-value projections of a raw stack describe payload."""

from collections.abc import Iterable, Mapping
from typing import Any


def _project(entries: Iterable[Mapping[str, Any]] | None, key: str, value: str) -> dict[str, str]:
    projected: dict[str, str] = {}
    for entry in entries or ():
        projected[entry[key]] = entry.get(value, "")
    return projected


def stack_tags(stack: Mapping[str, Any]) -> dict[str, str]:
    """Tags of a stack as a dict."""
    return _project(stack.get("Tags"), "Key", "Value")


def stack_parameters(stack: Mapping[str, Any]) -> dict[str, str]:
    """Parameters of a stack as a dict."""
    return _project(stack.get("Parameters"), "ParameterKey", "ParameterValue")


def stack_outputs(stack: Mapping[str, Any]) -> dict[str, str]:
    """Outputs of a stack as a dict."""
    return _project(stack.get("Outputs"), "OutputKey", "OutputValue")
