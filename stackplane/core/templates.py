"""Template rendering for stack provisioning requests.

Templates live under a template directory as ``<template_id>.tmpl`` files and
are rendered with Jinja2. HTML autoescaping is on; the helpers below return
``Markup`` so their output is inserted verbatim.

Helper environment (available both as filters and as globals):
- array: ``["a", "b"]`` -> ``"a", "b"``
- ports: ``[80, 443]`` -> ``80,443``
- safe: trusted, already escaped fragments passed through untouched
- upper: first letter capitalized (``web`` -> ``Web``)
"""

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

import structlog
from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    select_autoescape,
)
from markupsafe import Markup

from ..constants import TEMPLATE_SUFFIX
from .exceptions import TemplateRenderError

logger = structlog.get_logger()


class Renderer(Protocol):
    """Anything that can render a named template into a stack body."""

    def render(
        self,
        template_id: str,
        context: Mapping[str, Any] | None = None,
        section: str | None = None,
    ) -> str: ...


def upper_name(name: str) -> str:
    """Capitalize only the first letter of a name."""
    return name[:1].upper() + name[1:]


def array(values: Iterable[str]) -> Markup:
    return Markup(", ".join(json.dumps(str(value)) for value in values))


def ports(numbers: Iterable[int]) -> Markup:
    return Markup(",".join(str(int(number)) for number in numbers))


def safe(value: str) -> Markup:
    return Markup(value)


TEMPLATE_HELPERS = {
    "array": array,
    "ports": ports,
    "safe": safe,
    "upper": upper_name,
}


class TemplateRenderer:
    """Render stack templates from a directory with the helper environment."""

    def __init__(self, template_dir: Path | str):
        self.template_dir = Path(template_dir)
        self.environment = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(
                enabled_extensions=(TEMPLATE_SUFFIX.lstrip("."),), default=True
            ),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.environment.filters.update(TEMPLATE_HELPERS)
        self.environment.globals.update(TEMPLATE_HELPERS)

    def render(
        self,
        template_id: str,
        context: Mapping[str, Any] | None = None,
        section: str | None = None,
    ) -> str:
        """Render a template, or a single named block of it.

        Args:
            template_id: Template path relative to the template directory, without suffix
            context: Variables available to the template
            section: Name of a ``{% block %}`` to render instead of the whole template

        Returns:
            Rendered template body

        Raises:
            TemplateRenderError: If the template is missing, invalid or fails to render
        """
        variables = dict(context or {})

        try:
            template = self.environment.get_template(f"{template_id}{TEMPLATE_SUFFIX}")

            if section is None:
                rendered = template.render(variables)
            else:
                block = template.blocks.get(section)
                if block is None:
                    raise TemplateRenderError(template_id, f"section '{section}' is not defined")
                rendered = "".join(block(template.new_context(variables)))
        except (TemplateError, TypeError, ValueError) as e:
            logger.error(
                "Template rendering failed",
                template_id=template_id,
                section=section,
                error=str(e) or type(e).__name__,
            )
            raise TemplateRenderError(template_id, str(e) or type(e).__name__) from e

        logger.debug(
            "Template rendered", template_id=template_id, section=section, size=len(rendered)
        )
        return rendered
