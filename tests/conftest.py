"""Shared pytest fixtures for stackplane tests."""

from pathlib import Path

import pytest

from stackplane.core.templates import TemplateRenderer
from stackplane.services.provisioner import StackProvisioner
from stackplane.services.subnet_allocator import SubnetAllocator
from tests.fakes import FakeStackService


@pytest.fixture
def stack_service() -> FakeStackService:
    """Empty fake remote stack service."""
    return FakeStackService()


@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    """Template directory with an app template and an s3 service template."""
    (tmp_path / "service").mkdir()
    (tmp_path / "app.tmpl").write_text(
        '{"Description": "{{ name|upper }}", "Subnet": "{{ subnet }}", '
        '"Subnets": [{{ array(subnets) }}]}'
    )
    (tmp_path / "service" / "s3.tmpl").write_text(
        "header outside the section\n"
        '{% block service %}{"Bucket": "{{ name }}-{{ service_type }}"}{% endblock %}'
    )
    (tmp_path / "broken.tmpl").write_text("{% for x in %}")
    return tmp_path


@pytest.fixture
def renderer(template_dir: Path) -> TemplateRenderer:
    """Template renderer over the test template directory."""
    return TemplateRenderer(template_dir)


@pytest.fixture
def allocator(stack_service: FakeStackService) -> SubnetAllocator:
    """Subnet allocator over the default 10.0.0.0/16 network."""
    return SubnetAllocator(stack_service, base_network="10.0.0.0/16")


@pytest.fixture
def provisioner(stack_service: FakeStackService, renderer: TemplateRenderer) -> StackProvisioner:
    """Provisioner wired to the fake service and test templates."""
    return StackProvisioner(stack_service, renderer)
