"""Centralized constants for stack tagging and address allocation."""

# Tag schema shared by every consumer of app stacks
TAG_TYPE = "type"
TAG_SUBNET = "subnet"
APP_STACK_TYPE = "app"

# Address allocation
DEFAULT_BASE_NETWORK = "10.0.0.0/16"
DEFAULT_CANDIDATE_PREFIX = 24
MAX_SUBNET_DIVISIONS = 4
SUBNET_DIVISION_BITS = 3  # each division is 1/8 of the divided block

# Templates
TEMPLATE_SUFFIX = ".tmpl"
SERVICE_TEMPLATE_PREFIX = "service"
SERVICE_TEMPLATE_SECTION = "service"
