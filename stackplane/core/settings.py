"""Timeout settings configuration for remote stack operations.

Provides centralized timeout configuration using Pydantic BaseSettings
with environment variable support for operational tuning.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StackTimeoutSettings(BaseSettings):
    """Remote stack service timeout configuration."""

    stack_list_timeout: float = Field(
        30, alias="STACK_LIST_TIMEOUT", description="Stack listing timeout in seconds"
    )

    stack_create_timeout: float = Field(
        60, alias="STACK_CREATE_TIMEOUT", description="Stack creation request timeout in seconds"
    )

    template_render_timeout: float = Field(
        10, alias="TEMPLATE_RENDER_TIMEOUT", description="Template rendering timeout in seconds"
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)


# Global settings instance (reads the environment once at import)
timeout_settings = StackTimeoutSettings()

# Timeout constants for easy import
STACK_LIST_TIMEOUT: float = timeout_settings.stack_list_timeout
STACK_CREATE_TIMEOUT: float = timeout_settings.stack_create_timeout
TEMPLATE_RENDER_TIMEOUT: float = timeout_settings.template_render_timeout
