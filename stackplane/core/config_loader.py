"""Configuration management for stackplane."""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from ..constants import DEFAULT_BASE_NETWORK, DEFAULT_CANDIDATE_PREFIX, MAX_SUBNET_DIVISIONS
from .cidr import parse_block
from .exceptions import ConfigurationError
from .settings import STACK_CREATE_TIMEOUT, STACK_LIST_TIMEOUT, TEMPLATE_RENDER_TIMEOUT

logger = structlog.get_logger()

DEFAULT_CONFIG_FILE = "config/stackplane.yml"


class NetworkConfig(BaseModel):
    """Address allocation settings."""

    base_network: str = DEFAULT_BASE_NETWORK
    candidate_prefix: int = Field(default=DEFAULT_CANDIDATE_PREFIX, ge=1, le=32)
    subnet_divisions: int = Field(default=3, ge=0, le=MAX_SUBNET_DIVISIONS)

    @field_validator("base_network")
    @classmethod
    def _validate_base_network(cls, value: str) -> str:
        parse_block(value)
        return value


class ProvisioningConfig(BaseModel):
    """Retry policy for allocate-then-provision."""

    max_attempts: int = Field(default=3, ge=1, le=10)
    retry_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=5.0, ge=0)
    backoff_factor: float = Field(default=2.0, ge=1)


class RemoteConfig(BaseModel):
    """Remote stack service settings."""

    region: str | None = None
    list_timeout: float = Field(default=STACK_LIST_TIMEOUT, gt=0)
    create_timeout: float = Field(default=STACK_CREATE_TIMEOUT, gt=0)


class TemplateConfig(BaseModel):
    """Template rendering settings."""

    template_dir: str = "formation"
    render_timeout: float = Field(default=TEMPLATE_RENDER_TIMEOUT, gt=0)


class LoggingConfig(BaseModel):
    """Logging settings."""

    log_level: str = "INFO"
    log_dir: str = "logs"
    unknown_status_log_level: str = "WARNING"


class StackPlaneConfig(BaseSettings):
    """Main configuration for stackplane."""

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    provisioning: ProvisioningConfig = Field(default_factory=ProvisioningConfig)
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    templates: TemplateConfig = Field(default_factory=TemplateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_file: str = Field(default=DEFAULT_CONFIG_FILE, alias="STACKPLANE_CONFIG")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


SECTIONS: dict[str, type[BaseModel]] = {
    "network": NetworkConfig,
    "provisioning": ProvisioningConfig,
    "remote": RemoteConfig,
    "templates": TemplateConfig,
    "logging": LoggingConfig,
}


def load_config(config_path: str | None = None) -> StackPlaneConfig:
    """Load configuration from multiple sources (synchronous interface).

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Note:
        This function safely handles both sync and async contexts.
        For async code, use load_config_async() instead.
    """
    try:
        asyncio.get_running_loop()
        raise RuntimeError(
            "load_config() cannot be called from within an async context. "
            "Use 'await load_config_async()' instead."
        )
    except RuntimeError as e:
        if "no running event loop" in str(e).lower():
            return asyncio.run(load_config_async(config_path))
        raise


async def load_config_async(config_path: str | None = None) -> StackPlaneConfig:
    """Load configuration from multiple sources (async interface).

    Sources in increasing priority: defaults, user config
    (``~/.config/stackplane/stackplane.yml``), project config, environment.

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Loaded configuration

    Raises:
        ValueError: If a config file cannot be read or parsed
        ConfigurationError: If a config value is invalid
    """
    load_dotenv()

    config = StackPlaneConfig()

    user_config_path = Path.home() / ".config" / "stackplane" / "stackplane.yml"
    await _load_config_file(config, user_config_path)

    default_config_file = os.getenv("STACKPLANE_CONFIG", DEFAULT_CONFIG_FILE)
    project_config_path = Path(config_path or default_config_file)
    await _load_config_file(config, project_config_path)

    config.config_file = str(project_config_path)

    _apply_env_overrides(config)

    return config


async def _load_config_file(config: StackPlaneConfig, config_path: Path) -> None:
    """Load and apply configuration from a YAML file."""
    if not config_path.exists():
        return

    yaml_config = await _load_yaml_config(config_path)
    _apply_sections(config, yaml_config)


def _apply_sections(config: StackPlaneConfig, yaml_config: dict[str, Any]) -> None:
    """Merge each known YAML section over the current section values."""
    for section, model in SECTIONS.items():
        values = yaml_config.get(section)
        if not values:
            continue
        if not isinstance(values, dict):
            raise ConfigurationError(f"Config section '{section}' must be a mapping")

        current = getattr(config, section).model_dump()
        current.update(values)
        try:
            setattr(config, section, model(**current))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid '{section}' configuration: {e}") from e


def _apply_env_overrides(config: StackPlaneConfig) -> None:
    """Apply environment variable overrides."""
    overrides: dict[str, dict[str, Any]] = {}
    if region := os.getenv("AWS_REGION"):
        overrides["remote"] = {"region": region}
    if log_level := os.getenv("LOG_LEVEL"):
        overrides["logging"] = {"log_level": log_level}
    if base_network := os.getenv("STACKPLANE_BASE_NETWORK"):
        overrides["network"] = {"base_network": base_network}
    if overrides:
        _apply_sections(config, overrides)


async def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load YAML configuration file."""
    try:
        content = await asyncio.to_thread(config_path.read_text)

        content = _expand_yaml_config(content)

        loaded = yaml.safe_load(content)
        # yaml.safe_load can return None, str, list, etc.
        if not isinstance(loaded, dict):
            return {}
        return loaded
    except Exception as e:
        raise ValueError(f"Failed to load config from {config_path}: {e}") from e


def _expand_yaml_config(content: str) -> str:
    """Securely expand environment variables with allowlist."""

    allowed_env_vars = {
        "HOME",
        "USER",
        "XDG_CONFIG_HOME",
        "AWS_REGION",
        "AWS_DEFAULT_REGION",
        "LOG_LEVEL",
        "STACKPLANE_CONFIG",
        "STACKPLANE_BASE_NETWORK",
        "STACKPLANE_TEMPLATE_DIR",
    }

    def replace_if_allowed(match: re.Match[str]) -> str:
        var_name = match.group(1) or match.group(2)
        original_pattern = match.group(0)

        if var_name in allowed_env_vars:
            return os.getenv(var_name, original_pattern)  # Keep original if not found
        logger.warning(
            "Environment variable not in allowlist, skipping expansion",
            variable=var_name,
            pattern=original_pattern,
        )
        return original_pattern

    return re.sub(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)", replace_if_allowed, content)
