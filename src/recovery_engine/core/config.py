"""Configuration system for the recovery engine.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages. The validated configuration is
converted into an immutable ``EngineSettings`` block consumed at runtime.
"""

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Final, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from recovery_engine.types import Component

# Matches ${VARIABLE_NAME} syntax where VARIABLE_NAME can contain letters, digits, and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


@dataclass(slots=True, frozen=True)
class EngineSettings:
    """Immutable runtime settings for a RecoveryEngine instance.

    Defaults reproduce the behavior of a medical deployment: 100 audit
    entries, a 5 minute active-error window, 3 retries with 1s..10s
    exponential backoff and emergency escalation after more than 3 errors
    per minute for the same component.
    """

    audit_capacity: int = 100
    active_window_seconds: float = 300.0
    strategy_timeout_ms: int = 2000
    max_retries: int = 3
    operation_timeout_ms: int = 5000
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 10000
    error_threshold: int = 3
    window_seconds: float = 60.0
    emergency_recovery_bound_ms: int = 5000
    normal_recovery_bound_ms: int = 10000


class EngineConfig(BaseModel):
    """Configuration for the engine core.

    Defines the tracked component set, audit trail capacity and how long
    failed audit entries count as active errors in health snapshots.
    """

    components: Annotated[
        list[Component],
        Field(
            description="Components tracked by the health registry",
        ),
    ] = list(Component)
    audit_capacity: Annotated[
        int,
        Field(
            gt=0,
            description="Maximum number of audit log entries retained",
        ),
    ] = 100
    active_window_seconds: Annotated[
        float,
        Field(
            gt=0,
            description="Window in seconds for active errors in health snapshots",
        ),
    ] = 300.0
    strategy_timeout_ms: Annotated[
        int,
        Field(
            gt=0,
            description="Maximum time a single fallback strategy may run",
        ),
    ] = 2000

    @field_validator("components", mode="after")
    @classmethod
    def validate_components_unique(cls, v: list[Component]) -> list[Component]:
        """Validate that the component list is non-empty and has no duplicates.

        Args:
            v: List of components

        Returns:
            Validated components

        Raises:
            ValueError: If the list is empty or contains duplicates
        """
        if not v:
            msg = "At least one component must be tracked"
            raise ValueError(msg)
        if len(set(v)) != len(v):
            msg = f"Duplicate component(s) in list: {', '.join(sorted({str(c) for c in v if v.count(c) > 1}))}"
            raise ValueError(msg)
        return v


class RetryConfig(BaseModel):
    """Configuration for bounded retry with exponential backoff."""

    max_retries: Annotated[
        int,
        Field(
            ge=1,
            description="Maximum attempts per operation before a terminal failure",
        ),
    ] = 3
    operation_timeout_ms: Annotated[
        int,
        Field(
            gt=0,
            description="Default timeout for a single operation attempt",
        ),
    ] = 5000
    backoff_base_ms: Annotated[
        int,
        Field(
            ge=0,
            description="Backoff before the second attempt, doubled per attempt",
        ),
    ] = 1000
    backoff_cap_ms: Annotated[
        int,
        Field(
            ge=0,
            description="Upper bound for a single backoff delay",
        ),
    ] = 10000

    @model_validator(mode="after")
    def validate_backoff_bounds(self) -> Self:
        if self.backoff_cap_ms < self.backoff_base_ms:
            msg = (
                f"backoff_cap_ms ({self.backoff_cap_ms}) must be >= "
                f"backoff_base_ms ({self.backoff_base_ms})"
            )
            raise ValueError(msg)
        return self


class EscalationConfig(BaseModel):
    """Configuration for emergency escalation policy and recovery time bounds."""

    error_threshold: Annotated[
        int,
        Field(
            ge=1,
            description="Errors per component tolerated within the window before escalating",
        ),
    ] = 3
    window_seconds: Annotated[
        float,
        Field(
            gt=0,
            description="Rolling window in seconds for counting errors",
        ),
    ] = 60.0
    emergency_recovery_bound_ms: Annotated[
        int,
        Field(
            ge=0,
            description="Expected upper bound for recovery time under emergency context",
        ),
    ] = 5000
    normal_recovery_bound_ms: Annotated[
        int,
        Field(
            ge=0,
            description="Expected upper bound for recovery time outside emergencies",
        ),
    ] = 10000


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"
    syslog_enabled: Annotated[
        bool,
        Field(
            description="Enable syslog integration",
        ),
    ] = False
    register_default_fallbacks: Annotated[
        bool,
        Field(
            description="Wire the built-in context-aware fallback strategies at startup",
        ),
    ] = True


class MainConfig(BaseModel):
    """Main configuration schema.

    Top-level configuration container aggregating all configuration sections:
    - engine: Tracked components, audit capacity, strategy timeout
    - retry: Retry attempts, timeouts and backoff
    - escalation: Emergency escalation policy
    - application: Logging and startup wiring
    """

    engine: Annotated[
        EngineConfig,
        Field(
            description="Engine core configuration",
        ),
    ] = EngineConfig()
    retry: Annotated[
        RetryConfig,
        Field(
            description="Retry executor configuration",
        ),
    ] = RetryConfig()
    escalation: Annotated[
        EscalationConfig,
        Field(
            description="Emergency escalation configuration",
        ),
    ] = EscalationConfig()
    application: Annotated[
        ApplicationConfig,
        Field(
            description="Application-level configuration",
        ),
    ] = ApplicationConfig()

    def to_settings(self) -> EngineSettings:
        """Convert configuration to the engine's immutable runtime settings."""
        return EngineSettings(
            audit_capacity=self.engine.audit_capacity,
            active_window_seconds=self.engine.active_window_seconds,
            strategy_timeout_ms=self.engine.strategy_timeout_ms,
            max_retries=self.retry.max_retries,
            operation_timeout_ms=self.retry.operation_timeout_ms,
            backoff_base_ms=self.retry.backoff_base_ms,
            backoff_cap_ms=self.retry.backoff_cap_ms,
            error_threshold=self.escalation.error_threshold,
            window_seconds=self.escalation.window_seconds,
            emergency_recovery_bound_ms=self.escalation.emergency_recovery_bound_ms,
            normal_recovery_bound_ms=self.escalation.normal_recovery_bound_ms,
        )


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails."""


def resolve_env_var(value: str) -> str:
    """Resolve environment variable references in a string value.

    Args:
        value: String potentially containing environment variable references

    Returns:
        String with environment variables resolved

    Raises:
        EnvironmentVariableError: If a required environment variable is missing

    Examples:
        >>> os.environ["RE_LOG_LEVEL"] = "DEBUG"
        >>> resolve_env_var("${RE_LOG_LEVEL}")
        'DEBUG'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in a dictionary.

    Traverses nested dictionaries and lists, resolving environment variable
    references in string values. Non-string values are preserved as-is.

    Raises:
        EnvironmentVariableError: If a required environment variable is missing
    """
    result: dict[str, object] = {}

    for key, value in data.items():
        if isinstance(value, str):
            result[key] = resolve_env_var(value)
        elif isinstance(value, dict):
            result[key] = resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
        elif isinstance(value, list):
            resolved_list: list[object] = []
            for item in value:  # pyright: ignore[reportUnknownVariableType]  # YAML list items
                if isinstance(item, str):
                    resolved_list.append(resolve_env_var(item))
                elif isinstance(item, dict):
                    resolved_list.append(resolve_env_vars_in_dict(item))  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
                else:
                    resolved_list.append(item)  # pyright: ignore[reportUnknownArgumentType]  # YAML primitives
            result[key] = resolved_list
        else:
            result[key] = value

    return result


class ConfigurationError(Exception):
    """Exception raised when configuration loading or validation fails."""


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate the engine configuration from a YAML file.

    An empty file yields the all-defaults configuration.

    Args:
        config_path: Path to configuration YAML file

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If configuration file cannot be loaded or is invalid
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location.\n"
            f"See config/recovery-engine.yaml for the configuration file format."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        config = MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        error_lines = ["Configuration validation failed:", ""]
        for error in e.errors():
            field_path = " → ".join(str(loc) for loc in error["loc"])
            error_lines.append(f"  Field: {field_path}")
            error_lines.append(f"  Error: {error['msg']}")
            error_lines.append(f"  Type: {error['type']}")
            error_lines.append("")

        error_lines.append(f"Configuration file: {config_path}")
        error_lines.append("Please fix the above errors and try again.")

        msg = "\n".join(error_lines)
        raise ConfigurationError(msg) from e

    return config
