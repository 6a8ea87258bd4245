"""Unit tests for configuration system.

Tests for Pydantic configuration models including validation logic,
field validators, environment variable resolution and runtime settings
conversion.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from recovery_engine.core.config import (
    ENV_VAR_PATTERN,
    ApplicationConfig,
    ConfigurationError,
    EngineConfig,
    EngineSettings,
    EnvironmentVariableError,
    EscalationConfig,
    MainConfig,
    RetryConfig,
    load_main_config,
    resolve_env_var,
    resolve_env_vars_in_dict,
)
from recovery_engine.types import Component


@pytest.mark.unit
class TestEngineConfig:
    """Test EngineConfig validation and defaults."""

    def test_default_values(self) -> None:
        """Test default values track every component."""
        config = EngineConfig()

        assert config.components == list(Component)
        assert config.audit_capacity == 100
        assert config.active_window_seconds == 300.0
        assert config.strategy_timeout_ms == 2000

    def test_components_parsed_from_strings(self) -> None:
        config = EngineConfig.model_validate({"components": ["camera", "ai-mediation"]})

        assert config.components == [Component.CAMERA, Component.AI_MEDIATION]

    def test_unknown_component_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _ = EngineConfig.model_validate({"components": ["teleporter"]})

    def test_empty_component_list_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            _ = EngineConfig(components=[])

        assert "At least one component" in str(exc_info.value)

    def test_duplicate_components_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            _ = EngineConfig(components=[Component.CAMERA, Component.CAMERA])

        assert "Duplicate component(s) in list: camera" in str(exc_info.value)

    def test_audit_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            _ = EngineConfig(audit_capacity=0)

        assert "greater than 0" in str(exc_info.value).lower()


@pytest.mark.unit
class TestRetryConfig:
    """Test RetryConfig validation."""

    def test_default_values(self) -> None:
        config = RetryConfig()

        assert config.max_retries == 3
        assert config.operation_timeout_ms == 5000
        assert config.backoff_base_ms == 1000
        assert config.backoff_cap_ms == 10000

    def test_max_retries_must_be_at_least_one(self) -> None:
        with pytest.raises(ValidationError):
            _ = RetryConfig(max_retries=0)

    def test_cap_below_base_rejected(self) -> None:
        """Test the backoff cap may not be lower than the base delay."""
        with pytest.raises(ValidationError) as exc_info:
            _ = RetryConfig(backoff_base_ms=2000, backoff_cap_ms=1000)

        assert "backoff_cap_ms (1000) must be >= backoff_base_ms (2000)" in str(exc_info.value)

    def test_equal_cap_and_base_allowed(self) -> None:
        config = RetryConfig(backoff_base_ms=500, backoff_cap_ms=500)
        assert config.backoff_cap_ms == 500


@pytest.mark.unit
class TestEscalationConfig:
    def test_default_values(self) -> None:
        config = EscalationConfig()

        assert config.error_threshold == 3
        assert config.window_seconds == 60.0
        assert config.emergency_recovery_bound_ms == 5000
        assert config.normal_recovery_bound_ms == 10000

    def test_window_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _ = EscalationConfig(window_seconds=0)


@pytest.mark.unit
class TestApplicationConfig:
    """Test ApplicationConfig validation."""

    def test_default_values(self) -> None:
        config = ApplicationConfig()

        assert config.log_level == "INFO"
        assert config.syslog_enabled is False
        assert config.register_default_fallbacks is True

    def test_log_level_validation(self) -> None:
        """Test log_level must be a valid logging level name."""
        for level in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            assert ApplicationConfig(log_level=level).log_level == level

        with pytest.raises(ValidationError):
            _ = ApplicationConfig(log_level="VERBOSE")

        with pytest.raises(ValidationError):
            _ = ApplicationConfig(log_level="debug")


@pytest.mark.unit
class TestMainConfig:
    """Test MainConfig aggregation and runtime conversion."""

    def test_all_sections_default(self) -> None:
        config = MainConfig()

        assert config.engine == EngineConfig()
        assert config.retry == RetryConfig()
        assert config.escalation == EscalationConfig()
        assert config.application == ApplicationConfig()

    def test_defaults_convert_to_default_settings(self) -> None:
        assert MainConfig().to_settings() == EngineSettings()

    def test_to_settings_conversion(self) -> None:
        """Test every section is carried into the runtime settings."""
        config = MainConfig.model_validate(
            {
                "engine": {"audit_capacity": 10, "active_window_seconds": 30, "strategy_timeout_ms": 500},
                "retry": {"max_retries": 5, "operation_timeout_ms": 100, "backoff_base_ms": 10, "backoff_cap_ms": 80},
                "escalation": {
                    "error_threshold": 2,
                    "window_seconds": 15,
                    "emergency_recovery_bound_ms": 3000,
                    "normal_recovery_bound_ms": 8000,
                },
            }
        )

        settings = config.to_settings()

        assert settings == EngineSettings(
            audit_capacity=10,
            active_window_seconds=30.0,
            strategy_timeout_ms=500,
            max_retries=5,
            operation_timeout_ms=100,
            backoff_base_ms=10,
            backoff_cap_ms=80,
            error_threshold=2,
            window_seconds=15.0,
            emergency_recovery_bound_ms=3000,
            normal_recovery_bound_ms=8000,
        )


@pytest.mark.unit
class TestEnvironmentVariablePattern:
    def test_pattern_extracts_variable_name(self) -> None:
        match = ENV_VAR_PATTERN.search("level=${RE_LOG_LEVEL}")

        assert match is not None
        assert match.group(1) == "RE_LOG_LEVEL"

    def test_pattern_does_not_match_invalid_syntax(self) -> None:
        assert ENV_VAR_PATTERN.search("$RE_LOG_LEVEL") is None
        assert ENV_VAR_PATTERN.search("${lowercase}") is None


@pytest.mark.unit
class TestResolveEnvVar:
    def test_resolve_variable_in_string(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RE_WARD", "icu")

        assert resolve_env_var("ward-${RE_WARD}") == "ward-icu"

    def test_no_variables_returns_original(self) -> None:
        assert resolve_env_var("plain value") == "plain value"

    def test_missing_variable_raises_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RE_MISSING_VAR", raising=False)

        with pytest.raises(EnvironmentVariableError) as exc_info:
            _ = resolve_env_var("${RE_MISSING_VAR}")

        assert "RE_MISSING_VAR" in str(exc_info.value)

    def test_resolves_nested_structures(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RE_LEVEL", "DEBUG")
        monkeypatch.setenv("RE_COMPONENT", "camera")

        resolved = resolve_env_vars_in_dict(
            {
                "application": {"log_level": "${RE_LEVEL}", "syslog_enabled": False},
                "engine": {"components": ["${RE_COMPONENT}", {"name": "${RE_COMPONENT}"}, 7]},
            }
        )

        assert resolved == {
            "application": {"log_level": "DEBUG", "syslog_enabled": False},
            "engine": {"components": ["camera", {"name": "camera"}, 7]},
        }


@pytest.mark.unit
class TestLoadMainConfig:
    """Test loading configuration files from disk."""

    def test_loads_valid_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RE_LOG_LEVEL", "WARNING")
        config_file = tmp_path / "recovery-engine.yaml"
        _ = config_file.write_text(
            "application:\n  log_level: ${RE_LOG_LEVEL}\nretry:\n  max_retries: 4\n"
        )

        config = load_main_config(config_file)

        assert config.application.log_level == "WARNING"
        assert config.retry.max_retries == 4
        assert config.engine.components == list(Component)

    def test_empty_file_yields_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        _ = config_file.write_text("")

        assert load_main_config(config_file) == MainConfig()

    def test_shipped_example_config_is_valid(self) -> None:
        example = Path(__file__).resolve().parents[3] / "config" / "recovery-engine.yaml"

        assert load_main_config(example).to_settings() == EngineSettings()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(tmp_path / "absent.yaml")

        assert "Configuration file not found" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "broken.yaml"
        _ = config_file.write_text("engine: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(config_file)

        assert "Failed to parse YAML" in str(exc_info.value)

    def test_non_mapping_root(self, tmp_path: Path) -> None:
        config_file = tmp_path / "list.yaml"
        _ = config_file.write_text("- camera\n- microphone\n")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(config_file)

        assert "Expected YAML dictionary at root level, got: list" in str(exc_info.value)

    def test_missing_environment_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RE_UNSET_LEVEL", raising=False)
        config_file = tmp_path / "env.yaml"
        _ = config_file.write_text("application:\n  log_level: ${RE_UNSET_LEVEL}\n")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(config_file)

        assert "Environment variable resolution failed" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, EnvironmentVariableError)

    def test_validation_errors_name_the_field(self, tmp_path: Path) -> None:
        config_file = tmp_path / "invalid.yaml"
        _ = config_file.write_text("retry:\n  max_retries: 0\n")

        with pytest.raises(ConfigurationError) as exc_info:
            _ = load_main_config(config_file)

        message = str(exc_info.value)
        assert "Configuration validation failed" in message
        assert "retry → max_retries" in message
