"""Command-line entry point for recovery-engine.

Loads configuration, configures logging, builds a RecoveryEngine and
replays simulated component faults through it, printing the recovery
actions and the resulting health snapshot as JSON. Useful for checking a
configuration and the wired fallback chains before deploying them.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

from recovery_engine.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    MainConfig,
    load_main_config,
)
from recovery_engine.core.engine import RecoveryEngine
from recovery_engine.core.snapshot import snapshot_to_dict
from recovery_engine.integration.fallbacks import register_default_fallbacks
from recovery_engine.types import CareSetting, Component, ErrorContext, Severity, SystemFault
from recovery_engine.utils.logging import configure_logging

__all__ = ["main", "parse_simulation"]

DEFAULT_CONFIG_PATH: Path = Path("config/recovery-engine.yaml")

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RUNTIME_ERROR = 1


@dataclass(slots=True, frozen=True)
class SimulatedFault:
    component: Component
    severity: Severity
    message: str


def parse_simulation(value: str) -> SimulatedFault:
    """Parse a ``COMPONENT:SEVERITY[:MESSAGE]`` simulation argument.

    Example:
        >>> parse_simulation("avatar-rendering:critical:WebGL context lost")
        SimulatedFault(component=<Component.AVATAR_RENDERING: 'avatar-rendering'>, severity=<Severity.CRITICAL: 'critical'>, message='WebGL context lost')
    """
    parts = value.split(":", 2)
    if len(parts) < 2:
        msg = f"expected COMPONENT:SEVERITY[:MESSAGE], got {value!r}"
        raise argparse.ArgumentTypeError(msg)
    component_raw, severity_raw = parts[0].strip(), parts[1].strip().lower()
    try:
        component = Component(component_raw)
    except ValueError:
        choices = ", ".join(c.value for c in Component)
        msg = f"unknown component {component_raw!r} (choose from: {choices})"
        raise argparse.ArgumentTypeError(msg) from None
    try:
        severity = Severity(severity_raw)
    except ValueError:
        choices = ", ".join(s.value for s in Severity)
        msg = f"unknown severity {severity_raw!r} (choose from: {choices})"
        raise argparse.ArgumentTypeError(msg) from None
    message = parts[2].strip() if len(parts) == 3 and parts[2].strip() else f"Simulated {severity} fault"
    return SimulatedFault(component=component, severity=severity, message=message)


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    CLI Arguments:
        --config, -c: Path to configuration file
        --log-level: Override log level from config
        --no-syslog: Disable syslog integration
        --emergency: Dispatch simulated faults under emergency context
        --simulate: Fault to dispatch, repeatable
    """
    parser = argparse.ArgumentParser(
        prog="recovery-engine",
        description="Replay component faults through the communication-aid recovery engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  recovery-engine --simulate speech-recognition:major:"microphone timeout"
  recovery-engine --emergency --simulate avatar-rendering:critical
  recovery-engine --config /etc/recovery-engine.yaml --log-level DEBUG
        """,
    )

    _ = parser.add_argument(
        "--config",
        "-c",
        type=Path,
        default=None,
        help=f"Path to configuration file (default: {DEFAULT_CONFIG_PATH} if present, else built-in defaults)",
        metavar="PATH",
    )

    _ = parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override log level from configuration",
        metavar="LEVEL",
    )

    _ = parser.add_argument(
        "--no-syslog",
        action="store_true",
        help="Disable syslog integration (useful for development)",
    )

    _ = parser.add_argument(
        "--emergency",
        action="store_true",
        help="Dispatch simulated faults with emergency context",
    )

    _ = parser.add_argument(
        "--simulate",
        type=parse_simulation,
        action="append",
        default=[],
        help="Simulated fault as COMPONENT:SEVERITY[:MESSAGE] (repeatable)",
        metavar="FAULT",
    )

    return parser.parse_args(argv)


def resolve_config(config_path: Path | None) -> MainConfig:
    """Load the given file, the default file if it exists, or built-in defaults."""
    if config_path is not None:
        return load_main_config(config_path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_main_config(DEFAULT_CONFIG_PATH)
    return MainConfig()


async def async_main(
    *,
    config_path: Path | None,
    simulations: Sequence[SimulatedFault],
    emergency: bool = False,
    log_level: str | None = None,
    enable_syslog: bool = True,
) -> dict[str, object]:
    """Build the engine, replay simulated faults and return the report.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    config = resolve_config(config_path)

    if log_level is not None:
        config.application.log_level = log_level

    configure_logging(
        log_level=config.application.log_level,
        enable_syslog=enable_syslog and config.application.syslog_enabled,
        enable_console=True,
    )
    logger = logging.getLogger(__name__)

    engine = RecoveryEngine.from_config(config)
    if config.application.register_default_fallbacks:
        _ = register_default_fallbacks(engine)

    context = (
        ErrorContext(setting=CareSetting.EMERGENCY, is_emergency_mode=True)
        if emergency
        else ErrorContext()
    )
    logger.info("Replaying %d simulated fault(s)", len(simulations))

    actions: list[dict[str, object]] = []
    try:
        for simulated in simulations:
            fault = SystemFault.create(
                simulated.component,
                simulated.severity,
                simulated.message,
                prefix="simulated",
            )
            action = await engine.handle_error(fault, context)
            actions.append(
                {
                    "component": str(simulated.component),
                    "severity": str(simulated.severity),
                    "kind": str(action.kind),
                    "description": action.description,
                    "estimated_recovery_time_ms": action.estimated_recovery_time_ms,
                    "user_notification": action.user_notification,
                    "audio_alert": action.audio_alert,
                }
            )
    finally:
        await engine.shutdown()

    return {"actions": actions, "health": snapshot_to_dict(engine.get_system_health())}


def main(argv: Sequence[str] | None = None) -> NoReturn:
    """Main entry point for recovery-engine.

    Exit Codes:
        0: Report printed
        1: Configuration error or runtime error
    """
    args = parse_arguments(argv)

    config_path_arg: Path | None = args.config  # pyright: ignore[reportAny]  # argparse boundary
    simulations_arg: list[SimulatedFault] = args.simulate  # pyright: ignore[reportAny]  # argparse boundary
    emergency_arg: bool = args.emergency  # pyright: ignore[reportAny]  # argparse boundary
    log_level_arg: str | None = args.log_level  # pyright: ignore[reportAny]  # argparse boundary
    no_syslog_arg: bool = args.no_syslog  # pyright: ignore[reportAny]  # argparse boundary

    try:
        report = asyncio.run(
            async_main(
                config_path=config_path_arg,
                simulations=simulations_arg,
                emergency=emergency_arg,
                log_level=log_level_arg,
                enable_syslog=not no_syslog_arg,
            )
        )

    except ConfigurationError as exc:
        print(f"Configuration error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except EnvironmentVariableError as exc:
        print(f"Environment variable error:\n{exc}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    except Exception as exc:
        print(f"Unexpected error: {exc}", file=sys.stderr)
        logging.exception("Unexpected error during execution")
        sys.exit(EXIT_RUNTIME_ERROR)

    print(json.dumps(report, indent=2))
    sys.exit(EXIT_SUCCESS)


if __name__ == "__main__":
    main()
