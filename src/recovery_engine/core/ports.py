"""Default side-effect ports that only log.

Hosts replace these with adapters that actually sound alerts, show
notifications, bypass processing or probe components.
"""

from __future__ import annotations

import logging

from recovery_engine.types import AlertType, Component
from recovery_engine.utils.logging import get_logger, log_with_context

__all__ = [
    "LoggingAlertPort",
    "LoggingBypassHook",
    "LoggingNotificationSink",
    "LoggingRestartHook",
]


class LoggingAlertPort:
    def __init__(self, logger_obj: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def trigger(self, alert_type: AlertType) -> None:
        log_with_context(
            self._logger,
            logging.WARNING,
            "Alert requested",
            extra={"alert_type": str(alert_type)},
        )


class LoggingNotificationSink:
    def __init__(self, logger_obj: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    def notify(self, message: str, *, audio_alert: bool = False) -> None:
        log_with_context(
            self._logger,
            logging.INFO,
            "User notification",
            extra={"notification": message, "audio_alert": audio_alert},
        )


class LoggingBypassHook:
    def __init__(self, logger_obj: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def engage(self, component: Component | None) -> None:
        log_with_context(
            self._logger,
            logging.WARNING,
            "Bypass engaged",
            extra={"component": str(component) if component else "system"},
        )


class LoggingRestartHook:
    def __init__(self, logger_obj: logging.Logger | None = None) -> None:
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def restart(self, component: Component) -> None:
        self._logger.info("Restart requested for %s", component)
