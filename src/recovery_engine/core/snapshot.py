"""Read-only health snapshot combining registry state and recent audit entries."""

from __future__ import annotations

import time
from collections.abc import Callable
from datetime import timedelta

from recovery_engine.core.audit import AuditLog
from recovery_engine.core.config import EngineSettings
from recovery_engine.core.health import ComponentHealthRegistry
from recovery_engine.types import (
    Clock,
    ComponentStatus,
    HealthStatus,
    Outcome,
    OverallHealth,
    RecoveryAction,
    SystemFault,
    utc_now,
)

__all__ = ["HealthSnapshotAggregator", "overall_for", "snapshot_to_dict"]


def overall_for(worst: ComponentStatus) -> OverallHealth:
    """Map the worst component status onto the system-wide health level."""
    match worst:
        case ComponentStatus.FAILED:
            return OverallHealth.CRITICAL
        case ComponentStatus.DEGRADED:
            return OverallHealth.DEGRADED
        case ComponentStatus.OPERATIONAL:
            return OverallHealth.HEALTHY


class HealthSnapshotAggregator:
    """Build HealthStatus snapshots for one engine instance.

    Active errors are failed audit entries within ``active_window_seconds``
    (5 minutes by default); recovery actions are the actions of every audit
    entry in that window.
    """

    def __init__(
        self,
        health: ComponentHealthRegistry,
        audit: AuditLog,
        *,
        settings: EngineSettings | None = None,
        clock: Clock = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._health: ComponentHealthRegistry = health
        self._audit: AuditLog = audit
        self._settings: EngineSettings = settings or EngineSettings()
        self._clock: Clock = clock
        self._monotonic: Callable[[], float] = monotonic
        self._started: float = monotonic()

    def snapshot(self) -> HealthStatus:
        now = self._clock()
        recent = self._audit.since(now - timedelta(seconds=self._settings.active_window_seconds))
        active_errors: tuple[SystemFault, ...] = tuple(
            entry.error for entry in recent if entry.outcome is Outcome.FAILED
        )
        recovery_actions: tuple[RecoveryAction, ...] = tuple(entry.recovery_action for entry in recent)

        return HealthStatus(
            overall=overall_for(self._health.worst_status()),
            components=self._health.snapshot(),
            active_errors=active_errors,
            recovery_actions=recovery_actions,
            uptime_ms=int((self._monotonic() - self._started) * 1000),
            last_health_check=now,
        )


def snapshot_to_dict(status: HealthStatus) -> dict[str, object]:
    """Render a snapshot as JSON-compatible data."""
    return {
        "overall": str(status.overall),
        "components": {str(component): str(state) for component, state in status.components.items()},
        "active_errors": [
            {
                "id": fault.id,
                "component": str(fault.component),
                "severity": str(fault.severity),
                "message": fault.message,
                "timestamp": fault.timestamp.isoformat(),
                "retry_count": fault.retry_count,
            }
            for fault in status.active_errors
        ],
        "recovery_actions": [
            {
                "kind": str(action.kind),
                "description": action.description,
                "estimated_recovery_time_ms": action.estimated_recovery_time_ms,
                "user_notification": action.user_notification,
                "audio_alert": action.audio_alert,
            }
            for action in status.recovery_actions
        ],
        "uptime_ms": status.uptime_ms,
        "last_health_check": status.last_health_check.isoformat(),
    }
