"""Emergency escalation controller.

Owns the process-wide emergency flag for one engine instance together with
the per-component error counters the escalation policy is built on. The
controller requests alerts, bypass and notifications through injected
ports; it never renders anything itself.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime

from recovery_engine.core.audit import AuditLog
from recovery_engine.core.config import EngineSettings
from recovery_engine.core.exceptions import UnknownComponentError
from recovery_engine.core.health import ComponentHealthRegistry
from recovery_engine.types import (
    AlertPort,
    AlertType,
    BypassHook,
    CareSetting,
    Clock,
    Component,
    CriticalFailure,
    ErrorContext,
    ErrorLog,
    NotificationSink,
    Outcome,
    RecoveryAction,
    RecoveryKind,
    Severity,
    SystemFault,
    UserImpact,
    utc_now,
)
from recovery_engine.utils.logging import get_logger, log_with_context
from recovery_engine.utils.sanitization import sanitize_exception

__all__ = ["EmergencyEscalationController", "within_recovery_bound"]


def within_recovery_bound(
    action: RecoveryAction,
    context: ErrorContext,
    settings: EngineSettings,
) -> bool:
    """Return whether an action honours the expected recovery time.

    Emergency context tightens the bound (5000 ms by default versus
    10000 ms otherwise).
    """
    bound = (
        settings.emergency_recovery_bound_ms
        if context.signals_emergency
        else settings.normal_recovery_bound_ms
    )
    return action.estimated_recovery_time_ms <= bound


class EmergencyEscalationController:
    """Track error pressure and switch the engine into emergency mode.

    Args:
        health: Registry whose components are forced failed on critical failure
        audit: Audit trail receiving one entry per critical failure
        alert_port: Port used to request audio, visual or haptic alerts
        notification_sink: Port receiving user-facing notifications
        bypass_hook: Hook engaging bypass processing once emergency is active
        settings: Threshold and window for the rolling error count
        clock: Wall clock for audit timestamps
        monotonic: Monotonic clock in seconds for the rolling window
    """

    def __init__(
        self,
        health: ComponentHealthRegistry,
        audit: AuditLog,
        *,
        alert_port: AlertPort,
        notification_sink: NotificationSink,
        bypass_hook: BypassHook,
        settings: EngineSettings | None = None,
        clock: Clock = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._health: ComponentHealthRegistry = health
        self._audit: AuditLog = audit
        self._alert_port: AlertPort = alert_port
        self._notification_sink: NotificationSink = notification_sink
        self._bypass_hook: BypassHook = bypass_hook
        self._settings: EngineSettings = settings or EngineSettings()
        self._clock: Clock = clock
        self._monotonic: Callable[[], float] = monotonic
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

        self._emergency_mode: bool = False
        self._error_count: int = 0
        self._last_error_time: datetime | None = None
        self._recent: dict[Component, deque[float]] = {}

    @property
    def emergency_mode(self) -> bool:
        return self._emergency_mode

    @property
    def error_count(self) -> int:
        """Errors recorded since the last deactivation."""
        return self._error_count

    @property
    def last_error_time(self) -> datetime | None:
        return self._last_error_time

    def record_error(self, fault: SystemFault) -> int:
        """Count a fault toward the rolling window of its component.

        Returns:
            Number of errors for the fault's component inside the window
        """
        now = self._monotonic()
        window = self._recent.setdefault(fault.component, deque())
        window.append(now)
        self._prune(window, now)
        self._error_count += 1
        self._last_error_time = self._clock()
        return len(window)

    def recent_error_count(self, component: Component) -> int:
        window = self._recent.get(component)
        if window is None:
            return 0
        self._prune(window, self._monotonic())
        return len(window)

    def should_activate(self, fault: SystemFault, context: ErrorContext) -> bool:
        """Decide whether a fault warrants switching to emergency mode.

        Activation happens when the fault is critical, when the context
        signals an emergency, or when more than ``error_threshold`` errors
        for the same component occurred within the rolling window. Returns
        False while emergency mode is already active.
        """
        if self._emergency_mode:
            return False
        if fault.severity is Severity.CRITICAL:
            return True
        if context.signals_emergency:
            return True
        return self.recent_error_count(fault.component) > self._settings.error_threshold

    async def activate(self, reason: str, *, component: Component | None = None) -> bool:
        """Enter emergency mode and engage bypass.

        Returns:
            True if this call switched the mode on, False if it was already on
        """
        if self._emergency_mode:
            return False
        self._emergency_mode = True
        log_with_context(
            self._logger,
            logging.CRITICAL,
            "Emergency mode activated",
            extra={"reason": reason, "component": str(component) if component else "system"},
        )
        await self._engage_bypass(component)
        return True

    def deactivate(self) -> None:
        """Leave emergency mode and reset the error counters. Idempotent."""
        was_active = self._emergency_mode
        self._emergency_mode = False
        self._error_count = 0
        self._last_error_time = None
        self._recent.clear()
        if was_active:
            self._logger.info("Emergency mode deactivated")

    def trigger_audio_alert(self, alert_type: AlertType = AlertType.AUDIO) -> None:
        """Request an alert through the alert port; port failures are logged."""
        try:
            self._alert_port.trigger(alert_type)
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Alert port failed",
                extra={"alert_type": str(alert_type), "error_message": sanitize_exception(exc)},
            )

    async def handle_critical_failure(self, failure: CriticalFailure) -> None:
        """Run the emergency protocol for a failure known to be catastrophic.

        Sounds an audio alert, switches emergency mode on, engages bypass for
        the failed component, notifies the user when manual intervention is
        required, forces the component to failed (cascading components to
        degraded) and appends a failed audit entry. Never raises.
        """
        try:
            await self._run_protocol(failure)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Emergency protocol failed unexpectedly",
                extra={
                    "component": str(failure.component),
                    "error_message": sanitize_exception(exc),
                },
            )

    async def _run_protocol(self, failure: CriticalFailure) -> None:
        log_with_context(
            self._logger,
            logging.CRITICAL,
            "Critical failure reported",
            extra={
                "component": str(failure.component),
                "cascading_failures": [str(c) for c in failure.cascading_failures],
                "patient_safety_impact": failure.patient_safety_impact,
                "manual_intervention_required": failure.manual_intervention_required,
                "total_downtime_ms": failure.total_downtime_ms,
            },
        )

        self.trigger_audio_alert(AlertType.AUDIO)
        self._emergency_mode = True
        await self._engage_bypass(failure.component)

        notification = (
            "Critical system failure. Manual communication required. Please ask staff for assistance."
            if failure.manual_intervention_required
            else "Critical system failure. Emergency communication mode active."
        )
        if failure.manual_intervention_required:
            self._notify(notification)

        self._force_failed(failure.component)
        for cascading in failure.cascading_failures:
            if cascading == failure.component:
                continue
            try:
                _ = self._health.update_health(cascading, Severity.MAJOR)
            except UnknownComponentError:
                self._logger.warning("Cascading failure reported for untracked component %s", cascading)

        fault = (
            failure.errors[-1]
            if failure.errors
            else SystemFault.create(
                failure.component,
                Severity.CRITICAL,
                f"Critical failure in {failure.component}",
                prefix="critical",
                timestamp=self._clock(),
            )
        )
        _ = self._audit.append(
            ErrorLog(
                timestamp=self._clock(),
                error=fault,
                context=ErrorContext(setting=CareSetting.EMERGENCY, is_emergency_mode=True),
                recovery_action=RecoveryAction(
                    kind=RecoveryKind.EMERGENCY_BYPASS,
                    description="Emergency protocol engaged after critical failure",
                    estimated_recovery_time_ms=0,
                    user_notification=notification,
                    audio_alert=True,
                ),
                outcome=Outcome.FAILED,
                user_impact=UserImpact.CRITICAL,
            )
        )

    def _force_failed(self, component: Component) -> None:
        try:
            _ = self._health.force_failed(component)
        except UnknownComponentError:
            self._logger.warning("Critical failure reported for untracked component %s", component)

    def _notify(self, message: str) -> None:
        try:
            self._notification_sink.notify(message, audio_alert=True)
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Notification sink failed",
                extra={"error_message": sanitize_exception(exc)},
            )

    async def _engage_bypass(self, component: Component | None) -> None:
        try:
            await self._bypass_hook.engage(component)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Bypass hook failed",
                extra={
                    "component": str(component) if component else "system",
                    "error_message": sanitize_exception(exc),
                },
            )

    def _prune(self, window: deque[float], now: float) -> None:
        cutoff = now - self._settings.window_seconds
        while window and window[0] < cutoff:
            _ = window.popleft()
