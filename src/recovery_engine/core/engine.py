"""Recovery engine facade.

``RecoveryEngine`` wires one audit log, health registry, fallback registry,
error dispatcher, retry executor, escalation controller and snapshot
aggregator together. Each instance is independent, so hosts and test
suites can run several side by side.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable

from recovery_engine.core.audit import AuditLog
from recovery_engine.core.config import EngineSettings, MainConfig
from recovery_engine.core.dispatcher import ErrorDispatcher
from recovery_engine.core.escalation import EmergencyEscalationController
from recovery_engine.core.fallback import FallbackChainRegistry
from recovery_engine.core.health import ComponentHealthRegistry
from recovery_engine.core.ports import (
    LoggingAlertPort,
    LoggingBypassHook,
    LoggingNotificationSink,
    LoggingRestartHook,
)
from recovery_engine.core.retry import RetryExecutor
from recovery_engine.core.snapshot import HealthSnapshotAggregator
from recovery_engine.types import (
    AlertPort,
    AlertType,
    BypassHook,
    Clock,
    Component,
    ComponentStatus,
    CriticalFailure,
    ErrorContext,
    ErrorLog,
    FallbackStrategy,
    HealthStatus,
    HealthVerifier,
    NotificationSink,
    Operation,
    OperationResult,
    Outcome,
    RecoveryAction,
    RecoveryKind,
    RestartHook,
    Severity,
    SystemFault,
    UserImpact,
    utc_now,
)
from recovery_engine.utils.logging import get_logger, log_with_context
from recovery_engine.utils.sanitization import sanitize_exception

__all__ = ["FALLBACK_MODE_KINDS", "RecoveryEngine"]

# Canonical degraded mode per component when fallback mode is engaged directly
FALLBACK_MODE_KINDS: dict[Component, RecoveryKind] = {
    Component.SPEECH_RECOGNITION: RecoveryKind.MANUAL_INPUT,
    Component.SIGN_RECOGNITION: RecoveryKind.ALTERNATIVE_METHOD,
    Component.AI_MEDIATION: RecoveryKind.EMERGENCY_BYPASS,
    Component.AVATAR_RENDERING: RecoveryKind.TEXT_ONLY,
}


class RecoveryEngine:
    """Error recovery engine for one communication session host.

    Args:
        components: Components tracked by this instance (defaults to all)
        settings: Runtime settings (defaults reproduce production values)
        alert_port: Port used to request alerts
        notification_sink: Port receiving user-facing notifications
        bypass_hook: Hook engaging bypass processing in emergencies
        restart_hook: Hook run before verifying a recovery (defaults to logging only)
        verifier: Default health verifier for ``recover_component``
        clock: Wall clock for audit timestamps and snapshots
        monotonic: Monotonic clock for uptime and escalation windows
    """

    def __init__(
        self,
        components: Iterable[Component] | None = None,
        *,
        settings: EngineSettings | None = None,
        alert_port: AlertPort | None = None,
        notification_sink: NotificationSink | None = None,
        bypass_hook: BypassHook | None = None,
        restart_hook: RestartHook | None = None,
        verifier: HealthVerifier | None = None,
        clock: Clock = utc_now,
        monotonic: Callable[[], float] = time.monotonic,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._settings: EngineSettings = settings or EngineSettings()
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._notification_sink: NotificationSink = notification_sink or LoggingNotificationSink()
        self._restart_hook: RestartHook = restart_hook or LoggingRestartHook()
        self._verifier: HealthVerifier | None = verifier

        tracked = tuple(dict.fromkeys(components if components is not None else Component))
        self._audit: AuditLog = AuditLog(self._settings.audit_capacity)
        self._health: ComponentHealthRegistry = ComponentHealthRegistry(tracked, clock=clock)
        self._fallbacks: FallbackChainRegistry = FallbackChainRegistry(tracked)
        self._dispatcher: ErrorDispatcher = ErrorDispatcher(
            self._health,
            self._fallbacks,
            self._audit,
            settings=self._settings,
            clock=clock,
        )
        self._retry: RetryExecutor = RetryExecutor(self._audit, settings=self._settings, clock=clock)
        self._escalation: EmergencyEscalationController = EmergencyEscalationController(
            self._health,
            self._audit,
            alert_port=alert_port or LoggingAlertPort(),
            notification_sink=self._notification_sink,
            bypass_hook=bypass_hook or LoggingBypassHook(),
            settings=self._settings,
            clock=clock,
            monotonic=monotonic,
        )
        self._snapshots: HealthSnapshotAggregator = HealthSnapshotAggregator(
            self._health,
            self._audit,
            settings=self._settings,
            clock=clock,
            monotonic=monotonic,
        )

    @classmethod
    def from_config(
        cls,
        config: MainConfig,
        *,
        alert_port: AlertPort | None = None,
        notification_sink: NotificationSink | None = None,
        bypass_hook: BypassHook | None = None,
        restart_hook: RestartHook | None = None,
        verifier: HealthVerifier | None = None,
    ) -> RecoveryEngine:
        """Build an engine from validated configuration."""
        return cls(
            config.engine.components,
            settings=config.to_settings(),
            alert_port=alert_port,
            notification_sink=notification_sink,
            bypass_hook=bypass_hook,
            restart_hook=restart_hook,
            verifier=verifier,
        )

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def components(self) -> tuple[Component, ...]:
        return self._health.components

    @property
    def escalation(self) -> EmergencyEscalationController:
        """Escalation controller, exposed for the integration layer's policy checks."""
        return self._escalation

    @property
    def notification_sink(self) -> NotificationSink:
        return self._notification_sink

    @property
    def emergency_mode(self) -> bool:
        return self._escalation.emergency_mode

    # ------------------------------------------------------------------
    # Ingress
    # ------------------------------------------------------------------

    async def handle_error(self, fault: SystemFault, context: ErrorContext | None = None) -> RecoveryAction:
        """Report a failure and receive the action the caller should take.

        Never raises and always returns an action. When the fault leaves its
        component failed, the component's pending retries are cancelled.
        """
        was_failed = self._is_failed(fault.component)
        action = await self._dispatcher.handle_error(fault, context or ErrorContext())
        if not was_failed and self._is_failed(fault.component):
            self._cancel_retries_for_failed(fault.component)
        return action

    def register_fallback(self, component: Component, strategy: FallbackStrategy) -> None:
        """Append a recovery strategy to a component's fallback chain.

        Raises:
            UnknownComponentError: If the component is not tracked by this engine
        """
        position = self._fallbacks.register(component, strategy)
        self._logger.debug("Registered fallback at position %d for %s", position, component)

    async def retry_operation[T](
        self,
        operation: Operation[T],
        max_retries: int | None = None,
    ) -> OperationResult[T]:
        """Execute an operation with bounded retries and exponential backoff."""
        return await self._retry.retry_operation(operation, max_retries)

    async def handle_critical_failure(self, failure: CriticalFailure) -> None:
        """Run the emergency protocol for a catastrophic failure. Never raises."""
        await self._escalation.handle_critical_failure(failure)
        if self._is_failed(failure.component):
            self._cancel_retries_for_failed(failure.component)

    def trigger_audio_alert(self, alert_type: AlertType = AlertType.AUDIO) -> None:
        self._escalation.trigger_audio_alert(alert_type)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_error_history(self) -> tuple[ErrorLog, ...]:
        """Return the audit trail, oldest entry first."""
        return self._audit.entries()

    def get_system_health(self) -> HealthStatus:
        return self._snapshots.snapshot()

    def get_component_health(self, component: Component) -> ComponentStatus:
        return self._health.get_health(component)

    def get_retry_count(self, component: Component, operation_id: str) -> int:
        return self._retry.get_retry_count(component, operation_id)

    def reset_retry_counter(self, component: Component, operation_id: str) -> None:
        self._retry.reset_retry_counter(component, operation_id)

    # ------------------------------------------------------------------
    # Recovery and lifecycle
    # ------------------------------------------------------------------

    async def recover_component(
        self,
        component: Component,
        verifier: HealthVerifier | None = None,
    ) -> bool:
        """Restart and verify a component, returning it to operational on success.

        The component only becomes operational when the verifier confirms it.
        Without any verifier the attempt is recorded as failed. Never raises.
        """
        if component not in self._health:
            self._logger.warning("Recovery requested for untracked component %s", component)
            return False

        check = verifier or self._verifier
        reason = "verification succeeded"
        verified = False
        try:
            await self._restart_hook.restart(component)
            if check is None:
                reason = "no health verifier configured"
            else:
                verified = bool(await check.verify(component))
                if not verified:
                    reason = "verification failed"
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            reason = f"recovery raised {sanitize_exception(exc)}"

        recovered = self._health.recover_component(component, verified=verified)
        outcome = Outcome.RECOVERED if recovered else Outcome.FAILED
        _ = self._audit.append(
            ErrorLog(
                timestamp=self._clock(),
                error=SystemFault.create(
                    component,
                    Severity.WARNING,
                    f"Recovery attempt for {component}: {reason}",
                    prefix="recovery",
                    timestamp=self._clock(),
                ),
                context=ErrorContext(),
                recovery_action=RecoveryAction(
                    kind=RecoveryKind.RETRY,
                    description=f"Restart and verify {component}",
                    estimated_recovery_time_ms=0,
                ),
                outcome=outcome,
                user_impact=UserImpact.NONE,
            )
        )
        log_with_context(
            self._logger,
            logging.INFO if recovered else logging.WARNING,
            "Component recovery attempt finished",
            extra={"component": str(component), "recovered": recovered, "reason": reason},
        )
        return recovered

    def engage_fallback_mode(self, component: Component) -> RecoveryKind:
        """Switch a component to its canonical degraded mode.

        An operational component becomes degraded; a failed one stays failed.
        """
        kind = FALLBACK_MODE_KINDS.get(component, RecoveryKind.DEGRADED_FUNCTIONALITY)
        if component in self._health:
            status = self._health.degrade(component)
        else:
            status = None
        log_with_context(
            self._logger,
            logging.WARNING,
            "Fallback mode engaged",
            extra={
                "component": str(component),
                "recovery_kind": str(kind),
                "status": str(status) if status else "untracked",
            },
        )
        return kind

    async def activate_emergency_mode(self, reason: str, *, component: Component | None = None) -> bool:
        return await self._escalation.activate(reason, component=component)

    def deactivate_emergency_mode(self) -> None:
        self._escalation.deactivate()

    def cancel_retries(self, component: Component | None = None) -> int:
        """Abort pending backoff waits for one component, or for every component."""
        return self._retry.cancel(component)

    def _is_failed(self, component: Component) -> bool:
        return component in self._health and self._health.get_health(component) is ComponentStatus.FAILED

    def _cancel_retries_for_failed(self, component: Component) -> None:
        cancelled = self._retry.cancel(component)
        if cancelled:
            log_with_context(
                self._logger,
                logging.WARNING,
                "Pending retries cancelled for failed component",
                extra={"component": str(component), "cancelled": cancelled},
            )

    async def shutdown(self) -> None:
        """Cancel every pending retry and let cancelled waits unwind."""
        cancelled = self._retry.cancel()
        # Give retry loops woken by their tokens a chance to record their outcome
        await asyncio.sleep(0)
        self._logger.info("Recovery engine shut down (%d pending retries cancelled)", cancelled)
