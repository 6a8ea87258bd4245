"""Error dispatcher walking per-component fallback chains.

This module implements the ErrorDispatcher, the single entry point through
which collaborators report failures. Every call records an audit entry,
worsens component health according to severity and walks the component's
fallback chain until a strategy produces a RecoveryAction. When no strategy
does, a default emergency-bypass action is synthesized so callers always
receive an instruction.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
import time

from recovery_engine.core.audit import AuditLog
from recovery_engine.core.config import EngineSettings
from recovery_engine.core.escalation import within_recovery_bound
from recovery_engine.core.exceptions import StrategyDeclinedError, UnknownComponentError
from recovery_engine.core.fallback import FallbackChainRegistry
from recovery_engine.core.health import ComponentHealthRegistry
from recovery_engine.types import (
    Clock,
    ErrorContext,
    ErrorLog,
    FallbackStrategy,
    Outcome,
    RecoveryAction,
    RecoveryKind,
    SystemFault,
    utc_now,
)
from recovery_engine.utils.logging import correlation_id_var, get_logger, log_with_context, set_correlation_id
from recovery_engine.utils.sanitization import sanitize_exception

__all__ = ["ErrorDispatcher", "default_recovery_action", "provisional_action"]


def default_recovery_action() -> RecoveryAction:
    """Action returned when no fallback strategy produced one."""
    return RecoveryAction(
        kind=RecoveryKind.EMERGENCY_BYPASS,
        description="Emergency bypass - minimal functionality maintained",
        estimated_recovery_time_ms=0,
        user_notification="System in emergency mode. Basic communication available.",
        audio_alert=True,
    )


def provisional_action() -> RecoveryAction:
    """Placeholder recorded while the fallback chain is still being walked."""
    return RecoveryAction(
        kind=RecoveryKind.RETRY,
        description="Initial error logged",
        estimated_recovery_time_ms=0,
    )


class ErrorDispatcher:
    """Resolve reported faults into recovery actions.

    ``handle_error`` is total: it never raises (cancellation aside) and
    always returns a RecoveryAction. Strategies run sequentially, each fully
    awaited before the next, and each is bounded by the strategy timeout.
    """

    def __init__(
        self,
        health: ComponentHealthRegistry,
        fallbacks: FallbackChainRegistry,
        audit: AuditLog,
        *,
        settings: EngineSettings | None = None,
        clock: Clock = utc_now,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._health: ComponentHealthRegistry = health
        self._fallbacks: FallbackChainRegistry = fallbacks
        self._audit: AuditLog = audit
        self._settings: EngineSettings = settings or EngineSettings()
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    async def handle_error(self, fault: SystemFault, context: ErrorContext) -> RecoveryAction:
        """Record the fault, update health and return how the caller should proceed."""
        token = set_correlation_id(fault.id)
        try:
            return await self._handle(fault, context)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Error dispatch failed before the fault was recorded, returning default recovery action",
                extra={
                    "component": str(fault.component),
                    "severity": str(fault.severity),
                    "error_message": sanitize_exception(exc),
                },
            )
            return default_recovery_action()
        finally:
            correlation_id_var.reset(token)

    async def _handle(self, fault: SystemFault, context: ErrorContext) -> RecoveryAction:
        entry = self._audit.append(
            ErrorLog(
                timestamp=self._clock(),
                error=fault,
                context=context,
                recovery_action=provisional_action(),
                outcome=Outcome.FAILED,
                user_impact=fault.severity.user_impact,
            )
        )

        try:
            action = await self._resolve(fault, context)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Error dispatch failed unexpectedly, returning default recovery action",
                extra={
                    "component": str(fault.component),
                    "severity": str(fault.severity),
                    "error_message": sanitize_exception(exc),
                },
            )
            action = None

        if action is None:
            action = default_recovery_action()
            outcome = Outcome.DEGRADED
        else:
            outcome = Outcome.RECOVERED

        updated = dataclasses.replace(entry, recovery_action=action, outcome=outcome)
        if not self._audit.replace(entry, updated):
            self._logger.debug("Audit entry for %s evicted before resolution", fault.id)
        return action

    async def _resolve(self, fault: SystemFault, context: ErrorContext) -> RecoveryAction | None:
        self._apply_health(fault)

        log_with_context(
            self._logger,
            logging.WARNING if fault.severity.rank >= 2 else logging.INFO,
            "Handling component fault",
            extra={
                "component": str(fault.component),
                "severity": str(fault.severity),
                "error_message": fault.message,
                "emergency_context": context.signals_emergency,
            },
        )

        action = await self._walk_chain(fault, context)
        if action is None:
            log_with_context(
                self._logger,
                logging.WARNING,
                "No fallback strategy produced an action, engaging emergency bypass",
                extra={"component": str(fault.component), "severity": str(fault.severity)},
            )
        return action

    def _apply_health(self, fault: SystemFault) -> None:
        try:
            status = self._health.update_health(fault.component, fault.severity)
        except UnknownComponentError:
            log_with_context(
                self._logger,
                logging.WARNING,
                "Fault reported for untracked component",
                extra={"component": str(fault.component)},
            )
            return
        self._logger.debug("Component %s is now %s", fault.component, status)

    async def _walk_chain(self, fault: SystemFault, context: ErrorContext) -> RecoveryAction | None:
        strategies = self._fallbacks.strategies(fault.component)
        for position, strategy in enumerate(strategies):
            start = time.perf_counter()
            try:
                action = await self._invoke(strategy, fault, context)
            except asyncio.CancelledError:
                raise
            except StrategyDeclinedError as exc:
                self._log_decline(fault, position, str(exc) or "declined", logging.INFO)
                continue
            except TimeoutError:
                self._log_decline(
                    fault,
                    position,
                    f"timed out after {self._settings.strategy_timeout_ms}ms",
                    logging.WARNING,
                )
                continue
            except Exception as exc:
                self._log_decline(fault, position, sanitize_exception(exc), logging.WARNING)
                continue

            elapsed_ms = (time.perf_counter() - start) * 1000.0
            log_with_context(
                self._logger,
                logging.INFO,
                "Fallback strategy produced recovery action",
                extra={
                    "component": str(fault.component),
                    "strategy_position": position,
                    "recovery_kind": str(action.kind),
                    "estimated_recovery_time_ms": action.estimated_recovery_time_ms,
                    "strategy_time_ms": elapsed_ms,
                },
            )
            if not within_recovery_bound(action, context, self._settings):
                log_with_context(
                    self._logger,
                    logging.WARNING,
                    "Recovery action exceeds expected recovery time bound",
                    extra={
                        "component": str(fault.component),
                        "recovery_kind": str(action.kind),
                        "estimated_recovery_time_ms": action.estimated_recovery_time_ms,
                        "emergency_context": context.signals_emergency,
                    },
                )
            return action
        return None

    async def _invoke(
        self,
        strategy: FallbackStrategy,
        fault: SystemFault,
        context: ErrorContext,
    ) -> RecoveryAction:
        async with asyncio.timeout(self._settings.strategy_timeout_ms / 1000.0):
            result = strategy(fault, context)
            if inspect.isawaitable(result):
                result = await result
        if not isinstance(result, RecoveryAction):
            msg = f"Fallback strategy returned {type(result).__name__}, expected RecoveryAction"
            raise TypeError(msg)
        return result

    def _log_decline(self, fault: SystemFault, position: int, reason: str, level: int) -> None:
        log_with_context(
            self._logger,
            level,
            "Fallback strategy declined",
            extra={
                "component": str(fault.component),
                "strategy_position": position,
                "reason": reason,
            },
        )
