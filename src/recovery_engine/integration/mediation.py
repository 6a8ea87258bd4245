"""Mediation pipeline error handler.

Translates exceptions raised by the speech, sign, AI mediation and avatar
subsystems into classified faults, applies the emergency escalation policy,
dispatches through the recovery engine and carries out the user-facing part
of the returned action.
"""

from __future__ import annotations

import dataclasses
import logging
from enum import StrEnum

from recovery_engine.core.engine import RecoveryEngine
from recovery_engine.types import (
    CareSetting,
    CommunicationMode,
    Component,
    ErrorContext,
    RecoveryAction,
    RecoveryKind,
    Severity,
    SystemFault,
)
from recovery_engine.utils.logging import get_logger, log_with_context
from recovery_engine.utils.sanitization import redact_text, sanitize_exception

__all__ = [
    "STAGE_COMPONENTS",
    "MediationErrorHandler",
    "MediationMode",
    "MediationSetting",
    "PipelineStage",
    "build_context",
    "classify_severity",
    "has_emergency_impact",
    "is_recoverable",
    "is_user_facing",
]

MediationMode = CommunicationMode
MediationSetting = CareSetting


class PipelineStage(StrEnum):
    """Stages of the mediation pipeline that can report failures."""

    INGEST = "ingest"
    UNDERSTAND = "understand"
    GENERATE = "generate"
    DELIVER = "deliver"


STAGE_COMPONENTS: dict[PipelineStage, Component] = {
    PipelineStage.INGEST: Component.SPEECH_RECOGNITION,
    PipelineStage.UNDERSTAND: Component.AI_MEDIATION,
    PipelineStage.GENERATE: Component.AI_MEDIATION,
    PipelineStage.DELIVER: Component.AVATAR_RENDERING,
}

_USER_FACING_COMPONENTS: frozenset[Component] = frozenset(
    {
        Component.SPEECH_RECOGNITION,
        Component.SIGN_RECOGNITION,
        Component.AVATAR_RENDERING,
        Component.CAMERA,
        Component.MICROPHONE,
    }
)

EMERGENCY_ACTIVATION_NOTICE = "Emergency mode activated. System switching to basic communication."


def _message_of(exc: BaseException) -> str:
    return str(exc).lower()


def has_emergency_impact(exc: BaseException, context: ErrorContext) -> bool:
    """Whether a failure affects communication during an emergency."""
    message = _message_of(exc)
    return (
        context.setting is CareSetting.EMERGENCY
        or context.critical_communication
        or "emergency" in message
        or "critical" in message
    )


def classify_severity(exc: BaseException, context: ErrorContext) -> Severity:
    """Classify an exception raised by a mediation subsystem.

    Critical when patient communication in an emergency is affected or the
    message mentions safety; major for timeouts, network and permission
    problems; minor for everything else.
    """
    message = _message_of(exc)
    if has_emergency_impact(exc, context) or "safety" in message:
        return Severity.CRITICAL
    if isinstance(exc, (TimeoutError, ConnectionError, PermissionError)):
        return Severity.MAJOR
    if any(marker in message for marker in ("timeout", "network", "permission")):
        return Severity.MAJOR
    return Severity.MINOR


def is_user_facing(component: Component) -> bool:
    return component in _USER_FACING_COMPONENTS


def is_recoverable(exc: BaseException) -> bool:
    """Hardware faults and denied permissions cannot be recovered in software."""
    message = _message_of(exc)
    return "hardware" not in message and "permission denied" not in message


def build_context(
    engine: RecoveryEngine,
    mode: CommunicationMode = CommunicationMode.HEARING_TO_DEAF,
    setting: CareSetting = CareSetting.HOSPITAL,
    *,
    user_present: bool = True,
    critical_communication: bool = False,
    **extra: object,
) -> ErrorContext:
    """Build an ErrorContext reflecting the engine's current emergency flag."""
    return ErrorContext(
        mode=mode,
        setting=setting,
        is_emergency_mode=engine.emergency_mode,
        user_present=user_present,
        critical_communication=critical_communication,
        extra=extra,
    )


class MediationErrorHandler:
    """Route mediation subsystem exceptions through the recovery engine.

    Args:
        engine: Engine instance the faults are dispatched to
        logger_obj: Optional logger override
    """

    def __init__(self, engine: RecoveryEngine, *, logger_obj: logging.Logger | None = None) -> None:
        self._engine: RecoveryEngine = engine
        self._logger: logging.Logger = logger_obj or get_logger(__name__)

    @property
    def is_emergency_mode_active(self) -> bool:
        return self._engine.emergency_mode

    async def handle_exception(
        self,
        component: Component,
        exc: BaseException,
        context: ErrorContext,
    ) -> RecoveryAction:
        """Classify, escalate if needed, dispatch and execute the recovery action."""
        fault = SystemFault.create(
            component,
            classify_severity(exc, context),
            redact_text(str(exc)) or type(exc).__name__,
            prefix="mediation",
        )
        log_with_context(
            self._logger,
            logging.INFO,
            "Mediation subsystem raised",
            extra={
                "component": str(component),
                "severity": str(fault.severity),
                "user_facing": is_user_facing(component),
                "recoverable": is_recoverable(exc),
                "error_message": sanitize_exception(exc),
            },
        )

        escalation = self._engine.escalation
        _ = escalation.record_error(fault)
        if escalation.should_activate(fault, context):
            await self.activate_emergency_mode(f"{fault.severity} fault in {component}", component=component)

        if self._engine.emergency_mode and not context.is_emergency_mode:
            context = dataclasses.replace(context, is_emergency_mode=True)

        action = await self._engine.handle_error(fault, context)
        self._execute(action, fault)
        return action

    async def handle_pipeline_error(
        self,
        stage: PipelineStage,
        exc: BaseException,
        context: ErrorContext,
    ) -> RecoveryAction:
        return await self.handle_exception(STAGE_COMPONENTS[stage], exc, context)

    async def handle_speech_recognition_error(self, exc: BaseException, context: ErrorContext) -> RecoveryAction:
        return await self.handle_exception(Component.SPEECH_RECOGNITION, exc, context)

    async def handle_sign_recognition_error(self, exc: BaseException, context: ErrorContext) -> RecoveryAction:
        return await self.handle_exception(Component.SIGN_RECOGNITION, exc, context)

    async def handle_ai_mediation_error(self, exc: BaseException, context: ErrorContext) -> RecoveryAction:
        return await self.handle_exception(Component.AI_MEDIATION, exc, context)

    async def handle_avatar_rendering_error(self, exc: BaseException, context: ErrorContext) -> RecoveryAction:
        return await self.handle_exception(Component.AVATAR_RENDERING, exc, context)

    async def activate_emergency_mode(self, reason: str, *, component: Component | None = None) -> bool:
        """Switch the engine to emergency mode, sound an alert and tell the user."""
        activated = await self._engine.activate_emergency_mode(reason, component=component)
        if activated:
            self._engine.trigger_audio_alert()
            self._notify(EMERGENCY_ACTIVATION_NOTICE, audio_alert=True)
        return activated

    def deactivate_emergency_mode(self) -> None:
        was_active = self._engine.emergency_mode
        self._engine.deactivate_emergency_mode()
        if was_active:
            self._notify("Emergency mode ended. Full communication features restored.")

    def _execute(self, action: RecoveryAction, fault: SystemFault) -> None:
        match action.kind:
            case RecoveryKind.MANUAL_INPUT:
                step = "Enabling manual input"
            case RecoveryKind.TEXT_ONLY:
                step = "Enabling text-only mode"
            case RecoveryKind.EMERGENCY_BYPASS:
                step = "Enabling emergency bypass"
            case RecoveryKind.ALTERNATIVE_METHOD:
                step = "Switching to alternative method"
            case RecoveryKind.RETRY:
                step = "Scheduling retry"
            case RecoveryKind.DEGRADED_FUNCTIONALITY:
                step = "Continuing with degraded functionality"
        log_with_context(
            self._logger,
            logging.INFO,
            step,
            extra={
                "component": str(fault.component),
                "recovery_kind": str(action.kind),
                "retry_after_ms": action.retry_after_ms,
            },
        )
        if action.user_notification:
            self._notify(action.user_notification, audio_alert=action.audio_alert)

    def _notify(self, message: str, *, audio_alert: bool = False) -> None:
        try:
            self._engine.notification_sink.notify(message, audio_alert=audio_alert)
        except Exception as exc:
            log_with_context(
                self._logger,
                logging.ERROR,
                "Notification sink failed",
                extra={"error_message": sanitize_exception(exc)},
            )
