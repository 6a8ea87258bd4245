"""Context-aware fallback strategies for the mediation subsystems.

Under emergency context every strategy picks a kind that resolves
immediately (manual input, text only or emergency bypass, all 0 ms).
Otherwise it prefers keeping the richer experience alive at the cost of a
short delay.
"""

from __future__ import annotations

from recovery_engine.core.engine import RecoveryEngine
from recovery_engine.types import (
    Component,
    ErrorContext,
    FallbackStrategy,
    RecoveryAction,
    RecoveryKind,
    Severity,
    SystemFault,
)
from recovery_engine.utils.logging import get_logger

__all__ = [
    "DEFAULT_FALLBACKS",
    "ai_mediation_fallback",
    "avatar_rendering_fallback",
    "register_default_fallbacks",
    "sign_recognition_fallback",
    "speech_recognition_fallback",
]

logger = get_logger(__name__)


def _is_critical(fault: SystemFault) -> bool:
    return fault.severity is Severity.CRITICAL


async def speech_recognition_fallback(fault: SystemFault, context: ErrorContext) -> RecoveryAction:
    if context.signals_emergency:
        return RecoveryAction(
            kind=RecoveryKind.MANUAL_INPUT,
            description="Emergency: switch to manual text input immediately",
            estimated_recovery_time_ms=0,
            user_notification="Speech recognition failed. Please type your message.",
            audio_alert=True,
        )
    return RecoveryAction(
        kind=RecoveryKind.RETRY,
        description="Retry speech recognition with adjusted settings",
        estimated_recovery_time_ms=2000,
        user_notification="Adjusting microphone settings...",
        audio_alert=_is_critical(fault),
        retry_after_ms=2000,
    )


async def sign_recognition_fallback(fault: SystemFault, context: ErrorContext) -> RecoveryAction:
    if context.signals_emergency:
        return RecoveryAction(
            kind=RecoveryKind.MANUAL_INPUT,
            description="Emergency: switch to gesture prompts",
            estimated_recovery_time_ms=0,
            user_notification="Sign recognition failed. Please use clear gestures or type.",
            audio_alert=True,
        )
    return RecoveryAction(
        kind=RecoveryKind.ALTERNATIVE_METHOD,
        description="Use gesture confidence scoring and user feedback",
        estimated_recovery_time_ms=3000,
        user_notification="Having trouble recognizing signs. Please repeat clearly.",
        audio_alert=_is_critical(fault),
    )


async def ai_mediation_fallback(fault: SystemFault, context: ErrorContext) -> RecoveryAction:
    if context.signals_emergency:
        return RecoveryAction(
            kind=RecoveryKind.EMERGENCY_BYPASS,
            description="Emergency: direct pass-through without AI processing",
            estimated_recovery_time_ms=0,
            user_notification="Using direct communication mode.",
            audio_alert=_is_critical(fault),
        )
    return RecoveryAction(
        kind=RecoveryKind.DEGRADED_FUNCTIONALITY,
        description="Use basic text processing without AI enhancement",
        estimated_recovery_time_ms=1000,
        user_notification="AI processing temporarily unavailable.",
        audio_alert=_is_critical(fault),
    )


async def avatar_rendering_fallback(fault: SystemFault, context: ErrorContext) -> RecoveryAction:
    if context.signals_emergency:
        return RecoveryAction(
            kind=RecoveryKind.TEXT_ONLY,
            description="Emergency: text-only display with large fonts",
            estimated_recovery_time_ms=0,
            user_notification="Avatar unavailable. Using text display.",
            audio_alert=_is_critical(fault),
        )
    return RecoveryAction(
        kind=RecoveryKind.ALTERNATIVE_METHOD,
        description="Fall back to pre-recorded video signs",
        estimated_recovery_time_ms=2000,
        user_notification="Switching to video signs...",
        audio_alert=_is_critical(fault),
    )


DEFAULT_FALLBACKS: dict[Component, FallbackStrategy] = {
    Component.SPEECH_RECOGNITION: speech_recognition_fallback,
    Component.SIGN_RECOGNITION: sign_recognition_fallback,
    Component.AI_MEDIATION: ai_mediation_fallback,
    Component.AVATAR_RENDERING: avatar_rendering_fallback,
}


def register_default_fallbacks(engine: RecoveryEngine) -> tuple[Component, ...]:
    """Wire the built-in strategies for every tracked component that has one.

    Returns:
        Components a strategy was registered for
    """
    registered: list[Component] = []
    for component, strategy in DEFAULT_FALLBACKS.items():
        if component not in engine.components:
            continue
        engine.register_fallback(component, strategy)
        registered.append(component)
    logger.debug("Registered default fallbacks for %d component(s)", len(registered))
    return tuple(registered)
