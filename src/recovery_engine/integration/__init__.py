"""Bridge between the mediation pipeline and the recovery engine."""

from recovery_engine.integration.fallbacks import (
    ai_mediation_fallback,
    avatar_rendering_fallback,
    register_default_fallbacks,
    sign_recognition_fallback,
    speech_recognition_fallback,
)
from recovery_engine.integration.mediation import (
    STAGE_COMPONENTS,
    MediationErrorHandler,
    MediationMode,
    MediationSetting,
    PipelineStage,
    build_context,
    classify_severity,
    has_emergency_impact,
    is_recoverable,
    is_user_facing,
)

__all__ = [
    "STAGE_COMPONENTS",
    "MediationErrorHandler",
    "MediationMode",
    "MediationSetting",
    "PipelineStage",
    "ai_mediation_fallback",
    "avatar_rendering_fallback",
    "build_context",
    "classify_severity",
    "has_emergency_impact",
    "is_recoverable",
    "is_user_facing",
    "register_default_fallbacks",
    "sign_recognition_fallback",
    "speech_recognition_fallback",
]
