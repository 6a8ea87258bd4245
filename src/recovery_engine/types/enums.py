"""Closed enumerations shared by every part of the recovery engine.

Severity and component status carry an explicit rank so that the
"escalate forward only" rule can be expressed as a plain comparison.
"""

from __future__ import annotations

from enum import Enum, StrEnum
from functools import total_ordering
from typing import override


class UserImpact(StrEnum):
    """Impact of a failure on the person using the system."""

    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


@total_ordering
class Severity(Enum):
    """Totally ordered failure severity: warning < minor < major < critical."""

    WARNING = "warning"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def user_impact(self) -> UserImpact:
        """User impact level this severity maps onto."""
        return _SEVERITY_IMPACT[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    @override
    def __str__(self) -> str:
        return self.value


_SEVERITY_RANK: dict[Severity, int] = {
    Severity.WARNING: 0,
    Severity.MINOR: 1,
    Severity.MAJOR: 2,
    Severity.CRITICAL: 3,
}

_SEVERITY_IMPACT: dict[Severity, UserImpact] = {
    Severity.WARNING: UserImpact.NONE,
    Severity.MINOR: UserImpact.MINOR,
    Severity.MAJOR: UserImpact.MAJOR,
    Severity.CRITICAL: UserImpact.CRITICAL,
}


class Component(StrEnum):
    """Addressable subsystems that can fail and be recovered independently."""

    SPEECH_RECOGNITION = "speech-recognition"
    SIGN_RECOGNITION = "sign-recognition"
    AI_MEDIATION = "ai-mediation"
    AVATAR_RENDERING = "avatar-rendering"
    TEXT_TO_SPEECH = "text-to-speech"
    CAMERA = "camera"
    MICROPHONE = "microphone"


class ComponentStatus(StrEnum):
    """Health classification of a single component, ordered by badness."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK: dict[ComponentStatus, int] = {
    ComponentStatus.OPERATIONAL: 0,
    ComponentStatus.DEGRADED: 1,
    ComponentStatus.FAILED: 2,
}


class RecoveryKind(StrEnum):
    """How a caller should proceed after a failure.

    This set is the contract between the engine and its callers and is
    intentionally closed.
    """

    RETRY = "retry"
    ALTERNATIVE_METHOD = "alternative-method"
    DEGRADED_FUNCTIONALITY = "degraded-functionality"
    MANUAL_INPUT = "manual-input"
    TEXT_ONLY = "text-only"
    EMERGENCY_BYPASS = "emergency-bypass"


# Kinds that resolve immediately and are preferred under emergency context.
SPEED_PRIORITY_KINDS: frozenset[RecoveryKind] = frozenset(
    {RecoveryKind.MANUAL_INPUT, RecoveryKind.TEXT_ONLY, RecoveryKind.EMERGENCY_BYPASS}
)


class Outcome(StrEnum):
    """Terminal outcome recorded in the audit log."""

    RECOVERED = "recovered"
    DEGRADED = "degraded"
    FAILED = "failed"


class OverallHealth(StrEnum):
    """System-wide health derived from the worst component status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class AlertType(StrEnum):
    """Medium requested from the alert port."""

    AUDIO = "audio"
    VISUAL = "visual"
    HAPTIC = "haptic"


class CommunicationMode(StrEnum):
    """Direction of the mediated conversation."""

    HEARING_TO_DEAF = "hearing-to-deaf"
    DEAF_TO_HEARING = "deaf-to-hearing"


class CareSetting(StrEnum):
    """Clinical setting the conversation takes place in."""

    HOSPITAL = "hospital"
    EMERGENCY = "emergency"
