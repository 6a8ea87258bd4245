"""Data models for the recovery engine.

This module defines the immutable dataclasses exchanged between the engine
and its collaborators: failure reports, situational context, recovery
actions, retryable operations, audit entries and health snapshots.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from recovery_engine.types.aliases import ComponentHealthMap
from recovery_engine.types.enums import (
    CareSetting,
    CommunicationMode,
    Component,
    Outcome,
    OverallHealth,
    RecoveryKind,
    Severity,
    UserImpact,
)


def utc_now() -> datetime:
    """Return timezone-aware current datetime."""
    return datetime.now(tz=UTC)


@dataclass(slots=True, frozen=True)
class SystemFault:
    """A single classified failure reported by a collaborator.

    Created fresh for every failure occurrence. Severity classification is
    the reporting collaborator's responsibility, not the engine's.
    """

    id: str
    component: Component
    severity: Severity
    message: str
    timestamp: datetime
    retry_count: int | None = None

    @classmethod
    def create(
        cls,
        component: Component,
        severity: Severity,
        message: str,
        *,
        retry_count: int | None = None,
        prefix: str = "fault",
        timestamp: datetime | None = None,
    ) -> SystemFault:
        """Build a fault with a generated id and the current timestamp."""
        return cls(
            id=f"{prefix}-{uuid4().hex[:12]}",
            component=component,
            severity=severity,
            message=message,
            timestamp=timestamp or utc_now(),
            retry_count=retry_count,
        )


@dataclass(slots=True, frozen=True)
class ErrorContext:
    """Situational flags passed through to fallback strategies.

    The engine never interprets these beyond `signals_emergency`; everything
    else is pass-through data for strategies.
    """

    mode: CommunicationMode = CommunicationMode.HEARING_TO_DEAF
    setting: CareSetting = CareSetting.HOSPITAL
    is_emergency_mode: bool = False
    user_present: bool = True
    critical_communication: bool = False
    extra: Mapping[str, object] = field(default_factory=dict)

    @property
    def signals_emergency(self) -> bool:
        return self.is_emergency_mode or self.setting is CareSetting.EMERGENCY


@dataclass(slots=True, frozen=True)
class RecoveryAction:
    """Declarative instruction telling a caller how to proceed."""

    kind: RecoveryKind
    description: str
    estimated_recovery_time_ms: int
    user_notification: str | None = None
    audio_alert: bool = False
    retry_after_ms: int | None = None

    def __post_init__(self) -> None:
        if not self.description.strip():
            msg = "RecoveryAction description must not be empty"
            raise ValueError(msg)
        if self.estimated_recovery_time_ms < 0:
            msg = (
                "estimated_recovery_time_ms must be >= 0, "
                f"got {self.estimated_recovery_time_ms}"
            )
            raise ValueError(msg)


@dataclass(slots=True, frozen=True)
class Operation[T]:
    """A named unit of retryable asynchronous work."""

    id: str
    component: Component
    execute: Callable[[], Awaitable[T]]
    action: str = ""
    timeout_ms: int | None = None


@dataclass(slots=True, frozen=True)
class OperationResult[T]:
    """Outcome of a retried operation."""

    success: bool
    data: T | None = None
    error: SystemFault | None = None
    attempts: int = 0


@dataclass(slots=True, frozen=True)
class SystemFailure:
    """Aggregated failure of a component, possibly cascading to others."""

    component: Component
    errors: Sequence[SystemFault] = ()
    cascading_failures: Sequence[Component] = ()
    total_downtime_ms: int = 0


@dataclass(slots=True, frozen=True)
class CriticalFailure(SystemFailure):
    """A failure already known to be catastrophic."""

    patient_safety_impact: bool = False
    emergency_protocol_triggered: bool = False
    manual_intervention_required: bool = False


@dataclass(slots=True, frozen=True)
class ErrorLog:
    """One entry of the bounded audit trail."""

    timestamp: datetime
    error: SystemFault
    context: ErrorContext
    recovery_action: RecoveryAction
    outcome: Outcome
    user_impact: UserImpact


@dataclass(slots=True, frozen=True)
class HealthStatus:
    """Point-in-time health snapshot of the whole engine."""

    overall: OverallHealth
    components: ComponentHealthMap
    active_errors: tuple[SystemFault, ...]
    recovery_actions: tuple[RecoveryAction, ...]
    uptime_ms: int
    last_health_check: datetime
