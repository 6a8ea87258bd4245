"""Type definitions and protocols for the recovery engine.

This package provides:
- Closed enumerations (severities, components, recovery kinds)
- Data models (immutable dataclasses)
- Protocol definitions (strategies and side-effect ports)
- Type aliases (PEP 695 syntax)
"""

from recovery_engine.types.aliases import Clock, ComponentHealthMap, RetryKey
from recovery_engine.types.enums import (
    SPEED_PRIORITY_KINDS,
    AlertType,
    CareSetting,
    CommunicationMode,
    Component,
    ComponentStatus,
    Outcome,
    OverallHealth,
    RecoveryKind,
    Severity,
    UserImpact,
)
from recovery_engine.types.models import (
    CriticalFailure,
    ErrorContext,
    ErrorLog,
    HealthStatus,
    Operation,
    OperationResult,
    RecoveryAction,
    SystemFailure,
    SystemFault,
    utc_now,
)
from recovery_engine.types.protocols import (
    AlertPort,
    BypassHook,
    FallbackStrategy,
    HealthVerifier,
    NotificationSink,
    RestartHook,
)

__all__ = [
    # Type aliases
    "Clock",
    "ComponentHealthMap",
    "RetryKey",
    # Enumerations
    "SPEED_PRIORITY_KINDS",
    "AlertType",
    "CareSetting",
    "CommunicationMode",
    "Component",
    "ComponentStatus",
    "Outcome",
    "OverallHealth",
    "RecoveryKind",
    "Severity",
    "UserImpact",
    # Data models
    "CriticalFailure",
    "ErrorContext",
    "ErrorLog",
    "HealthStatus",
    "Operation",
    "OperationResult",
    "RecoveryAction",
    "SystemFailure",
    "SystemFault",
    "utc_now",
    # Protocols
    "AlertPort",
    "BypassHook",
    "FallbackStrategy",
    "HealthVerifier",
    "NotificationSink",
    "RestartHook",
]
