"""Protocol definitions for the engine's collaborators.

Fallback strategies and side-effect ports are structural interfaces, so any
plain function or object with the right shape can be injected without
inheriting from engine classes.
"""

from collections.abc import Awaitable
from typing import Protocol, runtime_checkable

from recovery_engine.types.enums import AlertType, Component
from recovery_engine.types.models import ErrorContext, RecoveryAction, SystemFault


class FallbackStrategy(Protocol):
    """Recovery strategy for one component.

    A strategy is a function of the fault and its context. It either returns
    a RecoveryAction (directly or as an awaitable) or raises to decline.
    """

    def __call__(
        self, fault: SystemFault, context: ErrorContext
    ) -> RecoveryAction | Awaitable[RecoveryAction]: ...


@runtime_checkable
class AlertPort(Protocol):
    """Side-effect port that sounds or shows an alert.

    The engine requests alerts; rendering them is the UI layer's job.
    """

    def trigger(self, alert_type: AlertType) -> None:
        """Request an alert of the given medium.

        Args:
            alert_type: Medium to alert through (audio, visual, haptic)
        """
        ...


@runtime_checkable
class NotificationSink(Protocol):
    """Side-effect port that delivers user-facing notifications."""

    def notify(self, message: str, *, audio_alert: bool = False) -> None:
        """Show a notification to the user.

        Args:
            message: Human-readable notification text
            audio_alert: Whether the notification should also be spoken
        """
        ...


@runtime_checkable
class BypassHook(Protocol):
    """Hook that switches a component (or the whole system) to bypass mode."""

    async def engage(self, component: Component | None) -> None:
        """Engage bypass processing.

        Args:
            component: Component to bypass, or None for system-wide bypass
        """
        ...


@runtime_checkable
class HealthVerifier(Protocol):
    """Externally supplied check that a component is healthy again."""

    async def verify(self, component: Component) -> bool:
        """Return True when the component is verified to work again."""
        ...


@runtime_checkable
class RestartHook(Protocol):
    """Hook that restarts a component before recovery verification."""

    async def restart(self, component: Component) -> None: ...
