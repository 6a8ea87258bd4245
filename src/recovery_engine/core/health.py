"""Per-component health state machine.

Each tracked component is in one of three states: operational, degraded or
failed. Incoming severities can only move a component toward ``failed``
(critical forces failed, major forces degraded, minor and warning are
no-ops). The only way back to ``operational`` is an explicit recovery call
whose external verification succeeded.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from recovery_engine.core.exceptions import UnknownComponentError
from recovery_engine.types import Clock, Component, ComponentStatus, Severity, utc_now

__all__ = ["ComponentHealthRegistry", "status_for_severity"]


def status_for_severity(severity: Severity) -> ComponentStatus | None:
    """Return the status a severity forces, or None when it forces nothing."""
    match severity:
        case Severity.CRITICAL:
            return ComponentStatus.FAILED
        case Severity.MAJOR:
            return ComponentStatus.DEGRADED
        case Severity.MINOR | Severity.WARNING:
            return None


@dataclass(slots=True)
class _HealthEntry:
    """Internal registry entry storing the current status of one component."""

    status: ComponentStatus = ComponentStatus.OPERATIONAL
    last_changed: datetime = field(default_factory=utc_now)


class ComponentHealthRegistry:
    """Registry holding exactly one health entry per known component.

    Args:
        components: Components tracked for the lifetime of the registry.
        clock: Source of timestamps for status changes.
    """

    def __init__(self, components: Iterable[Component], *, clock: Clock = utc_now) -> None:
        self._clock: Clock = clock
        self._entries: dict[Component, _HealthEntry] = {
            component: _HealthEntry(last_changed=clock()) for component in components
        }
        if not self._entries:
            msg = "ComponentHealthRegistry requires at least one component"
            raise ValueError(msg)
        self._lock: threading.Lock = threading.Lock()

    def __contains__(self, component: object) -> bool:
        return component in self._entries

    @property
    def components(self) -> tuple[Component, ...]:
        """Tracked components in registration order."""
        return tuple(self._entries)

    def get_health(self, component: Component) -> ComponentStatus:
        """Return the current status of the component."""
        with self._lock:
            return self._require_entry(component).status

    def last_changed(self, component: Component) -> datetime:
        with self._lock:
            return self._require_entry(component).last_changed

    def update_health(self, component: Component, severity: Severity) -> ComponentStatus:
        """Apply a failure severity, worsening the status if it forces one.

        A status is never improved here, so a major error on a failed
        component leaves it failed.
        """
        target = status_for_severity(severity)
        with self._lock:
            entry = self._require_entry(component)
            if target is not None:
                self._worsen(entry, target)
            return entry.status

    def degrade(self, component: Component) -> ComponentStatus:
        """Move an operational component to degraded; worse states are kept."""
        with self._lock:
            entry = self._require_entry(component)
            self._worsen(entry, ComponentStatus.DEGRADED)
            return entry.status

    def force_failed(self, component: Component) -> ComponentStatus:
        with self._lock:
            entry = self._require_entry(component)
            self._worsen(entry, ComponentStatus.FAILED)
            return entry.status

    def recover_component(self, component: Component, *, verified: bool) -> bool:
        """Return a component to operational once recovery has been verified.

        Args:
            component: Component to recover
            verified: Outcome of the external verification step

        Returns:
            True when the component is now operational. A failed verification
            leaves the status unchanged and returns False.
        """
        with self._lock:
            entry = self._require_entry(component)
            if not verified:
                return False
            if entry.status is not ComponentStatus.OPERATIONAL:
                entry.status = ComponentStatus.OPERATIONAL
                entry.last_changed = self._clock()
            return True

    def snapshot(self) -> dict[Component, ComponentStatus]:
        """Return a copy of the component to status map."""
        with self._lock:
            return {component: entry.status for component, entry in self._entries.items()}

    def worst_status(self) -> ComponentStatus:
        with self._lock:
            return max((entry.status for entry in self._entries.values()), key=lambda s: s.rank)

    def _worsen(self, entry: _HealthEntry, target: ComponentStatus) -> None:
        if target.rank > entry.status.rank:
            entry.status = target
            entry.last_changed = self._clock()

    def _require_entry(self, component: Component) -> _HealthEntry:
        entry = self._entries.get(component)
        if entry is None:
            raise UnknownComponentError(component)
        return entry
