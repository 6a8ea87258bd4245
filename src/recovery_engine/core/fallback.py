"""Ordered fallback chains keyed by component."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from recovery_engine.core.exceptions import UnknownComponentError
from recovery_engine.types import Component, FallbackStrategy

__all__ = ["FallbackChainRegistry"]


class FallbackChainRegistry:
    """Registry of recovery strategies per component.

    Strategies are tried in registration order. The order is a convention
    of whoever wires the engine and is not sorted by severity or cost.
    """

    def __init__(self, components: Iterable[Component]) -> None:
        self._chains: dict[Component, list[FallbackStrategy]] = {
            component: [] for component in components
        }
        self._lock: threading.Lock = threading.Lock()

    def register(self, component: Component, strategy: FallbackStrategy) -> int:
        """Append a strategy to the component's chain.

        Returns:
            Position of the strategy in the chain (0 is tried first)

        Raises:
            UnknownComponentError: If the component is not tracked
            TypeError: If the strategy is not callable
        """
        if not callable(strategy):
            msg = f"Fallback strategy for {component} must be callable, got {type(strategy).__name__}"
            raise TypeError(msg)
        with self._lock:
            chain = self._chains.get(component)
            if chain is None:
                raise UnknownComponentError(component)
            chain.append(strategy)
            return len(chain) - 1

    def strategies(self, component: Component) -> tuple[FallbackStrategy, ...]:
        """Return a snapshot of the chain; empty for untracked components."""
        with self._lock:
            return tuple(self._chains.get(component, ()))

    def clear(self, component: Component | None = None) -> None:
        """Remove every strategy for one component, or for all of them."""
        with self._lock:
            if component is None:
                for chain in self._chains.values():
                    chain.clear()
                return
            chain = self._chains.get(component)
            if chain is None:
                raise UnknownComponentError(component)
            chain.clear()

    def __contains__(self, component: object) -> bool:
        return component in self._chains
