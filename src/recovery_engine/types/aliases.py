"""Type aliases using PEP 695 syntax."""

from collections.abc import Callable, Mapping
from datetime import datetime

from recovery_engine.types.enums import Component, ComponentStatus

# Clock returning timezone-aware "now"; injected so tests can control time
type Clock = Callable[[], datetime]

# Key of the retry counter map: (component, operation id)
type RetryKey = tuple[Component, str]

# Read-only view of component health as returned by snapshots
type ComponentHealthMap = Mapping[Component, ComponentStatus]
