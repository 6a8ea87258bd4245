"""Exception hierarchy for the recovery engine.

Engine operations are total and convert collaborator failures into results.
The exceptions here cover configuration-time programming errors and the
internal signals used between the executor and the dispatcher.
"""

from typing import override


class RecoveryEngineError(Exception):
    """Base class for recovery engine errors."""


class UnknownComponentError(RecoveryEngineError, KeyError):
    """Raised when a component is not tracked by this engine instance."""

    def __init__(self, component: object) -> None:
        self.component: object = component
        super().__init__(f"Component is not registered with this engine: {component!s}")

    @override
    def __str__(self) -> str:
        # KeyError would otherwise render the message with quotes
        return str(self.args[0])


class OperationTimeoutError(RecoveryEngineError, TimeoutError):
    """Raised when a retried operation exceeds its timeout."""

    def __init__(self, operation_id: str, timeout_ms: int) -> None:
        self.operation_id: str = operation_id
        self.timeout_ms: int = timeout_ms
        super().__init__(f"Operation {operation_id} timed out after {timeout_ms}ms")


class StrategyDeclinedError(RecoveryEngineError):
    """Raised by a fallback strategy that cannot handle a fault.

    Any exception declines; this one lets a strategy decline explicitly
    without being logged as an unexpected error.
    """
