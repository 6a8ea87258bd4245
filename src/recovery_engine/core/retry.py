"""Bounded retry with exponential backoff for asynchronous operations.

``RetryExecutor.retry_operation`` returns only after every attempt for the
operation has concluded: the caller gets one result describing either the
successful attempt or the terminal failure. Attempt counters are kept per
``(component, operation id)`` and survive between calls, so an operation
that has already exhausted its retries fails fast until its counter is
reset (by a later success or an explicit reset).

Pending backoff waits own an ``asyncio.Event`` cancellation token and can be
aborted with ``cancel``; the operation then ends with a terminal failure
instead of leaving a timer behind.
"""

from __future__ import annotations

import asyncio
import logging

from recovery_engine.core.audit import AuditLog
from recovery_engine.core.config import EngineSettings
from recovery_engine.core.exceptions import OperationTimeoutError
from recovery_engine.types import (
    Clock,
    Component,
    ErrorContext,
    ErrorLog,
    Operation,
    OperationResult,
    Outcome,
    RecoveryAction,
    RecoveryKind,
    RetryKey,
    Severity,
    SystemFault,
    utc_now,
)
from recovery_engine.utils.logging import get_logger, log_with_context
from recovery_engine.utils.sanitization import sanitize_exception

__all__ = ["RetryExecutor", "compute_backoff"]


def compute_backoff(attempt: int, *, base_ms: int = 1000, cap_ms: int = 10000) -> int:
    """Return the delay before the next attempt after ``attempt`` failures.

    Examples:
        >>> [compute_backoff(n) for n in range(1, 6)]
        [1000, 2000, 4000, 8000, 10000]
    """
    if attempt < 1:
        return 0
    return min(base_ms * 2 ** (attempt - 1), cap_ms)


class RetryExecutor:
    """Run operations with bounded retries, timeouts and exponential backoff."""

    def __init__(
        self,
        audit: AuditLog,
        *,
        settings: EngineSettings | None = None,
        clock: Clock = utc_now,
        logger_obj: logging.Logger | None = None,
    ) -> None:
        self._audit: AuditLog = audit
        self._settings: EngineSettings = settings or EngineSettings()
        self._clock: Clock = clock
        self._logger: logging.Logger = logger_obj or get_logger(__name__)
        self._counters: dict[RetryKey, int] = {}
        self._tokens: dict[RetryKey, set[asyncio.Event]] = {}

    def get_retry_count(self, component: Component, operation_id: str) -> int:
        return self._counters.get((component, operation_id), 0)

    def reset_retry_counter(self, component: Component, operation_id: str) -> None:
        _ = self._counters.pop((component, operation_id), None)

    @property
    def pending(self) -> tuple[RetryKey, ...]:
        """Keys of operations currently being retried."""
        return tuple(self._tokens)

    def cancel(self, component: Component | None = None) -> int:
        """Cancel pending backoff waits, for one component or for all.

        Returns:
            Number of in-flight retries signalled
        """
        cancelled = 0
        for (key_component, _operation_id), tokens in list(self._tokens.items()):
            if component is not None and key_component != component:
                continue
            for token in tuple(tokens):
                if not token.is_set():
                    token.set()
                    cancelled += 1
        if cancelled:
            log_with_context(
                self._logger,
                logging.INFO,
                "Pending retries cancelled",
                extra={"component": str(component) if component else "all", "cancelled": cancelled},
            )
        return cancelled

    async def retry_operation[T](
        self,
        operation: Operation[T],
        max_retries: int | None = None,
    ) -> OperationResult[T]:
        """Execute an operation until it succeeds or its attempts run out.

        Args:
            operation: Operation to execute
            max_retries: Total attempts allowed for the operation's key
                (defaults to the configured ``max_retries``)

        Returns:
            Success with the operation's data, or a failure whose error
            carries "Maximum retry attempts" once the attempts are exhausted

        Raises:
            ValueError: If max_retries is less than 1
        """
        limit = self._settings.max_retries if max_retries is None else max_retries
        if limit < 1:
            msg = f"max_retries must be >= 1, got {limit}"
            raise ValueError(msg)

        key: RetryKey = (operation.component, operation.id)
        label = operation.action or operation.id

        if self._counters.get(key, 0) >= limit:
            log_with_context(
                self._logger,
                logging.WARNING,
                "Retry budget already exhausted, operation not executed",
                extra={"component": str(operation.component), "operation_id": operation.id},
            )
            return OperationResult(
                success=False,
                error=SystemFault.create(
                    operation.component,
                    Severity.MAJOR,
                    f"Maximum retry attempts ({limit}) already reached for {label}",
                    retry_count=limit,
                    prefix="retry",
                    timestamp=self._clock(),
                ),
                attempts=0,
            )

        token = asyncio.Event()
        self._tokens.setdefault(key, set()).add(token)
        attempts = 0
        last_fault: SystemFault | None = None
        try:
            while True:
                attempts += 1
                try:
                    data = await self._attempt(operation)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    count = self._counters.get(key, 0) + 1
                    self._counters[key] = count
                    reason = sanitize_exception(exc)

                    if count >= limit:
                        fault = SystemFault.create(
                            operation.component,
                            Severity.MAJOR,
                            f"Maximum retry attempts ({limit}) exceeded for {label}: {reason}",
                            retry_count=limit,
                            prefix="retry",
                            timestamp=self._clock(),
                        )
                        self._record(fault, attempts, Outcome.FAILED)
                        log_with_context(
                            self._logger,
                            logging.ERROR,
                            "Operation failed after maximum retry attempts",
                            extra={
                                "component": str(operation.component),
                                "operation_id": operation.id,
                                "attempts": attempts,
                                "error_message": reason,
                            },
                        )
                        return OperationResult(success=False, error=fault, attempts=attempts)

                    delay_ms = compute_backoff(
                        count,
                        base_ms=self._settings.backoff_base_ms,
                        cap_ms=self._settings.backoff_cap_ms,
                    )
                    last_fault = SystemFault.create(
                        operation.component,
                        Severity.MINOR,
                        f"Attempt {count}/{limit} failed for {label}: {reason}",
                        retry_count=count,
                        prefix="retry",
                        timestamp=self._clock(),
                    )
                    log_with_context(
                        self._logger,
                        logging.WARNING,
                        "Operation attempt failed, retrying after backoff",
                        extra={
                            "component": str(operation.component),
                            "operation_id": operation.id,
                            "attempt": count,
                            "max_retries": limit,
                            "backoff_ms": delay_ms,
                            "error_message": reason,
                        },
                    )

                    if await self._wait_or_cancelled(token, delay_ms):
                        fault = SystemFault.create(
                            operation.component,
                            Severity.MINOR,
                            f"Retry cancelled for {label} after {attempts} attempt(s)",
                            retry_count=count,
                            prefix="retry",
                            timestamp=self._clock(),
                        )
                        self._record(fault, attempts, Outcome.FAILED)
                        return OperationResult(success=False, error=fault, attempts=attempts)
                    continue

                had_failures = self._counters.pop(key, 0) > 0
                if had_failures and last_fault is not None:
                    self._record(last_fault, attempts, Outcome.RECOVERED)
                    log_with_context(
                        self._logger,
                        logging.INFO,
                        "Operation recovered after retry",
                        extra={
                            "component": str(operation.component),
                            "operation_id": operation.id,
                            "attempts": attempts,
                        },
                    )
                return OperationResult(success=True, data=data, attempts=attempts)
        finally:
            waiting = self._tokens.get(key)
            if waiting is not None:
                waiting.discard(token)
                if not waiting:
                    del self._tokens[key]

    async def _attempt[T](self, operation: Operation[T]) -> T:
        timeout_ms = operation.timeout_ms or self._settings.operation_timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000.0):
                return await operation.execute()
        except TimeoutError as exc:
            raise OperationTimeoutError(operation.id, timeout_ms) from exc

    @staticmethod
    async def _wait_or_cancelled(token: asyncio.Event, delay_ms: int) -> bool:
        """Sleep for the backoff delay; return True if cancelled meanwhile."""
        if token.is_set():
            return True
        try:
            async with asyncio.timeout(delay_ms / 1000.0):
                _ = await token.wait()
        except TimeoutError:
            return False
        return True

    def _record(self, fault: SystemFault, attempts: int, outcome: Outcome) -> None:
        _ = self._audit.append(
            ErrorLog(
                timestamp=self._clock(),
                error=fault,
                context=ErrorContext(),
                recovery_action=RecoveryAction(
                    kind=RecoveryKind.RETRY,
                    description=f"Retried operation {attempts} time(s)",
                    estimated_recovery_time_ms=0,
                ),
                outcome=outcome,
                user_impact=fault.severity.user_impact,
            )
        )
