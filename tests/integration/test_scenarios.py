"""End-to-end scenarios across engine, integration layer and audit trail."""

from __future__ import annotations

import asyncio

import pytest
from conftest import RecordingAlertPort, RecordingNotificationSink, StubVerifier

from recovery_engine.core.config import EngineSettings
from recovery_engine.core.engine import RecoveryEngine
from recovery_engine.integration.fallbacks import register_default_fallbacks
from recovery_engine.integration.mediation import MediationErrorHandler
from recovery_engine.types import (
    SPEED_PRIORITY_KINDS,
    AlertType,
    CareSetting,
    Component,
    ComponentStatus,
    CriticalFailure,
    ErrorContext,
    Operation,
    OverallHealth,
    RecoveryKind,
    Severity,
    SystemFault,
)

pytestmark = pytest.mark.integration


class ScriptedCall:
    """Operation body following a script of failures and successes."""

    def __init__(self, *outcomes: bool) -> None:
        self.outcomes: list[bool] = list(outcomes)
        self.calls: int = 0

    async def __call__(self) -> str:
        self.calls += 1
        succeeded = self.outcomes[min(self.calls, len(self.outcomes)) - 1]
        if not succeeded:
            raise ConnectionError(f"mediation backend unavailable on call {self.calls}")
        return "gloss: HELLO DOCTOR"


@pytest.mark.asyncio
async def test_critical_default_path_requests_audio_alert(engine: RecoveryEngine) -> None:
    for component in Component:
        action = await engine.handle_error(SystemFault.create(component, Severity.CRITICAL, "unresponsive"))

        assert action.audio_alert is True
        assert action.description
        assert action.estimated_recovery_time_ms >= 0


@pytest.mark.asyncio
async def test_error_history_reads_are_stable(engine: RecoveryEngine) -> None:
    _ = await engine.handle_error(SystemFault.create(Component.CAMERA, Severity.MINOR, "glare"))

    assert engine.get_error_history() == engine.get_error_history()


@pytest.mark.asyncio
async def test_retry_exhaustion(engine: RecoveryEngine) -> None:
    call = ScriptedCall(False)

    result = await engine.retry_operation(
        Operation(id="translate", component=Component.AI_MEDIATION, execute=call), max_retries=4
    )

    assert call.calls == 4
    assert result.success is False
    assert result.error is not None
    assert result.error.retry_count == 4
    assert "Maximum retry attempts" in result.error.message


@pytest.mark.asyncio
async def test_retry_recovers_on_third_attempt(engine: RecoveryEngine) -> None:
    call = ScriptedCall(False, False, True)

    result = await engine.retry_operation(
        Operation(id="translate", component=Component.AI_MEDIATION, execute=call), max_retries=3
    )

    assert result.success is True
    assert result.data == "gloss: HELLO DOCTOR"
    assert engine.get_retry_count(Component.AI_MEDIATION, "translate") == 0


@pytest.mark.asyncio
async def test_health_is_forward_only(engine: RecoveryEngine) -> None:
    _ = await engine.handle_error(SystemFault.create(Component.SIGN_RECOGNITION, Severity.CRITICAL, "model crash"))
    assert engine.get_system_health().components[Component.SIGN_RECOGNITION] is ComponentStatus.FAILED

    _ = await engine.handle_error(SystemFault.create(Component.SIGN_RECOGNITION, Severity.MINOR, "low confidence"))

    assert engine.get_system_health().components[Component.SIGN_RECOGNITION] is ComponentStatus.FAILED


@pytest.mark.asyncio
async def test_audit_log_keeps_most_recent_hundred() -> None:
    engine = RecoveryEngine(settings=EngineSettings(audit_capacity=100))
    faults = [SystemFault.create(Component.MICROPHONE, Severity.MINOR, f"dropout {i}") for i in range(150)]

    for fault in faults:
        _ = await engine.handle_error(fault)

    history = engine.get_error_history()
    assert len(history) == 100
    assert [entry.error for entry in history] == faults[50:]


@pytest.mark.asyncio
@pytest.mark.parametrize("with_defaults", [True, False])
async def test_avatar_failure_in_emergency_is_fast(engine: RecoveryEngine, with_defaults: bool) -> None:
    if with_defaults:
        _ = register_default_fallbacks(engine)

    action = await engine.handle_error(
        SystemFault.create(Component.AVATAR_RENDERING, Severity.CRITICAL, "WebGL context lost"),
        ErrorContext(is_emergency_mode=True, setting=CareSetting.EMERGENCY),
    )

    assert action.kind in SPEED_PRIORITY_KINDS
    assert action.estimated_recovery_time_ms <= 5000


@pytest.mark.asyncio
async def test_critical_ai_mediation_failure(engine: RecoveryEngine, alert_port: RecordingAlertPort) -> None:
    await engine.handle_critical_failure(
        CriticalFailure(
            component=Component.AI_MEDIATION,
            cascading_failures=(Component.AVATAR_RENDERING,),
            patient_safety_impact=True,
        )
    )

    status = engine.get_system_health()
    assert status.overall is OverallHealth.CRITICAL
    assert status.components[Component.AI_MEDIATION] is ComponentStatus.FAILED
    assert status.components[Component.AVATAR_RENDERING] is ComponentStatus.DEGRADED
    assert alert_port.alerts == [AlertType.AUDIO]


@pytest.mark.asyncio
async def test_emergency_session_then_recovery(
    engine: RecoveryEngine, notification_sink: RecordingNotificationSink
) -> None:
    """A clinic session escalates under repeated failures and recovers once verified."""
    _ = register_default_fallbacks(engine)
    handler = MediationErrorHandler(engine)
    context = ErrorContext()

    kinds = [
        (await handler.handle_speech_recognition_error(TimeoutError("recognizer timeout"), context)).kind
        for _ in range(4)
    ]

    assert kinds[:3] == [RecoveryKind.RETRY] * 3
    assert kinds[3] is RecoveryKind.MANUAL_INPUT
    assert engine.emergency_mode is True
    assert engine.get_component_health(Component.SPEECH_RECOGNITION) is ComponentStatus.DEGRADED
    assert any(audio for _, audio in notification_sink.messages)

    assert await engine.recover_component(Component.SPEECH_RECOGNITION, StubVerifier(True)) is True
    handler.deactivate_emergency_mode()

    assert engine.get_system_health().overall is OverallHealth.HEALTHY
    assert engine.emergency_mode is False


@pytest.mark.asyncio
async def test_concurrent_reports_for_one_component(engine: RecoveryEngine) -> None:
    _ = register_default_fallbacks(engine)
    faults = [
        SystemFault.create(Component.SPEECH_RECOGNITION, Severity.MAJOR, f"recognizer stall {i}") for i in range(12)
    ]

    actions = await asyncio.gather(*(engine.handle_error(fault) for fault in faults))

    history = engine.get_error_history()
    assert len(actions) == len(history) == 12
    assert [entry.error for entry in history] == faults
    assert all(entry.recovery_action.description != "Initial error logged" for entry in history)
    assert [entry.recovery_action for entry in history] == actions
    assert engine.get_component_health(Component.SPEECH_RECOGNITION) is ComponentStatus.DEGRADED
