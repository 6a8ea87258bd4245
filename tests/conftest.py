"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import HealthCheck, settings

from recovery_engine.core.config import EngineSettings
from recovery_engine.core.engine import RecoveryEngine
from recovery_engine.types import AlertType, Component
from recovery_engine.utils.logging import clear_correlation_id

settings.register_profile(
    "recovery",
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.register_profile("thorough", parent=settings.get_profile("recovery"), max_examples=500)
settings.load_profile("recovery")


class FakeClock:
    """Manually advanced wall clock and monotonic clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now: datetime = start or datetime(2025, 3, 14, 9, 30, tzinfo=UTC)
        self.seconds: float = 1000.0

    def __call__(self) -> datetime:
        return self.now

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)
        self.seconds += seconds


class RecordingAlertPort:
    def __init__(self, *, fail: bool = False) -> None:
        self.alerts: list[AlertType] = []
        self.fail: bool = fail

    def trigger(self, alert_type: AlertType) -> None:
        self.alerts.append(alert_type)
        if self.fail:
            raise RuntimeError("speaker unavailable")


class RecordingNotificationSink:
    def __init__(self, *, fail: bool = False) -> None:
        self.messages: list[tuple[str, bool]] = []
        self.fail: bool = fail

    def notify(self, message: str, *, audio_alert: bool = False) -> None:
        self.messages.append((message, audio_alert))
        if self.fail:
            raise RuntimeError("display disconnected")


class RecordingBypassHook:
    def __init__(self, *, fail: bool = False) -> None:
        self.engaged: list[Component | None] = []
        self.fail: bool = fail

    async def engage(self, component: Component | None) -> None:
        self.engaged.append(component)
        if self.fail:
            raise RuntimeError("bypass path unavailable")


class StubVerifier:
    def __init__(self, result: bool | Exception = True) -> None:
        self.result: bool | Exception = result
        self.calls: list[Component] = []

    async def verify(self, component: Component) -> bool:
        self.calls.append(component)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture(autouse=True)
def _reset_correlation_id() -> Iterator[None]:
    clear_correlation_id()
    yield
    clear_correlation_id()


@pytest.fixture
def fast_settings() -> EngineSettings:
    """Settings with millisecond backoff so retry tests run quickly."""
    return EngineSettings(
        backoff_base_ms=1,
        backoff_cap_ms=5,
        operation_timeout_ms=200,
        strategy_timeout_ms=200,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def alert_port() -> RecordingAlertPort:
    return RecordingAlertPort()


@pytest.fixture
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def bypass_hook() -> RecordingBypassHook:
    return RecordingBypassHook()


@pytest.fixture
def engine(
    fast_settings: EngineSettings,
    fake_clock: FakeClock,
    alert_port: RecordingAlertPort,
    notification_sink: RecordingNotificationSink,
    bypass_hook: RecordingBypassHook,
) -> RecoveryEngine:
    """Engine tracking every component with recording ports and a fake clock."""
    return RecoveryEngine(
        settings=fast_settings,
        alert_port=alert_port,
        notification_sink=notification_sink,
        bypass_hook=bypass_hook,
        clock=fake_clock,
        monotonic=fake_clock.monotonic,
    )
