"""Recovery Engine - resilience core for a medical communication aid.

This package tracks component health, walks per-component fallback chains,
retries operations with exponential backoff and escalates to emergency mode
so that a speech, sign and avatar mediation pipeline degrades gracefully
instead of failing outright.
"""

from recovery_engine.core.config import EngineSettings, MainConfig, load_main_config
from recovery_engine.core.engine import RecoveryEngine
from recovery_engine.core.exceptions import (
    OperationTimeoutError,
    RecoveryEngineError,
    StrategyDeclinedError,
    UnknownComponentError,
)

__all__ = [
    "EngineSettings",
    "MainConfig",
    "OperationTimeoutError",
    "RecoveryEngine",
    "RecoveryEngineError",
    "StrategyDeclinedError",
    "UnknownComponentError",
    "load_main_config",
]
