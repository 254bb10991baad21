"""
Engine configuration read from the environment.
"""

import os
from dataclasses import dataclass


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class EngineConfig:
    """
    Build-time settings.

    Attributes:
        metrics_enabled: Attach Prometheus metrics to every built machine
        strict: Reject ambiguous unconditional transitions instead of warning
    """
    metrics_enabled: bool = False
    strict: bool = False

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load configuration from FSM_* environment variables"""
        return cls(
            metrics_enabled=_env_flag('FSM_METRICS_ENABLED'),
            strict=_env_flag('FSM_STRICT'),
        )
