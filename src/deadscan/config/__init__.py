"""Configuration loading for deadscan."""

from __future__ import annotations

from deadscan.config.loader import ConfigError, load_config
from deadscan.config.models import (
    AnalyzerConfig,
    DeadscanConfig,
    GitConfig,
    QueueConfig,
    SchedulerConfig,
)

__all__ = [
    "AnalyzerConfig",
    "ConfigError",
    "DeadscanConfig",
    "GitConfig",
    "QueueConfig",
    "SchedulerConfig",
    "load_config",
]
