"""Configuration data models for deadscan.

Defines typed configuration classes that represent the deadscan.yml structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from deadscan.core.paths import default_data_dir

VALID_STORES = {"file", "memory"}


@dataclass
class AnalyzerConfig:
    """SciTools Understand invocation settings."""

    scitools_dir: str = "/opt/scitools/bin/linux64"
    script: str = "./unused.pl"  # Perl script run through `und uperl`
    timeout: float = 600  # Seconds per und invocation

    @property
    def und_path(self) -> Path:
        return Path(self.scitools_dir).expanduser() / "und"


@dataclass
class GitConfig:
    """Repository download settings."""

    binary: str = "git"
    timeout: float = 300
    depth: int = 1  # <= 0 clones full history


@dataclass
class QueueConfig:
    """Analysis queue admission control."""

    max_pending: int = 100  # <= 0 means unbounded


@dataclass
class SchedulerConfig:
    """Background scheduler for the download stage."""

    max_workers: int = 4


@dataclass
class DeadscanConfig:
    """Complete deadscan configuration.

    Example deadscan.yml:
        data_dir: /var/lib/deadscan
        ignore:
          - "generated/**"
        analyzer:
          scitools_dir: /opt/scitools/bin/linux64
          timeout: 900
        queue:
          max_pending: 20
    """

    data_dir: str = field(default_factory=lambda: str(default_data_dir()))
    store: str = "file"
    ignore: List[str] = field(default_factory=list)
    analyzer: AnalyzerConfig = field(default_factory=AnalyzerConfig)
    git: GitConfig = field(default_factory=GitConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    # Metadata (not from YAML, set by loader)
    _config_sources: List[str] = field(default_factory=list, repr=False)

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()
