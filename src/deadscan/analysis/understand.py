"""SciTools Understand driver.

An analysis run is two ``und`` invocations over the inspection directory:

    und -db <dir>/db.udb create -languages Java add <dir>/<repo> settings analyze
    und uperl <unused.pl> -db <dir>/db.udb

The first builds the analysis database, the second runs the unused code
script against it and prints the report consumed by ``parse_unused_report``.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

from deadscan.analysis.report_parser import parse_unused_report
from deadscan.config.ignore import IgnorePatterns
from deadscan.config.models import AnalyzerConfig
from deadscan.core.logging import get_logger
from deadscan.core.models import DeadCodeOccurrence
from deadscan.core.paths import DATABASE_FILE_NAME, canonical_path
from deadscan.core.subprocess_runner import ProcessRunner

LOGGER = get_logger(__name__)


class UnderstandAnalyzer:
    """Builds an Understand database and extracts unused symbols from it."""

    def __init__(
        self,
        config: Optional[AnalyzerConfig] = None,
        runner: Optional[ProcessRunner] = None,
        ignore: Sequence[str] = (),
    ):
        """Initialize UnderstandAnalyzer.

        Args:
            config: und location, script path and per-command timeout.
            runner: Process runner (default: one without output streaming).
            ignore: Gitignore-style patterns for findings to drop.
        """
        self._config = config or AnalyzerConfig()
        self._runner = runner or ProcessRunner()
        self._ignore = IgnorePatterns(ignore)

    @property
    def timeout(self) -> float:
        return self._config.timeout

    def build_database_args(
        self, inspection_dir: Path, repo_name: str, language: str
    ) -> List[str]:
        return [
            "-db", canonical_path(inspection_dir / DATABASE_FILE_NAME), "create",
            "-languages", language,
            "add", canonical_path(inspection_dir / repo_name),
            "settings", "analyze",
        ]

    def find_unused_args(self, inspection_dir: Path) -> List[str]:
        return [
            "uperl", canonical_path(self._config.script),
            "-db", canonical_path(inspection_dir / DATABASE_FILE_NAME),
        ]

    def build_database(self, inspection_dir: Path, repo_name: str, language: str) -> None:
        """Create ``db.udb`` for the checked out repository.

        Raises:
            ProcessExecutionError: If und fails or times out.
            PathResolutionError: If a path cannot be canonicalized.
        """
        self._runner.run(
            canonical_path(self._config.und_path),
            self.build_database_args(inspection_dir, repo_name, language),
            cwd=inspection_dir,
            timeout=self._config.timeout,
            tool_name="und-create",
        )

    def find_unused(self, inspection_dir: Path) -> str:
        """Run the unused code script and return its raw report."""
        return self._runner.run(
            canonical_path(self._config.und_path),
            self.find_unused_args(inspection_dir),
            cwd=inspection_dir,
            timeout=self._config.timeout,
            tool_name="und-uperl",
        )

    def analyze(
        self, inspection_dir: Path, repo_name: str, language: str
    ) -> List[DeadCodeOccurrence]:
        """Run both steps and return the filtered findings.

        File paths in the result are relative to the repository checkout.
        """
        self.build_database(inspection_dir, repo_name, language)
        report = self.find_unused(inspection_dir)

        repo_root = Path(canonical_path(inspection_dir / repo_name))
        findings = parse_unused_report(report, str(repo_root))

        findings = self._ignore.filter_findings(findings)

        LOGGER.info(f"Found {len(findings)} unused symbol(s) in {repo_name}")
        return findings
