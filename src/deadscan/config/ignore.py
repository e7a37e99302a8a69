"""Ignore patterns for dead code findings.

Patterns use gitignore syntax and are matched against repository-relative
finding paths. They come only from the ``ignore`` config list; files inside the
inspected repository never change which findings are reported.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

import pathspec

from deadscan.core.logging import get_logger
from deadscan.core.models import DeadCodeOccurrence

LOGGER = get_logger(__name__)


class IgnorePatterns:
    """A compiled set of gitignore-style patterns."""

    def __init__(self, patterns: Iterable[str]):
        self._patterns = [
            p.strip() for p in patterns
            if p.strip() and not p.strip().startswith("#")
        ]
        self._spec = pathspec.GitIgnoreSpec.from_lines(self._patterns)

    def get_exclude_patterns(self) -> List[str]:
        return list(self._patterns)

    def __bool__(self) -> bool:
        return bool(self._patterns)

    def matches(self, relative_path: str) -> bool:
        """Check a repository-relative path against the patterns."""
        if not self._patterns:
            return False
        return self._spec.match_file(relative_path.replace("\\", "/"))

    def filter_findings(
        self, findings: Sequence[DeadCodeOccurrence]
    ) -> List[DeadCodeOccurrence]:
        """Drop findings located in ignored files, preserving order."""
        if not self._patterns:
            return list(findings)
        kept = [f for f in findings if not self.matches(f.file)]
        dropped = len(findings) - len(kept)
        if dropped:
            LOGGER.debug(f"Ignore patterns removed {dropped} finding(s)")
        return kept
