"""Parser for the report printed by the unused code script.

One candidate finding per line, fields separated by ``&``:

    Private Method&com.acme.Foo.bar&/data/42/repo/src/Foo.java&10&3
    kind          &name            &file                     &line&column

The format is not versioned by the tool vendor, so every line is validated
on its own and anything unexpected is skipped rather than trusted.
"""

from __future__ import annotations

from typing import FrozenSet, List, Optional

from deadscan.core.logging import get_logger
from deadscan.core.models import DeadCodeOccurrence, SymbolKind

LOGGER = get_logger(__name__)

FIELD_DELIMITER = "&"

MIN_FIELDS = 4

ALLOWED_KINDS: FrozenSet[str] = frozenset(kind.value for kind in SymbolKind)

# The tool reports lambda bodies as unused, and invents a "valueOf" accessor
# for every enum. Both are false positives.
EXCLUDED_NAME_MARKERS = ("lambda", ".valueOf.s")


def _parse_position(value: Optional[str], line: str) -> Optional[int]:
    if value is None:
        return None
    value = value.strip()
    try:
        return int(value)
    except ValueError:
        LOGGER.debug(f"Non-numeric position {value!r} in report line: {line}")
        return None


def _strip_root(path: str, root_prefix: str) -> str:
    if root_prefix and path.startswith(root_prefix):
        return path[len(root_prefix):]
    return path


def parse_unused_report(output: str, root: str) -> List[DeadCodeOccurrence]:
    """Convert raw script output into findings.

    Args:
        output: Text printed by the unused code script.
        root: Canonical path of the repository checkout; it is stripped from
            file paths so stored paths are repository-relative.

    Returns:
        Findings in report order. Duplicate lines produce duplicate findings.
    """
    root_prefix = root.rstrip("/") + "/" if root else ""
    findings: List[DeadCodeOccurrence] = []
    skipped = 0

    for raw_line in output.split("\n"):
        line = raw_line[:-1] if raw_line.endswith("\r") else raw_line
        if not line.strip():
            continue

        fields = line.split(FIELD_DELIMITER)
        if len(fields) < MIN_FIELDS:
            LOGGER.debug(f"Skipping malformed report line: {line}")
            skipped += 1
            continue

        kind, name, file_path = fields[0], fields[1], fields[2]
        if kind not in ALLOWED_KINDS:
            skipped += 1
            continue
        if any(marker in name for marker in EXCLUDED_NAME_MARKERS):
            skipped += 1
            continue

        findings.append(
            DeadCodeOccurrence(
                kind=kind,
                name=name,
                file=_strip_root(file_path, root_prefix),
                line=_parse_position(fields[3], line),
                column=_parse_position(fields[4] if len(fields) > 4 else None, line),
            )
        )

    LOGGER.debug(f"Parsed {len(findings)} finding(s), skipped {skipped} line(s)")
    return findings
