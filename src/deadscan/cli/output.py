"""Rendering of inspections for the terminal."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import IO, Iterable, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from deadscan.core.models import Inspection, InspectionState

_STATE_STYLES = {
    InspectionState.COMPLETED: "green",
    InspectionState.FAILED: "red",
}


def _format_timestamp(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _position(value) -> str:
    return "" if value is None else str(value)


def render_inspection(inspection: Inspection, output_format: str, stream: IO[str]) -> None:
    """Write one inspection, including its findings."""
    if output_format == "json":
        json.dump(inspection.to_dict(), stream, indent=2)
        stream.write("\n")
        return

    console = Console(file=stream, highlight=False)
    style = _STATE_STYLES.get(inspection.state, "yellow")
    console.print(f"Inspection {inspection.id}")
    console.print(f"  Repository: {escape(inspection.git_repo.url)} ({escape(inspection.branch)})")
    console.print(f"  Language:   {inspection.language}")
    console.print(f"  Created:    {_format_timestamp(inspection.created_at)}")
    console.print(
        f"  State:      [{style}]{inspection.state.value}[/{style}] - "
        f"{inspection.state_description}"
    )
    if inspection.failure_message:
        console.print(f"  Error:      {inspection.failure_message}", markup=False)

    if inspection.state != InspectionState.COMPLETED:
        return
    if not inspection.findings:
        console.print("\nNo unused code found.")
        return

    table = Table(title=f"{len(inspection.findings)} unused symbol(s)")
    table.add_column("Kind")
    table.add_column("Name", overflow="fold")
    table.add_column("File", overflow="fold")
    table.add_column("Line", justify="right")
    table.add_column("Column", justify="right")
    for finding in inspection.findings:
        table.add_row(
            escape(finding.kind),
            escape(finding.name),
            escape(finding.file),
            _position(finding.line),
            _position(finding.column),
        )
    console.print(table)


def render_inspections(
    inspections: Iterable[Inspection], output_format: str, stream: IO[str]
) -> None:
    """Write a summary line per inspection."""
    records: List[Inspection] = list(inspections)
    if output_format == "json":
        json.dump([i.to_dict() for i in records], stream, indent=2)
        stream.write("\n")
        return

    console = Console(file=stream, highlight=False)
    if not records:
        console.print("No inspections.")
        return

    table = Table()
    table.add_column("Id", no_wrap=True)
    table.add_column("Repository")
    table.add_column("Branch")
    table.add_column("Language")
    table.add_column("State")
    table.add_column("Findings", justify="right")
    table.add_column("Created")
    for inspection in records:
        style = _STATE_STYLES.get(inspection.state, "yellow")
        table.add_row(
            inspection.id,
            escape(inspection.git_repo.full_name),
            escape(inspection.branch),
            inspection.language,
            f"[{style}]{inspection.state.value}[/{style}]",
            str(len(inspection.findings)),
            _format_timestamp(inspection.created_at),
        )
    console.print(table)
