"""Inspect command implementation."""

from __future__ import annotations

import sys
from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService

from deadscan.cli.commands import Command
from deadscan.cli.exit_codes import (
    EXIT_FINDINGS_FOUND,
    EXIT_INSPECTION_ERROR,
    EXIT_SUCCESS,
)
from deadscan.cli.output import render_inspection
from deadscan.core.logging import get_logger
from deadscan.core.models import Inspection, InspectionState

LOGGER = get_logger(__name__)


def wait_and_report(
    service: "InspectionService", inspection: Inspection, args: Namespace
) -> int:
    """Wait for a scheduled inspection, print it and derive the exit code."""
    LOGGER.info(f"Waiting for inspection {inspection.id}")
    result = service.wait_for_inspection(inspection.id, timeout=args.timeout)
    render_inspection(result, args.format, sys.stdout)

    if not result.state.is_terminal:
        LOGGER.error(
            f"Inspection {result.id} did not finish within {args.timeout} seconds "
            f"(still {result.state.value})"
        )
        return EXIT_INSPECTION_ERROR
    if result.state == InspectionState.FAILED:
        return EXIT_INSPECTION_ERROR
    if getattr(args, "fail_on_findings", False) and result.findings:
        return EXIT_FINDINGS_FOUND
    return EXIT_SUCCESS


class InspectCommand(Command):
    """Creates an inspection and waits for its outcome."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "inspect"

    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        """Execute the inspect command.

        Args:
            args: Parsed command-line arguments.
            service: Inspection service.

        Returns:
            Exit code based on the inspection outcome.
        """
        service = self.require_service(service)
        inspection = service.create_inspection(args.url, args.language, branch=args.branch)
        return wait_and_report(service, inspection, args)
