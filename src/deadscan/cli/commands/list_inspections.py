"""List command implementation."""

from __future__ import annotations

import sys
from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService

from deadscan.cli.commands import Command
from deadscan.cli.exit_codes import EXIT_SUCCESS
from deadscan.cli.output import render_inspections


class ListInspectionsCommand(Command):
    """Lists stored inspections, optionally for one repository."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "list"

    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        service = self.require_service(service)
        if args.url:
            inspections = service.list_repository_inspections(args.url)
        else:
            inspections = service.list_inspections()
        render_inspections(inspections, args.format, sys.stdout)
        return EXIT_SUCCESS
