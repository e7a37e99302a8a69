"""Show command implementation."""

from __future__ import annotations

import sys
from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService

from deadscan.cli.commands import Command
from deadscan.cli.exit_codes import EXIT_SUCCESS
from deadscan.cli.output import render_inspection


class ShowCommand(Command):
    """Prints the current state and findings of one inspection."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "show"

    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        service = self.require_service(service)
        inspection = service.get_inspection(args.id, name_filter=args.name_filter)
        render_inspection(inspection, args.format, sys.stdout)
        return EXIT_SUCCESS
