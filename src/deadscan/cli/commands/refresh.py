"""Refresh command implementation."""

from __future__ import annotations

from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService

from deadscan.cli.commands import Command
from deadscan.cli.commands.inspect import wait_and_report


class RefreshCommand(Command):
    """Re-runs a finished inspection and waits for its outcome."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "refresh"

    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        service = self.require_service(service)
        inspection = service.refresh_inspection(args.url, branch=args.branch)
        return wait_and_report(service, inspection, args)
