"""Delete command implementation."""

from __future__ import annotations

from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService

from deadscan.cli.commands import Command
from deadscan.cli.exit_codes import EXIT_SUCCESS


class DeleteCommand(Command):
    """Deletes a finished inspection."""

    @property
    def name(self) -> str:
        """Command identifier."""
        return "delete"

    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        service = self.require_service(service)
        deleted = service.delete_inspection(args.id)
        print(f"Deleted inspection {deleted.id} ({deleted.git_repo.full_name}, {deleted.branch})")
        return EXIT_SUCCESS
