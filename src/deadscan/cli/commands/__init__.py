"""deadscan subcommands.

Each subcommand is a ``Command`` registered with ``CLIRunner`` under its ``name``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService


class Command(ABC):
    """One deadscan subcommand.

    Commands receive the parsed arguments and, unless ``requires_service`` is
    false, a running ``InspectionService``. Errors from the service propagate;
    the runner maps them to exit codes.
    """

    #: Whether the runner has to build an InspectionService for this command.
    requires_service: bool = True

    @property
    @abstractmethod
    def name(self) -> str:
        """Subcommand name as typed on the command line."""

    @abstractmethod
    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        """Run the subcommand and return its exit code."""

    def require_service(self, service: Optional["InspectionService"]) -> "InspectionService":
        """Return ``service``, failing loudly if the runner did not provide one."""
        if service is None:
            raise TypeError(f"The {self.name} command needs an inspection service")
        return service


# ruff: noqa: E402
from deadscan.cli.commands.delete import DeleteCommand
from deadscan.cli.commands.inspect import InspectCommand
from deadscan.cli.commands.languages import LanguagesCommand
from deadscan.cli.commands.list_inspections import ListInspectionsCommand
from deadscan.cli.commands.refresh import RefreshCommand
from deadscan.cli.commands.show import ShowCommand

__all__ = [
    "Command",
    "DeleteCommand",
    "InspectCommand",
    "LanguagesCommand",
    "ListInspectionsCommand",
    "RefreshCommand",
    "ShowCommand",
]
