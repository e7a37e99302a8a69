"""Languages command implementation."""

from __future__ import annotations

from argparse import Namespace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from deadscan.service import InspectionService

from deadscan.cli.commands import Command
from deadscan.cli.exit_codes import EXIT_SUCCESS
from deadscan.core.models import SupportedLanguage


class LanguagesCommand(Command):
    """Lists the languages the analyzer accepts."""

    requires_service = False

    @property
    def name(self) -> str:
        """Command identifier."""
        return "languages"

    def execute(self, args: Namespace, service: Optional["InspectionService"] = None) -> int:
        print("Supported languages:")
        for language in SupportedLanguage:
            print(f"  {language.value}")
        return EXIT_SUCCESS
