"""CLI runner: parses arguments, loads config and dispatches commands."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

from deadscan.cli.arguments import build_parser, cli_args_to_config_overrides
from deadscan.cli.commands import (
    Command,
    DeleteCommand,
    InspectCommand,
    LanguagesCommand,
    ListInspectionsCommand,
    RefreshCommand,
    ShowCommand,
)
from deadscan.cli.exit_codes import (
    EXIT_CONFLICT,
    EXIT_INSPECTION_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SUCCESS,
)
from deadscan.config import ConfigError, load_config
from deadscan.core.errors import (
    DeadscanError,
    InspectionAlreadyExistsError,
    InspectionLockedError,
    InspectionNotFoundError,
    MalformedInputError,
)
from deadscan.core.logging import configure_logging, get_logger
from deadscan.core.streaming import (
    CLIStreamHandler,
    LoggingStreamHandler,
    StreamHandler,
)
from deadscan.service import InspectionService, build_service

LOGGER = get_logger(__name__)


def get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("deadscan")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from deadscan import __version__

        return __version__


class CLIRunner:
    """Runs one deadscan invocation."""

    def __init__(self) -> None:
        commands: List[Command] = [
            InspectCommand(),
            RefreshCommand(),
            ShowCommand(),
            ListInspectionsCommand(),
            DeleteCommand(),
            LanguagesCommand(),
        ]
        self._commands: Dict[str, Command] = {c.name: c for c in commands}

    def run(self, argv: Optional[Iterable[str]] = None) -> int:
        """Parse ``argv`` and execute the selected command.

        Returns:
            Exit code suitable for use as a console script.
        """
        parser = build_parser()
        argv_list = list(argv) if argv is not None else None

        try:
            args = parser.parse_args(argv_list)
        except SystemExit as e:
            # argparse exits 0 for --help and 2 for usage errors
            return EXIT_SUCCESS if e.code in (0, None) else EXIT_INVALID_USAGE

        # Configure logging as early as possible.
        configure_logging(debug=args.debug, verbose=args.verbose, quiet=args.quiet)

        if args.version:
            print(get_version())
            return EXIT_SUCCESS

        command = self._commands.get(args.command or "")
        if command is None:
            parser.print_help()
            return EXIT_SUCCESS

        if not command.requires_service:
            return command.execute(args)

        try:
            config = load_config(
                project_root=Path.cwd(),
                cli_config_path=args.config,
                cli_overrides=cli_args_to_config_overrides(args),
            )
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE

        stream_handler: StreamHandler
        if args.debug or args.verbose:
            stream_handler = CLIStreamHandler(show_output=args.debug)
        else:
            stream_handler = LoggingStreamHandler()
        try:
            service = build_service(config, stream_handler=stream_handler)
        except DeadscanError as e:
            LOGGER.error(f"Cannot initialize deadscan: {e}")
            return EXIT_INSPECTION_ERROR

        try:
            return self._execute(command, args, service)
        finally:
            service.shutdown(wait=True)

    def _execute(self, command: Command, args, service: InspectionService) -> int:
        try:
            return command.execute(args, service)
        except MalformedInputError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE
        except (InspectionAlreadyExistsError, InspectionLockedError) as e:
            LOGGER.error(str(e))
            return EXIT_CONFLICT
        except InspectionNotFoundError as e:
            LOGGER.error(str(e))
            return EXIT_NOT_FOUND
        except DeadscanError as e:
            LOGGER.error(f"{command.name} failed: {e}")
            return EXIT_INSPECTION_ERROR
        except Exception as e:
            LOGGER.error(f"{command.name} failed: {e}")
            if args.debug:
                import traceback
                traceback.print_exc()
            return EXIT_INSPECTION_ERROR
