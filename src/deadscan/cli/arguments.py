"""Argument parser for the deadscan CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict

from deadscan.core.models import SupportedLanguage
from deadscan.service import DEFAULT_BRANCH

OUTPUT_FORMATS = ["json", "table"]


def _add_format_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="table",
        help="Output format (default: table).",
    )


def _add_timeout_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help="Stop waiting for the inspection after this many seconds.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deadscan",
        description="deadscan - Find unused code in remote Git repositories.",
    )

    # Global options
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show deadscan version and exit.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        type=Path,
        help="Path to config file (default: deadscan.yml in the current directory).",
    )
    parser.add_argument(
        "--data-dir",
        metavar="PATH",
        default=None,
        help="Directory for working copies and inspection records.",
    )
    parser.add_argument(
        "--store",
        choices=["file", "memory"],
        default=None,
        help="Inspection store backend.",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    verbosity.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    verbosity.add_argument(
        "--quiet",
        action="store_true",
        help="Reduce logging output to errors only.",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # inspect
    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Inspect a repository branch and wait for the result.",
    )
    inspect_parser.add_argument("url", help="Repository URL, e.g. https://github.com/owner/repo.")
    inspect_parser.add_argument(
        "--language",
        default=SupportedLanguage.JAVA.value,
        help="Source language passed to the analyzer (default: Java).",
    )
    inspect_parser.add_argument(
        "--branch",
        default=DEFAULT_BRANCH,
        help=f"Branch to inspect (default: {DEFAULT_BRANCH}).",
    )
    _add_format_argument(inspect_parser)
    _add_timeout_argument(inspect_parser)
    inspect_parser.add_argument(
        "--fail-on-findings",
        action="store_true",
        help="Exit with code 1 if unused code is found.",
    )

    # refresh
    refresh_parser = subparsers.add_parser(
        "refresh",
        help="Run a finished inspection again.",
    )
    refresh_parser.add_argument("url", help="Repository URL of the inspection.")
    refresh_parser.add_argument(
        "--branch",
        default=DEFAULT_BRANCH,
        help=f"Branch of the inspection (default: {DEFAULT_BRANCH}).",
    )
    _add_format_argument(refresh_parser)
    _add_timeout_argument(refresh_parser)

    # show
    show_parser = subparsers.add_parser("show", help="Show one inspection.")
    show_parser.add_argument("id", help="Inspection id.")
    show_parser.add_argument(
        "--filter",
        dest="name_filter",
        metavar="TEXT",
        default=None,
        help="Only show findings whose name or file contains TEXT.",
    )
    _add_format_argument(show_parser)

    # list
    list_parser = subparsers.add_parser("list", help="List inspections.")
    list_parser.add_argument(
        "--url",
        default=None,
        help="Only list inspections of this repository.",
    )
    _add_format_argument(list_parser)

    # delete
    delete_parser = subparsers.add_parser(
        "delete",
        help="Delete a finished inspection and its working directory.",
    )
    delete_parser.add_argument("id", help="Inspection id.")

    # languages
    subparsers.add_parser("languages", help="List supported source languages.")

    return parser


def cli_args_to_config_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Convert CLI arguments to config override dict.

    Only options given explicitly on the command line are included.
    """
    overrides: Dict[str, Any] = {}
    if getattr(args, "data_dir", None):
        overrides["data_dir"] = args.data_dir
    if getattr(args, "store", None):
        overrides["store"] = args.store
    return overrides
