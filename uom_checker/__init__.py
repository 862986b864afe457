"""The main module for uom-checker, a units of measure checker."""

import argparse
import logging
import sys
from contextlib import suppress
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from mypy.errors import CompileError

from .checker.checker import UnitChecker
from .config import find_config, load_table
from .units import ConfigError, UnitError

with suppress(PackageNotFoundError):
    __version__ = version("uom-checker")


def _parse_declaration(text: str) -> tuple[str, str | None]:
    """Split 'NAME' or 'NAME=FORMULA' from the command line."""
    name, sep, formula = text.partition("=")
    if not name.strip():
        raise argparse.ArgumentTypeError(f"invalid unit declaration {text!r}")
    return name.strip(), formula.strip() if sep and formula.strip() else None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="uom-checker",
        description="uom-checker: Check units of measure in Python files.",
    )
    parser.add_argument(
        "files",
        metavar="file_or_directory",
        nargs="*",
        help="Python files or directories to check",
    )
    parser.add_argument(
        "-u",
        "--show-units",
        action="store_true",
        help="Show unit data for all checked variables",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="TOML file declaring units (default: nearest pyproject.toml)",
    )
    parser.add_argument(
        "-D",
        "--declare",
        metavar="NAME[=FORMULA]",
        action="append",
        type=_parse_declaration,
        default=[],
        help="Declare a base unit, or a derived unit with its formula",
    )
    parser.add_argument(
        "--canonicalize",
        metavar="FORMULA",
        help="Print the canonical form of a unit formula and exit",
    )
    parser.add_argument(
        "-x",
        "--expand",
        action="store_true",
        help="With --canonicalize, expand derived units to base units",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging"
    )
    return parser


def run(argv: list[str] | None = None) -> int:
    """Run the unit checker on provided filenames with optional unit output.

    Returns:
        0 if no problems were found, 1 if diagnostics were reported and 2 for
        usage or configuration errors.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config_path = args.config or find_config(Path.cwd())
    try:
        table = load_table(config_path, dict(args.declare))
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    if args.canonicalize is not None:
        try:
            formula = table.parse(args.canonicalize, expand=args.expand)
        except UnitError as exc:
            print(exc, file=sys.stderr)
            return 2
        print(formula)
        return 0

    if not args.files:
        parser.print_usage(sys.stderr)
        return 2

    paths = [Path(path_str) for path_str in args.files]
    if missing := [path for path in paths if not path.exists()]:
        for path in missing:
            print(f"No such file or directory: {path}", file=sys.stderr)
        return 2

    checker = UnitChecker(table)
    try:
        checker.check(paths)
    except CompileError as exc:
        # mypy could not build the modules, e.g. a syntax error
        for message in exc.messages:
            print(message, file=sys.stderr)
        return 2

    for error in checker.errors:
        print(error)
    print("Unit checking completed.")
    print(f"Errors: {len(checker.errors)}")
    if args.show_units:
        print("Units:")
        for key, val in checker.units.items():
            print(f"{key.fullname}: {val}")
    return 1 if checker.errors else 0
