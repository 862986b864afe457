"""Loading unit declarations from TOML configuration.

Declarations live either in a standalone file::

    include-si = true

    [units]
    ft = ""
    lbf = "lb ft/s^2"

or in ``pyproject.toml`` under ``[tool.uom-checker]`` with the same keys. An empty
string (or ``"base"``) declares a base unit, anything else is a defining formula.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any

from .units import ConfigError, UnitError, UnitTable, si_table

logger = logging.getLogger(__name__)

TOOL_SECTION = "uom-checker"


def _table_section(data: dict[str, Any], path: Path) -> dict[str, Any] | None:
    if path.name == "pyproject.toml":
        section = data.get("tool", {}).get(TOOL_SECTION)
        if section is not None and not isinstance(section, dict):
            raise ConfigError(f"{path}: [tool.{TOOL_SECTION}] must be a table")
        return section
    return data


def find_config(start: Path) -> Path | None:
    """Walk up from ``start`` to the first pyproject.toml with a checker section."""
    start = start.resolve()
    for directory in (start, *start.parents):
        candidate = directory / "pyproject.toml"
        if not candidate.is_file():
            continue
        with candidate.open("rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError:
                logger.debug("Skipping unreadable %s", candidate)
                continue
        if _table_section(data, candidate) is not None:
            return candidate
    return None


def load_table(
    path: Path | None = None, declarations: dict[str, str | None] | None = None
) -> UnitTable:
    """Build a frozen unit table from a config file and extra declarations.

    Args:
        path: A TOML file. Without one only the SI units and ``declarations`` are
            used.
        declarations: Additional units, name to formula or None for a base unit.

    Raises:
        ConfigError: The file cannot be read or a declaration is invalid.
    """
    section: dict[str, Any] = {}
    if path is not None:
        try:
            with path.open("rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"{path}: {exc}") from exc
        section = _table_section(data, path) or {}

    include_si = section.get("include-si", True)
    if not isinstance(include_si, bool):
        raise ConfigError(f"{path}: include-si must be true or false")
    units = section.get("units", {})
    if not isinstance(units, dict):
        raise ConfigError(f"{path}: units must be a table")

    config_units: dict[str, str | None] = {}
    for name, value in units.items():
        if not isinstance(value, str):
            raise ConfigError(f"{path}: unit {name!r} must map to a string")
        config_units[name] = None if value.strip() in ("", "base") else value

    table = si_table() if include_si else UnitTable()
    try:
        table.declare_many(config_units)
        table.declare_many(declarations or {})
    except UnitError as exc:
        source = path if path is not None else "declarations"
        raise ConfigError(f"{source}: {exc}") from exc
    logger.debug("Loaded %d units from %s", len(table), path or "defaults")
    return table.freeze()
