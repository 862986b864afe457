from pathlib import Path

import pytest

from uom_checker.config import find_config, load_table
from uom_checker.units import ConfigError, UnitFormula


def write(path: Path, text: str) -> Path:
    path.write_text(text)
    return path


def test_load_defaults():
    table = load_table()
    assert table.frozen
    assert "N" in table
    assert table.resolve("ml") == UnitFormula({"cm": 3})


def test_load_standalone_file(tmp_path: Path):
    path = write(
        tmp_path / "units.toml",
        """
[units]
ft = ""
lb = "base"
lbf = "lb ft/s^2"
""",
    )
    table = load_table(path)
    assert table.is_base("ft")
    assert table.is_base("lb")
    assert str(table.resolve("lbf")) == "ft lb/s^2"
    assert "kg" in table


def test_load_without_si(tmp_path: Path):
    path = write(
        tmp_path / "units.toml",
        """
include-si = false

[units]
px = ""
""",
    )
    table = load_table(path)
    assert list(table) == ["px"]


def test_load_pyproject_section(tmp_path: Path):
    path = write(
        tmp_path / "pyproject.toml",
        """
[project]
name = "example"

[tool.uom-checker.units]
furlong = ""
fortnight = ""
speed = "furlong/fortnight"
""",
    )
    table = load_table(path)
    assert table.resolve("speed").unit_map == {"fortnight": -1, "furlong": 1}


def test_extra_declarations(tmp_path: Path):
    table = load_table(declarations={"ft": None, "ft2": "ft^2"})
    assert table.resolve("ft2") == UnitFormula({"ft": 2})


@pytest.mark.parametrize(
    ("text", "message"),
    [
        ("[units]\nA = \"B\"\nB = \"A\"\n", "Cyclic unit definition: A -> B -> A"),
        ("[units]\nx = \"furlong\"\n", "Unknown unit 'furlong'"),
        ("[units]\nx = 3\n", "unit 'x' must map to a string"),
        ("units = 3\n", "units must be a table"),
        ("include-si = \"yes\"\n", "include-si must be true or false"),
        ("[units\n", "units.toml: "),
        ("[units]\nm = \"\"\n", "Unit 'm' is already declared"),
    ],
)
def test_invalid_config(tmp_path: Path, text: str, message: str):
    path = write(tmp_path / "units.toml", text)
    with pytest.raises(ConfigError) as exc_info:
        load_table(path)
    assert message in str(exc_info.value)
    assert str(path) in str(exc_info.value)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_table(tmp_path / "missing.toml")


def test_find_config(tmp_path: Path):
    nested = tmp_path / "src" / "pkg"
    nested.mkdir(parents=True)
    write(tmp_path / "src" / "pyproject.toml", "[project]\nname = \"inner\"\n")
    root_config = write(
        tmp_path / "pyproject.toml", "[tool.uom-checker.units]\nft = \"\"\n"
    )
    assert find_config(nested) == root_config.resolve()


def test_find_config_none(tmp_path: Path):
    write(tmp_path / "pyproject.toml", "[project]\nname = \"plain\"\n")
    assert find_config(tmp_path) is None
