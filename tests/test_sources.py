from pathlib import Path

import pytest

from uom_checker.checker.checker import UnitChecker
from uom_checker.checker.sources import (
    build_modules,
    check_order,
    discover,
    module_name,
)
from uom_checker.units import UnitFormula, UnitTable, si_table

newton = UnitFormula({"kg": 1, "m": 1, "s": -2})


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path.resolve()


@pytest.fixture
def package(root: Path) -> dict[str, Path]:
    """A ``pkg`` package with sub packages ``sub1`` and ``sub2``, one file each."""
    files = {}
    for i, sub in enumerate(["", "sub1", "sub2"]):
        directory = root / "pkg" / sub
        directory.mkdir(exist_ok=True)
        (directory / "__init__.py").touch()
        name = ".".join(part for part in ("pkg", sub, f"file{i}") if part)
        files[name] = directory / f"file{i}.py"
        files[name].touch()
    return files


def test_module_name_of_plain_file(root: Path):
    assert module_name(root / "motion.py") == "motion"


def test_module_name_inside_package(package: dict[str, Path]):
    for name, path in package.items():
        assert module_name(path) == name
    init = package["pkg.sub1.file1"].parent / "__init__.py"
    assert module_name(init) == "pkg.sub1"


def test_discover_single_file(root: Path):
    (root / "file1.py").touch()
    assert discover([root / "file1.py"]) == [(root / "file1.py", "file1")]


def test_discover_ignores_other_files(root: Path):
    """Only Python files are picked up from a directory."""
    (root / "file1.py").touch()
    (root / "units.toml").touch()
    assert discover([root]) == [(root / "file1.py", "file1")]
    assert discover([root / "units.toml"]) == []


def test_discover_full_package(root: Path, package: dict[str, Path]):
    found = discover([root])
    assert len(found) == 6
    for name, path in package.items():
        assert (path, name) in found
    assert (root / "pkg" / "sub1" / "__init__.py", "pkg.sub1") in found


def test_discover_lists_each_file_once(root: Path, package: dict[str, Path]):
    file1 = package["pkg.sub1.file1"]
    found = discover([file1, root / "pkg" / "sub1", file1])
    assert [name for _, name in found] == ["pkg.sub1.file1", "pkg.sub1"]


def test_imported_modules_are_checked_first(root: Path, package: dict[str, Path]):
    package["pkg.sub1.file1"].write_text("from ..sub2.file2 import a\n")
    package["pkg.sub2.file2"].write_text("a: int = 4\n")

    result = build_modules(discover([package["pkg.sub1.file1"]]))
    order = check_order(result.graph, ["pkg"])

    assert order.index("pkg.sub2.file2") < order.index("pkg.sub1.file1")
    assert all(name.startswith("pkg") for name in order)


def test_import_cycle_falls_back_to_name_order(
    root: Path, package: dict[str, Path]
):
    package["pkg.sub1.file1"].write_text("import pkg.sub2.file2\n")
    package["pkg.sub2.file2"].write_text("import pkg.sub1.file1\n")

    result = build_modules(discover([root]))
    order = check_order(result.graph, ["pkg"])

    assert order == sorted(order)
    assert {"pkg.sub1.file1", "pkg.sub2.file2"} <= set(order)


def unit_of(checker: UnitChecker, fullname: str) -> UnitFormula:
    for node, unit in checker.units.items():
        if node.fullname == fullname:
            return unit
    raise KeyError(fullname)


def test_derived_unit_across_modules(package: dict[str, Path]):
    """Derived units imported from another module compare in base units."""
    file1 = package["pkg.sub1.file1"]
    file1.write_text(
        "from typing import Annotated\n"
        'weight: Annotated[float, "unit:N"] = 9.81\n'
    )
    file2 = package["pkg.sub2.file2"]
    file2.write_text(
        "from typing import Annotated\n"
        "from pkg.sub1.file1 import weight\n"
        'mass: Annotated[float, "unit:kg"] = 1.0\n'
        'g: Annotated[float, "unit:m/s^2"] = 9.81\n'
        "total = weight + mass * g\n"
    )

    checker = UnitChecker()
    checker.check([file1, file2])

    assert not checker.errors
    assert unit_of(checker, "pkg.sub1.file1.weight") == newton
    assert unit_of(checker, "pkg.sub2.file2.total") == newton


def test_alias_imported_under_another_name(package: dict[str, Path]):
    package["pkg.sub1.file1"].write_text(
        "from typing import TypeAlias, Annotated, TypeVar\n"
        'T = TypeVar("T")\n'
        'newtons: TypeAlias = Annotated[T, "unit:kg m/s^2"]\n'
    )
    file2 = package["pkg.sub2.file2"]
    file2.write_text(
        "from pkg.sub1.file1 import newtons as force\n"
        "a: force[float] = 4.0\n"
    )

    checker = UnitChecker()
    checker.check([file2])

    assert unit_of(checker, "pkg.sub2.file2.a") == newton


def test_errors_carry_file_path(package: dict[str, Path]):
    file1 = package["pkg.sub1.file1"]
    file1.write_text(
        "from typing import Annotated\n"
        'a: Annotated[float, "unit:ft"] = 1.0\n'
        'b: Annotated[float, "unit:m"] = 1.0\n'
        "c = a + b\n"
    )
    table = si_table()
    table.declare("ft")
    checker = UnitChecker(table)
    checker.check([file1])

    (error,) = checker.errors
    assert error.code == "U001"
    assert Path(error.path).resolve() == file1
    assert str(error).endswith(
        ":4: U001 Cannot add operands with different units: ft and m"
    )


def test_custom_table_is_frozen():
    table = UnitTable()
    table.declare("m")
    checker = UnitChecker(table)
    assert checker.table is table
    assert table.frozen
