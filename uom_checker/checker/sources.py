"""Locating the modules to check and building them with mypy."""

import logging
from collections.abc import Iterable
from graphlib import CycleError, TopologicalSorter
from pathlib import Path

from mypy.build import BuildResult, BuildSource, Graph, build
from mypy.options import Options

logger = logging.getLogger(__name__)

Source = tuple[Path, str]


def module_name(path: Path) -> str:
    """Dotted module name of ``path``, counting every enclosing package.

    A package's ``__init__.py`` is named after the package itself.
    """
    parts = [] if path.name == "__init__.py" else [path.stem]
    package = path.parent
    while (package / "__init__.py").is_file():
        parts.append(package.name)
        package = package.parent
    return ".".join(reversed(parts))


def discover(paths: Iterable[Path]) -> list[Source]:
    """Expand files and directories into (absolute path, module name) pairs.

    Directories are searched recursively for ``.py`` files. Anything else is
    ignored, and a file reached through two arguments is listed once.
    """
    found: dict[Path, str] = {}
    for path in paths:
        path = path.resolve()
        if path.is_dir():
            candidates = sorted(path.rglob("*.py"))
        elif path.is_file() and path.suffix == ".py":
            candidates = [path]
        else:
            candidates = []
        for candidate in candidates:
            candidate = candidate.resolve()
            if candidate not in found:
                found[candidate] = module_name(candidate)
    return list(found.items())


def _search_root(path: Path, name: str) -> Path:
    depth = name.count(".") + 1
    if path.name == "__init__.py":
        depth += 1
    return path.parents[depth - 1]


def build_modules(sources: list[Source]) -> BuildResult:
    """Parse and semantically analyse ``sources`` and their imports with mypy.

    Imports outside ``sources`` are followed silently so that names defined
    elsewhere in the same packages resolve.
    """
    options = Options()
    options.incremental = False
    options.follow_imports = "silent"
    options.ignore_missing_imports = True
    options.namespace_packages = True
    options.allow_untyped_globals = True
    options.check_untyped_defs = False
    options.use_builtins_fixtures = True
    options.preserve_asts = True
    options.show_traceback = True
    options.mypy_path = sorted(
        {str(_search_root(path, name)) for path, name in sources}
    )
    logger.debug("Building %d modules, search path %s", len(sources), options.mypy_path)
    return build(
        sources=[BuildSource(str(path), name, None) for path, name in sources],
        options=options,
    )


def check_order(graph: Graph, packages: Iterable[str]) -> list[str]:
    """Modules of ``packages`` in the graph, each after the modules it imports.

    Modules that import each other are returned in name order.
    """
    packages = set(packages)
    scope = {name for name in graph if name.partition(".")[0] in packages}
    sorter: TopologicalSorter[str] = TopologicalSorter()
    for name in scope:
        sorter.add(name, *(dep for dep in graph[name].dependencies if dep in scope))
    try:
        return list(sorter.static_order())
    except CycleError as exc:
        logger.warning("Import cycle between %s", ", ".join(exc.args[1]))
        return sorted(scope)
