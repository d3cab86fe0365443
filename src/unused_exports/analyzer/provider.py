"""Symbol table provider: what each compilation unit exports.

Exports are public module-level functions. Functions a contract requires are
left out: interpreter module hooks, functions registered through decorators,
and entry points declared in `pyproject.toml`.
"""
import hashlib
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Protocol, Set, Tuple

from ..errors import ProviderError
from .discovery import SourceUnit
from .extractor import ModuleSymbols, SymbolExtractor
from .parser import PythonParser, syntax_error_line
from .symbols import BUILT_INS, ExportedSymbol, SymbolIdentity


# (owner, name) -> arities of public functions with that name
ExportIndex = Dict[Tuple[str, str], FrozenSet[int]]


@dataclass
class SymbolTable:
    """Result of enumerating every unit of a session."""
    exports: List[ExportedSymbol] = field(default_factory=list)
    index: ExportIndex = field(default_factory=dict)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def digest(self) -> str:
        """sha256 over the sorted export index.

        Changes whenever a public function is added, removed, or changes arity.
        """
        hasher = hashlib.sha256()
        for (owner, name), arities in sorted(self.index.items()):
            for arity in sorted(arities):
                hasher.update(f"{owner}\0{name}\0{arity}\n".encode('utf-8'))
        return hasher.hexdigest()


class SymbolProvider(Protocol):
    """Anything able to enumerate the exports of a set of units."""

    def symbol_table(self, units: Iterable[SourceUnit]) -> SymbolTable:
        ...


def is_package_unit(unit: SourceUnit) -> bool:
    return unit.path.name == '__init__.py'


class PythonSymbolProvider:
    """Tree-sitter backed provider for Python source units."""

    def __init__(self, project_root: str | Path = "."):
        """Initialize provider.

        Args:
            project_root: Root directory of project (holds pyproject.toml)
        """
        self.project_root = Path(project_root).resolve()
        self.entry_points = self._parse_entry_points()

    def _parse_entry_points(self) -> Set[Tuple[str, str]]:
        """Read `module:function` entry points declared in pyproject.toml.

        Reads [project.scripts], [project.gui-scripts] and every group of
        [project.entry-points]. A malformed pyproject declares nothing here;
        configuration loading reports it.
        """
        pyproject = self.project_root / "pyproject.toml"
        if not pyproject.exists():
            return set()

        try:
            with open(pyproject, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError):
            return set()

        project = data.get("project", {})
        values = []
        for table in ("scripts", "gui-scripts"):
            values.extend(project.get(table, {}).values())
        for group in project.get("entry-points", {}).values():
            if isinstance(group, dict):
                values.extend(group.values())

        entry_points = set()
        for value in values:
            if not isinstance(value, str) or ':' not in value:
                continue
            module, _, attr = value.partition(':')
            # "pkg.mod:func [extra]" and "pkg.mod:Class.method" forms
            attr = attr.split('[', 1)[0].strip().split('.', 1)[0]
            entry_points.add((module.strip(), attr))
        return entry_points

    def unit_symbols(self, unit: SourceUnit) -> ModuleSymbols:
        """Parse one unit and extract its symbols.

        Raises:
            ProviderError: If the unit cannot be read or does not parse
        """
        parser = PythonParser()
        try:
            tree, _ = parser.parse_file(unit.path)
        except OSError as e:
            raise ProviderError(unit.unit_id, f"cannot read {unit.rel_path}: {e}") from e

        error_line = syntax_error_line(tree)
        if error_line is not None:
            raise ProviderError(unit.unit_id, f"syntax error in {unit.rel_path}:{error_line}")

        extractor = SymbolExtractor(unit.unit_id, is_package=is_package_unit(unit))
        return extractor.extract(tree)

    def symbol_table(self, units: Iterable[SourceUnit]) -> SymbolTable:
        table = SymbolTable()
        index: Dict[Tuple[str, str], Set[int]] = {}
        seen = set()

        for unit in units:
            try:
                symbols = self.unit_symbols(unit)
            except ProviderError as e:
                table.failed[unit.unit_id] = e.reason
                continue

            exported_names = set(symbols.all_names) if symbols.all_names is not None else None

            for func in symbols.functions:
                if not func.is_public:
                    continue
                index.setdefault((unit.unit_id, func.name), set()).add(func.arity)

                identity = SymbolIdentity(unit.unit_id, func.name, func.arity)
                if identity in seen:
                    continue
                if (func.name, func.arity) in BUILT_INS:
                    continue
                if exported_names is not None and func.name not in exported_names:
                    continue
                if func.is_registered or (unit.unit_id, func.name) in self.entry_points:
                    continue

                seen.add(identity)
                table.exports.append(ExportedSymbol(
                    identity=identity,
                    source_file=unit.rel_path,
                    source_line=func.line,
                ))

        table.index = {key: frozenset(arities) for key, arities in index.items()}
        return table
