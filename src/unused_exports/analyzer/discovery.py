"""Compilation unit discovery: one unit per importable Python module."""
import fnmatch
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from ..utils.logger import log_warning


# Directories never treated as part of the compiled program unless they are
# packages: virtualenvs, build output, vendored code and test/documentation trees.
SKIPPED_DIRECTORIES = {
    '.git', '.hg', '.svn',
    '.venv', 'venv', 'env', '.virtualenv', '.tox', '.nox',
    'site-packages', 'node_modules', '__pycache__',
    'build', 'dist', '.eggs',
    'vendor', 'third_party',
    'tests', 'test', 'docs', 'examples',
    '.unused_cache', '.mypy_cache', '.pytest_cache', '.ruff_cache',
}


@dataclass(frozen=True)
class SourceUnit:
    """One compilation unit and its cache key."""
    unit_id: str
    path: Path
    rel_path: str
    fingerprint: Optional[str]


def fingerprint(file_path: Path) -> Optional[str]:
    """Cache key from file mtime and size, or None if the file is gone."""
    try:
        stat = file_path.stat()
    except OSError:
        return None
    return f"{stat.st_mtime_ns}:{stat.st_size}"


def module_name(file_path: Path, source_root: Path) -> Optional[str]:
    """Dotted module name of a file below a source root.

    Returns None for files that cannot be imported under that root (invalid
    identifiers, or the root's own `__init__.py`).
    """
    parts = list(file_path.relative_to(source_root).with_suffix('').parts)
    if parts and parts[-1] == '__init__':
        parts.pop()
    if not parts or not all(part.isidentifier() for part in parts):
        return None
    return '.'.join(parts)


def discover_units(project_root: Path, source_roots: Iterable[str],
                   exclude: Iterable[str] = ()) -> List[SourceUnit]:
    """Find every Python module under the configured source roots.

    Args:
        project_root: Project root directory
        source_roots: Source roots relative to the project root
        exclude: fnmatch patterns matched against project-relative posix paths

    Returns:
        Units sorted by unit id
    """
    project_root = Path(project_root).resolve()
    exclude = list(exclude)
    units = {}

    for root_name in source_roots:
        source_root = (project_root / root_name).resolve()
        if not source_root.is_dir():
            log_warning(f"Source root does not exist: {source_root}")
            continue

        for file_path in sorted(source_root.rglob('*.py')):
            if _in_skipped_directory(file_path, source_root):
                continue

            try:
                rel_path = file_path.relative_to(project_root).as_posix()
            except ValueError:
                rel_path = file_path.as_posix()
            if any(fnmatch.fnmatch(rel_path, pattern) for pattern in exclude):
                continue

            unit_id = module_name(file_path, source_root)
            if unit_id is None:
                continue
            if unit_id in units:
                log_warning(
                    f"Module {unit_id} found twice; keeping {units[unit_id].rel_path}, "
                    f"skipping {rel_path}"
                )
                continue

            units[unit_id] = SourceUnit(
                unit_id=unit_id,
                path=file_path,
                rel_path=rel_path,
                fingerprint=fingerprint(file_path),
            )

    return [units[unit_id] for unit_id in sorted(units)]


def _in_skipped_directory(file_path: Path, source_root: Path) -> bool:
    """True if any directory between the source root and the file is skipped.

    Hidden directories are always skipped. A directory named in
    SKIPPED_DIRECTORIES is only skipped when it is not a package, so
    subpackages such as `pkg/build/` stay part of the program.
    """
    directory = source_root
    for part in file_path.relative_to(source_root).parts[:-1]:
        directory = directory / part
        if part.startswith('.'):
            return True
        if part in SKIPPED_DIRECTORIES and not (directory / '__init__.py').is_file():
            return True
    return False
