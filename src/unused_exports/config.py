"""Configuration management for unused-exports.

Settings live under `[tool.unused]` in the checked project's pyproject.toml.
Environment variables (optionally from the project's `.env`) override the
file; command-line flags override both.
"""
import os
import tomllib
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .analyzer.ignore import IgnoreMatcher
from .analyzer.manifest import MANIFEST_NAME
from .analyzer.symbols import Severity
from .errors import ConfigurationError

__version__ = "0.4.0"


DEFAULT_BUILD_DIR = ".unused_cache"


def default_jobs() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


class Config:
    """Validated settings for one project."""

    def __init__(self, project_root: str | Path, ignore=None, severity="hint",
                 paths: Optional[List[str]] = None, exclude: Optional[List[str]] = None,
                 jobs: Optional[int] = None, build_dir: str = DEFAULT_BUILD_DIR,
                 fail_on="error"):
        """Validate and store settings.

        Raises:
            ConfigurationError: If any setting is invalid
        """
        self.project_root = Path(project_root).resolve()
        self.ignore = IgnoreMatcher.compile(ignore or [])
        self.severity = Severity.parse(severity)
        self.fail_on = Severity.parse(fail_on)
        self.paths = _string_list('paths', paths) if paths is not None else self._default_paths()
        self.exclude = _string_list('exclude', exclude or [])
        self.jobs = _positive_int('jobs', jobs) if jobs is not None else default_jobs()
        if not isinstance(build_dir, str) or not build_dir.strip():
            raise ConfigurationError(f"'build_dir' must be a non-empty string, got {build_dir!r}")
        self.build_dir = build_dir

    def _default_paths(self) -> List[str]:
        if (self.project_root / "src").is_dir():
            return ["src"]
        return ["."]

    @property
    def manifest_path(self) -> Path:
        return self.project_root / self.build_dir / MANIFEST_NAME


def load_config(project_root: str | Path = ".", **overrides) -> Config:
    """Load project configuration.

    Priority:
    1. Keyword overrides (command-line flags); None means "not given"
    2. UNUSED_SEVERITY, UNUSED_JOBS and UNUSED_BUILD_DIR environment variables
    3. [tool.unused] in pyproject.toml
    4. Defaults

    Args:
        project_root: Root directory of the checked project

    Returns:
        Config instance

    Raises:
        ConfigurationError: If pyproject.toml is unreadable or a value is invalid
    """
    project_root = Path(project_root).resolve()
    load_dotenv(project_root / ".env")

    settings = dict(_read_pyproject(project_root))

    env_severity = os.getenv("UNUSED_SEVERITY")
    if env_severity:
        settings["severity"] = env_severity
    env_jobs = os.getenv("UNUSED_JOBS")
    if env_jobs:
        try:
            settings["jobs"] = int(env_jobs)
        except ValueError as e:
            raise ConfigurationError(f"UNUSED_JOBS must be an integer, got {env_jobs!r}") from e
    env_build_dir = os.getenv("UNUSED_BUILD_DIR")
    if env_build_dir:
        settings["build_dir"] = env_build_dir

    for key, value in overrides.items():
        if value is not None:
            settings[key] = value

    known = {"ignore", "severity", "paths", "exclude", "jobs", "build_dir", "fail_on"}
    unknown = sorted(set(settings) - known)
    if unknown:
        raise ConfigurationError(f"Unknown [tool.unused] settings: {', '.join(unknown)}")

    return Config(project_root, **settings)


def _read_pyproject(project_root: Path) -> dict:
    pyproject = project_root / "pyproject.toml"
    if not pyproject.exists():
        return {}

    try:
        with open(pyproject, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Cannot read {pyproject}: {e}") from e

    settings = data.get("tool", {}).get("unused", {})
    if not isinstance(settings, dict):
        raise ConfigurationError("[tool.unused] must be a table")
    return settings


def _string_list(name: str, value) -> List[str]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"'{name}' must be a list of strings, got {value!r}")
    if not all(isinstance(item, str) and item for item in value):
        raise ConfigurationError(f"'{name}' must be a list of strings, got {value!r}")
    return list(value)


def _positive_int(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"'{name}' must be a positive integer, got {value!r}")
    return value
