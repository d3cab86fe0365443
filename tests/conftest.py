"""Shared fixtures: throwaway Python projects on disk."""
import textwrap
from pathlib import Path

import pytest


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip(), encoding='utf-8')
    return path


@pytest.fixture
def project(tmp_path):
    """A src-layout project with one used and one unused export."""
    root = tmp_path / 'project'
    write(root / 'src' / 'pkg' / '__init__.py', '')
    write(root / 'src' / 'pkg' / 'util.py', '''
        def helper(value):
            return value * 2


        def orphan():
            return None


        def _private():
            return 1
    ''')
    write(root / 'src' / 'pkg' / 'app.py', '''
        from pkg.util import helper


        def run():
            return helper(21)
    ''')
    write(root / 'pyproject.toml', '''
        [project]
        name = "pkg"
        version = "0.1.0"

        [project.scripts]
        pkg = "pkg.app:run"
    ''')
    return root
