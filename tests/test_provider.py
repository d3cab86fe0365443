"""Tests for the symbol table provider and unit discovery."""
from unused_exports.analyzer.discovery import discover_units, module_name
from unused_exports.analyzer.provider import PythonSymbolProvider

from conftest import write


def export_names(table):
    return [str(symbol.identity) for symbol in table.exports]


class TestDiscovery:

    def test_module_names(self, project):
        """Files map to dotted module names under the source root."""
        units = discover_units(project, ['src'])
        assert [unit.unit_id for unit in units] == ['pkg', 'pkg.app', 'pkg.util']
        assert units[2].rel_path == 'src/pkg/util.py'
        assert units[2].fingerprint is not None

    def test_skipped_and_excluded_directories(self, project):
        """Non-package skipped directories and exclude patterns are left out."""
        write(project / 'src' / 'pkg' / 'tests' / 'test_util.py', 'def test_x(): pass\n')
        write(project / 'src' / 'pkg' / 'generated' / 'proto.py', 'def build(): pass\n')
        write(project / 'src' / 'pkg' / 'bad-name.py', 'def nope(): pass\n')

        units = discover_units(project, ['src'], exclude=['src/pkg/generated/*'])
        assert [unit.unit_id for unit in units] == ['pkg', 'pkg.app', 'pkg.util']

    def test_subpackages_with_skipped_names_are_kept(self, project):
        """A `build` or `vendor` directory that is a package is still discovered."""
        write(project / 'src' / 'pkg' / 'build' / '__init__.py', '')
        write(project / 'src' / 'pkg' / 'build' / 'steps.py', 'def step(): pass\n')
        write(project / 'src' / 'pkg' / 'vendor' / '__init__.py', '')
        write(project / 'src' / 'pkg' / 'vendor' / 'lib.py', 'def shim(): pass\n')
        write(project / 'src' / 'pkg' / '.hidden' / '__init__.py', '')

        units = discover_units(project, ['src'])
        assert [unit.unit_id for unit in units] == [
            'pkg', 'pkg.app', 'pkg.build', 'pkg.build.steps',
            'pkg.util', 'pkg.vendor', 'pkg.vendor.lib',
        ]

    def test_module_name_of_root_init_is_none(self, tmp_path):
        """The source root's own __init__ has no module name."""
        assert module_name(tmp_path / '__init__.py', tmp_path) is None
        assert module_name(tmp_path / 'a' / 'b.py', tmp_path) == 'a.b'


class TestExports:

    def test_exports_skip_private_and_entry_points(self, project):
        """Private functions and entry points are not exports."""
        provider = PythonSymbolProvider(project)
        table = provider.symbol_table(discover_units(project, ['src']))

        assert export_names(table) == ['pkg.util.helper/1', 'pkg.util.orphan/0']
        assert table.index[('pkg.app', 'run')] == frozenset({0})
        assert ('pkg.util', '_private') not in table.index
        assert table.failed == {}

    def test_source_location(self, project):
        """Exports carry their project-relative file and line."""
        table = PythonSymbolProvider(project).symbol_table(discover_units(project, ['src']))
        orphan = table.exports[1]
        assert orphan.source_file == 'src/pkg/util.py'
        assert orphan.source_line == 5

    def test_builtins_registered_and_all_hidden(self, project):
        """Module hooks, registered and non-__all__ functions are not exports."""
        write(project / 'src' / 'pkg' / 'lazy.py', '''
            __all__ = ["visible"]


            def visible():
                pass


            def hidden():
                pass


            def __getattr__(name):
                raise AttributeError(name)


            @router.get("/items")
            def items():
                return []
        ''')
        table = PythonSymbolProvider(project).symbol_table(discover_units(project, ['src']))
        lazy = [name for name in export_names(table) if name.startswith('pkg.lazy.')]
        assert lazy == ['pkg.lazy.visible/0']
        # Hidden and registered functions still resolve references
        assert ('pkg.lazy', 'hidden') in table.index
        assert ('pkg.lazy', 'items') in table.index

    def test_broken_unit_is_reported_as_failed(self, project):
        """A unit with a syntax error is listed as failed."""
        write(project / 'src' / 'pkg' / 'broken.py', 'def broken(:\n    pass\n')
        table = PythonSymbolProvider(project).symbol_table(discover_units(project, ['src']))
        assert 'pkg.broken' in table.failed
        assert 'syntax error' in table.failed['pkg.broken']
        assert not any(s.identity.owner == 'pkg.broken' for s in table.exports)

    def test_digest_tracks_signatures_only(self, project):
        """Body edits keep the digest; signature changes alter it."""
        provider = PythonSymbolProvider(project)
        before = provider.symbol_table(discover_units(project, ['src'])).digest

        write(project / 'src' / 'pkg' / 'util.py', '''
            def helper(value):
                return value * 3


            def orphan():
                return "changed body"
        ''')
        same = provider.symbol_table(discover_units(project, ['src'])).digest
        assert same == before

        write(project / 'src' / 'pkg' / 'util.py', '''
            def helper(value, factor):
                return value * factor
        ''')
        changed = provider.symbol_table(discover_units(project, ['src'])).digest
        assert changed != before

    def test_entry_point_groups(self, tmp_path):
        """Scripts, gui-scripts and entry-point groups are all read."""
        write(tmp_path / 'pyproject.toml', '''
            [project]
            name = "demo"
            version = "1"

            [project.gui-scripts]
            demo-gui = "demo.gui:launch"

            [project.entry-points."demo.plugins"]
            csv = "demo.plugins.csv:Plugin.create"
            json = "demo.plugins.json:register [extras]"
        ''')
        provider = PythonSymbolProvider(tmp_path)
        assert provider.entry_points == {
            ('demo.gui', 'launch'),
            ('demo.plugins.csv', 'Plugin'),
            ('demo.plugins.json', 'register'),
        }
