"""Tests for reference resolution and the concurrent tracing pass."""
import textwrap

from unused_exports.analyzer.collector import CallCollector
from unused_exports.analyzer.discovery import discover_units
from unused_exports.analyzer.extractor import SymbolExtractor
from unused_exports.analyzer.parser import PythonParser
from unused_exports.analyzer.symbols import SymbolIdentity
from unused_exports.analyzer.tracer import ReferenceTracer, trace_units

from conftest import write


INDEX = {
    ('pkg.util', 'helper'): frozenset({1}),
    ('pkg.util', 'orphan'): frozenset({0}),
    ('pkg.core', 'start'): frozenset({2}),
    ('pkg.mod', 'local'): frozenset({0}),
    ('pkg.mod', 'unused_local'): frozenset({0}),
}


def references(code, unit_id='pkg.mod', is_package=False, index=INDEX):
    tree = PythonParser().parse_source(textwrap.dedent(code).encode('utf-8'))
    symbols = SymbolExtractor(unit_id, is_package=is_package).extract(tree)
    return ReferenceTracer(unit_id, symbols, index).references(tree.root_node)


def names(identities):
    return {str(identity) for identity in identities}


class TestResolution:

    def test_from_import_and_call(self):
        """A called from-import resolves to its export."""
        refs = references('''
            from pkg.util import helper

            def go():
                return helper(1)
        ''')
        assert names(refs) == {'pkg.util.helper/1'}

    def test_module_attribute_chain(self):
        """Dotted module access resolves through `import a.b`."""
        refs = references('''
            import pkg.util

            pkg.util.orphan()
        ''')
        assert names(refs) == {'pkg.util.orphan/0'}

    def test_aliased_module(self):
        """Module aliases resolve to the real module."""
        refs = references('''
            import pkg.core as core

            core.start(1, 2)
        ''')
        assert names(refs) == {'pkg.core.start/2'}

    def test_submodule_imported_from_package(self):
        """`from . import mod` binds a submodule."""
        refs = references('''
            from . import util

            def go():
                util.orphan()
        ''')
        assert names(refs) == {'pkg.util.orphan/0'}

    def test_local_call(self):
        """Calls to functions in the same unit are references."""
        refs = references('''
            def local():
                pass

            def unused_local():
                pass

            local()
        ''')
        assert names(refs) == {'pkg.mod.local/0'}

    def test_function_passed_as_value(self):
        """Passing a function as a value counts as a reference."""
        refs = references('''
            from pkg.util import orphan as callback

            handlers = {"cb": callback}
        ''')
        assert names(refs) == {'pkg.util.orphan/0'}

    def test_star_import(self):
        """Names pulled in by a star import resolve."""
        refs = references('''
            from pkg.util import *

            helper(3)
        ''')
        assert 'pkg.util.helper/1' in names(refs)

    def test_definition_names_and_keywords_are_not_references(self):
        """Defined names and keyword labels are not references."""
        refs = references('''
            def local():
                pass

            def other(x):
                return dict(local=x)
        ''', index={('pkg.mod', 'local'): frozenset({0})})
        assert refs == set()

    def test_parameter_names_are_not_references(self):
        """Parameter names never resolve to exports."""
        refs = references('''
            def local():
                pass

            def show(local=None, *, value=0):
                return value

            def typed(local: int, other: str = "x"):
                return other

            handler = lambda local=1: 0
        ''', index={('pkg.mod', 'local'): frozenset({0})})
        assert refs == set()

    def test_parameter_defaults_and_annotations_are_references(self):
        """Defaults and annotations are still walked."""
        refs = references('''
            def local():
                pass

            def unused_local():
                pass

            def show(callback: local = unused_local, *args: int):
                return callback
        ''')
        assert names(refs) == {'pkg.mod.local/0', 'pkg.mod.unused_local/0'}

    def test_member_name_is_not_a_variable(self):
        """An attribute member name is not a variable reference."""
        refs = references('''
            class Thing:
                pass

            Thing.local
        ''')
        assert refs == set()

    def test_unknown_targets_are_dropped(self):
        """References outside the export index are dropped."""
        refs = references('''
            import os

            os.path.join("a", "b")
        ''')
        assert refs == set()

    def test_dynamic_dispatch_is_invisible(self):
        """getattr and import_module calls are not resolved."""
        refs = references('''
            import importlib

            module = importlib.import_module("pkg.util")
            getattr(module, "orphan")()
        ''')
        assert refs == set()


class TestTraceUnits:

    def test_parallel_trace_records_per_unit(self, project):
        """Parallel tracing records references under each unit."""
        write(project / 'src' / 'pkg' / 'other.py', '''
            import pkg.util

            pkg.util.helper(1)
        ''')
        units = discover_units(project, ['src'])
        index = {('pkg.util', 'helper'): frozenset({1}), ('pkg.util', 'orphan'): frozenset({0})}

        collector = CallCollector().start()
        traced = trace_units(units, collector, index, jobs=4)
        snapshot = collector.snapshot()
        collector.stop()

        helper = SymbolIdentity('pkg.util', 'helper', 1)
        assert traced == {'pkg', 'pkg.app', 'pkg.other', 'pkg.util'}
        assert snapshot['pkg.app'] == frozenset({helper})
        assert snapshot['pkg.other'] == frozenset({helper})
        assert snapshot['pkg'] == frozenset()

    def test_broken_unit_is_not_entered(self, project):
        """A unit that fails to parse is never entered."""
        write(project / 'src' / 'pkg' / 'broken.py', 'def broken(:\n    pass\n')
        units = discover_units(project, ['src'])

        collector = CallCollector().start()
        traced = trace_units(units, collector, {}, jobs=2)
        compiled = collector.compiled_units()
        collector.stop()

        assert 'pkg.broken' not in traced
        assert 'pkg.broken' not in compiled
