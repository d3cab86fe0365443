"""Tests for the diff/report engine and severities."""
import pytest
from rich.console import Console

from unused_exports.analyzer.ignore import IgnoreMatcher
from unused_exports.analyzer.report import compute_unused, exit_code, print_diagnostic, to_diagnostic
from unused_exports.analyzer.symbols import Diagnostic, ExportedSymbol, Severity, SymbolIdentity
from unused_exports.errors import ConfigurationError


def exported(owner, name, arity, line=None):
    return ExportedSymbol(SymbolIdentity(owner, name, arity), f"{owner}.py", line)


class TestComputeUnused:

    def test_unreferenced_symbol_is_reported(self):
        """An export nobody references is unused."""
        symbols = [exported('M', 'a', 0), exported('M', 'b', 1)]
        referenced = {SymbolIdentity('M', 'a', 0)}
        unused = compute_unused(symbols, referenced, IgnoreMatcher())
        assert [s.identity for s in unused] == [SymbolIdentity('M', 'b', 1)]

    def test_owner_wildcard_rule_suppresses_all(self):
        """An owner rule suppresses every export of that module."""
        symbols = [exported('M', 'a', 0), exported('M', 'b', 1)]
        matcher = IgnoreMatcher.compile([['M', '_', '_']])
        assert compute_unused(symbols, {SymbolIdentity('M', 'a', 0)}, matcher) == []

    def test_arity_is_part_of_identity(self):
        """A reference with another arity does not count."""
        symbols = [exported('M', 'a', 1)]
        unused = compute_unused(symbols, {SymbolIdentity('M', 'a', 0)}, IgnoreMatcher())
        assert len(unused) == 1

    def test_each_unused_symbol_appears_once(self):
        """Duplicate exports are reported once."""
        symbols = [exported('M', 'a', 0), exported('M', 'a', 0)]
        assert len(compute_unused(symbols, set(), IgnoreMatcher())) == 1

    def test_output_is_sorted_by_owner_name_arity(self):
        """Results are ordered by owner, name, then arity."""
        symbols = [
            exported('b.mod', 'a', 0),
            exported('a.mod', 'z', 1),
            exported('a.mod', 'z', 0),
            exported('a.mod', 'b', 3),
        ]
        unused = compute_unused(symbols, set(), IgnoreMatcher())
        assert [str(s.identity) for s in unused] == [
            'a.mod.b/3', 'a.mod.z/0', 'a.mod.z/1', 'b.mod.a/0',
        ]

    def test_repeated_runs_are_identical(self):
        """The same inputs always give the same output."""
        symbols = [exported('M', name, arity) for name in 'zyxw' for arity in (2, 0, 1)]
        first = compute_unused(symbols, set(), IgnoreMatcher())
        second = compute_unused(list(reversed(symbols)), set(), IgnoreMatcher())
        assert first == second


class TestDiagnostics:

    def test_message_and_location(self):
        """Diagnostics carry the message, file and line."""
        diagnostic = to_diagnostic(exported('pkg.mod', 'run', 2, line=7), Severity.WARNING)
        assert diagnostic.message == 'pkg.mod.run/2 is unused'
        assert diagnostic.severity is Severity.WARNING
        assert diagnostic.file == 'pkg.mod.py'
        assert diagnostic.line == 7

    def test_unknown_line_is_omitted_from_dict(self):
        """A missing line is left out of the dict form."""
        diagnostic = to_diagnostic(exported('M', 'a', 0), Severity.HINT)
        data = diagnostic.to_dict()
        assert 'line' not in data
        assert data['severity'] == 'hint'

    def test_print_uses_severity_prefix(self):
        """Printed diagnostics start with the severity label."""
        console = Console(record=True, width=120)
        print_diagnostic(to_diagnostic(exported('M', 'a', 0, line=3), Severity.ERROR), console)
        text = console.export_text()
        assert 'error: M.a/0 is unused' in text
        assert 'M.py:3' in text

    def test_exit_code_threshold(self):
        """Exit status is 1 only when a diagnostic reaches fail_on."""
        hint = Diagnostic(SymbolIdentity('M', 'a', 0), 'm', Severity.HINT, 'f.py')
        error = Diagnostic(SymbolIdentity('M', 'a', 0), 'm', Severity.ERROR, 'f.py')
        assert exit_code([]) == 0
        assert exit_code([hint]) == 0
        assert exit_code([hint, error]) == 1
        assert exit_code([hint], fail_on=Severity.HINT) == 1


class TestSeverity:

    def test_levels_are_ordered(self):
        """Severities order from hint up to error."""
        assert Severity.HINT < Severity.INFORMATION < Severity.WARNING < Severity.ERROR

    @pytest.mark.parametrize("value, expected", [
        ("hint", Severity.HINT),
        ("information", Severity.INFORMATION),
        ("info", Severity.INFORMATION),
        ("warning", Severity.WARNING),
        ("warn", Severity.WARNING),
        ("ERROR", Severity.ERROR),
    ])
    def test_parse(self, value, expected):
        """Severity names and aliases parse."""
        assert Severity.parse(value) is expected

    @pytest.mark.parametrize("value", ["loud", "", None, 3])
    def test_unknown_severity_is_a_configuration_error(self, value):
        """Unknown severity names raise ConfigurationError."""
        with pytest.raises(ConfigurationError, match="Unknown severity"):
            Severity.parse(value)
