"""Diff/report engine: exported minus referenced, minus ignored."""
from typing import Iterable, List

from rich.console import Console
from rich.markup import escape

from .ignore import IgnoreMatcher
from .symbols import Diagnostic, ExportedSymbol, Severity, SymbolIdentity


SEVERITY_COLORS = {
    Severity.ERROR: 'red',
    Severity.WARNING: 'yellow',
}


def compute_unused(exported: Iterable[ExportedSymbol],
                   referenced: Iterable[SymbolIdentity],
                   ignore_matcher: IgnoreMatcher) -> List[ExportedSymbol]:
    """Exported symbols that nothing references and no rule ignores.

    The result is sorted by identity (owner, name, arity), so unchanged input
    always produces the same order.
    """
    referenced = frozenset(referenced)
    unused = {}
    for symbol in exported:
        identity = symbol.identity
        if identity in referenced or identity in unused:
            continue
        if ignore_matcher.matches(identity):
            continue
        unused[identity] = symbol
    return sorted(unused.values(), key=lambda symbol: symbol.sort_key)


def to_diagnostic(symbol: ExportedSymbol, severity: Severity) -> Diagnostic:
    return Diagnostic(
        symbol=symbol.identity,
        message=f"{symbol.identity} is unused",
        severity=severity,
        file=symbol.source_file,
        line=symbol.source_line,
    )


def print_diagnostic(diagnostic: Diagnostic, console: Console) -> Diagnostic:
    """Print one diagnostic with a severity-colored prefix."""
    color = SEVERITY_COLORS.get(diagnostic.severity, 'blue')
    location = diagnostic.file
    if diagnostic.line is not None:
        location = f"{location}:{diagnostic.line}"

    console.print(
        f"[bold {color}]{diagnostic.severity.label}:[/bold {color}] "
        f"{escape(diagnostic.message)}\n  [dim]{escape(location)}[/dim]"
    )
    return diagnostic


def exit_code(diagnostics: Iterable[Diagnostic], fail_on: Severity = Severity.ERROR) -> int:
    """1 when any diagnostic is at or above `fail_on`, else 0."""
    return 1 if any(d.severity >= fail_on for d in diagnostics) else 0
