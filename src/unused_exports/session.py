"""Compile session: one collect -> merge -> report run over a project.

    IDLE -> COLLECTING -> DRAINING -> MERGING -> REPORTING -> IDLE

No state is re-entered within a session. Any failure aborts the session and
propagates; the manifest is only written once references are fully merged,
and diagnostics are only returned once the whole report is computed.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from .analyzer.collector import CallCollector
from .analyzer.discovery import SourceUnit, discover_units
from .analyzer.manifest import Manifest, ManifestCache
from .analyzer.provider import PythonSymbolProvider, SymbolProvider, SymbolTable
from .analyzer.report import compute_unused, to_diagnostic
from .analyzer.symbols import Diagnostic
from .analyzer.tracer import trace_units
from .config import Config
from .errors import SessionError


class SessionState(Enum):
    IDLE = "idle"
    COLLECTING = "collecting"
    DRAINING = "draining"
    MERGING = "merging"
    REPORTING = "reporting"


@dataclass
class SessionResult:
    """Outcome of a completed session."""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    traced_units: List[str] = field(default_factory=list)
    reused_units: List[str] = field(default_factory=list)
    failed_units: Dict[str, str] = field(default_factory=dict)
    exported_count: int = 0


class CompileSession:
    """Orchestrates collector, manifest cache, provider and report engine."""

    def __init__(self, config: Config, provider: Optional[SymbolProvider] = None,
                 force: bool = False):
        """Initialize session.

        Args:
            config: Validated project configuration
            provider: Symbol table provider (tree-sitter provider by default)
            force: Retrace every unit regardless of the manifest
        """
        self.config = config
        self.provider = provider or PythonSymbolProvider(config.project_root)
        self.force = force
        self.state = SessionState.IDLE

    def run(self) -> SessionResult:
        """Run one full session.

        Raises:
            SessionError: If the session is already running
        """
        if self.state is not SessionState.IDLE:
            raise SessionError(f"Session is already running (state: {self.state.value})")

        collector = CallCollector()
        try:
            self._enter(SessionState.COLLECTING)
            units = discover_units(self.config.project_root, self.config.paths, self.config.exclude)
            old = ManifestCache.load(self.config.manifest_path)
            table = self.provider.symbol_table(units)
            stale = self._stale_units(units, old, table)

            collector.start()
            traced = trace_units(stale, collector, table.index, jobs=self.config.jobs)

            self._enter(SessionState.DRAINING)
            fresh_data = collector.snapshot()
            fresh_units = collector.compiled_units()
            collector.stop()

            self._enter(SessionState.MERGING)
            merged = ManifestCache.merge(
                old,
                fresh_units,
                fresh_data,
                fingerprints={unit.unit_id: unit.fingerprint for unit in units},
                exports_digest=table.digest,
            )
            merged = ManifestCache.prune(merged, (unit.unit_id for unit in units))
            ManifestCache.save(self.config.manifest_path, merged)

            self._enter(SessionState.REPORTING)
            result = self._report(table, merged)
            result.traced_units = sorted(traced)
            result.reused_units = sorted(
                unit.unit_id for unit in units
                if unit.unit_id not in traced and unit.unit_id in merged.calls
            )
            return result
        finally:
            if collector.running:
                collector.stop()
            self.state = SessionState.IDLE

    def _enter(self, state: SessionState):
        self.state = state

    def _stale_units(self, units: List[SourceUnit], old: Manifest,
                     table: SymbolTable) -> List[SourceUnit]:
        """Units whose references must be recollected this session.

        Everything is stale when forced or when the export index changed,
        since cached references were resolved against the old index. Units
        the provider could not read are never traced.
        """
        retrace_all = self.force or old.exports_digest != table.digest
        stale = []
        for unit in units:
            if unit.unit_id in table.failed:
                continue
            if (retrace_all
                    or unit.unit_id not in old.calls
                    or unit.fingerprint is None
                    or old.fingerprints.get(unit.unit_id) != unit.fingerprint):
                stale.append(unit)
        return stale

    def _report(self, table: SymbolTable, merged: Manifest) -> SessionResult:
        # Exports of units that failed to load are excluded, not assumed unused
        exported = [
            symbol for symbol in table.exports
            if symbol.identity.owner not in table.failed
        ]
        referenced = ManifestCache.union(merged)
        unused = compute_unused(exported, referenced, self.config.ignore)
        return SessionResult(
            diagnostics=[to_diagnostic(symbol, self.config.severity) for symbol in unused],
            failed_units=dict(table.failed),
            exported_count=len(exported),
        )


def run_session(config: Config, force: bool = False) -> SessionResult:
    return CompileSession(config, force=force).run()


def clean(config: Config):
    """Delete the project's manifest; the next session is a first run."""
    ManifestCache.clean(config.manifest_path)
