"""Call collector: thread-safe store of references observed during one pass.

One collector exists per compile session. The session owner starts it, hands
it to the tracer workers, and stops it once every worker has finished.
"""
import threading
from typing import Dict, FrozenSet, Set

from ..errors import CollectorStateError
from .symbols import SymbolIdentity


class CallCollector:
    """Aggregates (unit, identity) call records from concurrent workers.

    All mutation goes through `enter_unit` and `record`, serialized by a
    single lock. Recording the same pair twice has the same effect as once.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[str, Set[SymbolIdentity]] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._calls is not None

    def start(self) -> 'CallCollector':
        """Create a fresh, empty aggregator and return the recording handle.

        Raises:
            CollectorStateError: If the collector is already running
        """
        with self._lock:
            if self._calls is not None:
                raise CollectorStateError("Call collector is already running")
            self._calls = {}
        return self

    def enter_unit(self, unit_id: str):
        """Mark a unit as recompiled in this pass, even if it records nothing."""
        with self._lock:
            self._require_running()
            self._calls.setdefault(unit_id, set())

    def record(self, unit_id: str, identity: SymbolIdentity):
        """Record that `unit_id` references `identity`."""
        with self._lock:
            self._require_running()
            self._calls.setdefault(unit_id, set()).add(identity)

    def snapshot(self) -> Dict[str, FrozenSet[SymbolIdentity]]:
        """Copy of everything recorded so far, keyed by unit."""
        with self._lock:
            self._require_running()
            return {unit: frozenset(calls) for unit, calls in self._calls.items()}

    def compiled_units(self) -> FrozenSet[str]:
        with self._lock:
            self._require_running()
            return frozenset(self._calls)

    def stop(self):
        """Disable recording and release the aggregator.

        Raises:
            CollectorStateError: If the collector is not running
        """
        with self._lock:
            self._require_running()
            self._calls = None

    def _require_running(self):
        # Callers hold self._lock
        if self._calls is None:
            raise CollectorStateError("Call collector is not running")
