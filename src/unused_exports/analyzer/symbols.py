"""Symbol identities, exported symbols, severities and diagnostics."""
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from ..errors import ConfigurationError


# Module hooks the interpreter calls by name (PEP 562). They are never
# referenced from project code, so reporting them would always be noise.
BUILT_INS = frozenset({
    ('__getattr__', 1),
    ('__dir__', 0),
})


@dataclass(frozen=True, order=True)
class SymbolIdentity:
    """Identity of one exported function: (owner, name, arity).

    Ordering is lexicographic on owner, then name, then arity.
    """
    owner: str
    name: str
    arity: int

    def __str__(self) -> str:
        return f"{self.owner}.{self.name}/{self.arity}"

    def to_list(self) -> list:
        return [self.owner, self.name, self.arity]

    @classmethod
    def from_list(cls, data) -> 'SymbolIdentity':
        """Rebuild an identity from its serialized [owner, name, arity] form.

        Raises:
            ValueError: If the payload does not describe a valid identity
        """
        if not isinstance(data, (list, tuple)) or len(data) != 3:
            raise ValueError(f"Malformed symbol identity: {data!r}")
        owner, name, arity = data
        if not isinstance(owner, str) or not isinstance(name, str):
            raise ValueError(f"Malformed symbol identity: {data!r}")
        if isinstance(arity, bool) or not isinstance(arity, int) or arity < 0:
            raise ValueError(f"Malformed symbol identity: {data!r}")
        return cls(owner, name, arity)


@dataclass(frozen=True)
class ExportedSymbol:
    """An exported function together with where it is defined."""
    identity: SymbolIdentity
    source_file: str
    source_line: Optional[int] = None

    @property
    def sort_key(self):
        return (self.identity, self.source_file, self.source_line or 0)


class Severity(IntEnum):
    """Diagnostic level, ordered hint < information < warning < error."""
    HINT = 1
    INFORMATION = 2
    WARNING = 3
    ERROR = 4

    @property
    def label(self) -> str:
        return self.name.lower()

    def __str__(self) -> str:
        return self.label

    @classmethod
    def parse(cls, value) -> 'Severity':
        """Parse a configured severity string.

        Accepts the four level names plus the short aliases `info` and `warn`.

        Raises:
            ConfigurationError: If the value is not a known severity
        """
        if isinstance(value, Severity):
            return value
        if isinstance(value, str):
            level = _SEVERITY_ALIASES.get(value.strip().lower())
            if level is not None:
                return level
        allowed = ', '.join(sorted(_SEVERITY_ALIASES))
        raise ConfigurationError(
            f"Unknown severity {value!r}. Allowed values: {allowed}"
        )


_SEVERITY_ALIASES = {
    'hint': Severity.HINT,
    'info': Severity.INFORMATION,
    'information': Severity.INFORMATION,
    'warn': Severity.WARNING,
    'warning': Severity.WARNING,
    'error': Severity.ERROR,
}


@dataclass(frozen=True)
class Diagnostic:
    """One unused-symbol report."""
    symbol: SymbolIdentity
    message: str
    severity: Severity
    file: str
    line: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            'symbol': str(self.symbol),
            'message': self.message,
            'severity': self.severity.label,
            'file': self.file,
        }
        # Unknown lines are omitted rather than serialized as null
        if self.line is not None:
            data['line'] = self.line
        return data
