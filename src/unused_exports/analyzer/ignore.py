"""Ignore rules for suppressing known false positives.

Rules are configured under `[tool.unused] ignore` and accept three shapes:

    ignore = [
        ["myapp.plugins", "load", 1],   # exact owner, name and arity
        ["myapp.plugins", "register"],  # any arity
        "myapp.reflection",             # every function of the module
        "myapp.hooks:on_start/0",       # string form of the full triple
    ]

Any field may be the wildcard `_` (or `*`). A symbol is ignored when at least
one rule matches it; rules have no priority.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Union

from ..errors import ConfigurationError
from .symbols import SymbolIdentity


WILDCARD_TOKENS = frozenset({'_', '*'})

class _Wildcard:
    """Sentinel matching any value in a rule position."""

    def __repr__(self) -> str:
        return '_'


WILDCARD = _Wildcard()


@dataclass(frozen=True)
class IgnoreRule:
    """A compiled rule; each field is an exact value or WILDCARD."""
    owner: Union[str, _Wildcard]
    name: Union[str, _Wildcard]
    arity: Union[int, _Wildcard]

    def matches(self, identity: SymbolIdentity) -> bool:
        return (
            (self.owner is WILDCARD or self.owner == identity.owner)
            and (self.name is WILDCARD or self.name == identity.name)
            and (self.arity is WILDCARD or self.arity == identity.arity)
        )

    def __str__(self) -> str:
        return f"{self.owner!s}.{self.name!s}/{self.arity!s}"


class IgnoreMatcher:
    """Compiled list of ignore rules."""

    def __init__(self, rules: Iterable[IgnoreRule] = ()):
        self._rules: List[IgnoreRule] = list(rules)

    @classmethod
    def compile(cls, entries) -> 'IgnoreMatcher':
        """Validate and compile configured ignore entries.

        Args:
            entries: List of rule entries (lists, strings or IgnoreRule)

        Returns:
            IgnoreMatcher over the compiled rules

        Raises:
            ConfigurationError: If the list or any entry is malformed
        """
        if entries is None:
            return cls()
        if isinstance(entries, (str, bytes)) or not isinstance(entries, (list, tuple)):
            raise ConfigurationError(
                f"'ignore' must be a list of rules, got {type(entries).__name__}"
            )

        rules = []
        for index, entry in enumerate(entries):
            try:
                rules.append(_compile_entry(entry))
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid ignore rule #{index} {entry!r}: {e}"
                ) from e
        return cls(rules)

    def matches(self, identity: SymbolIdentity) -> bool:
        return any(rule.matches(identity) for rule in self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[IgnoreRule]:
        return iter(self._rules)


def _compile_entry(entry) -> IgnoreRule:
    if isinstance(entry, IgnoreRule):
        return entry
    if isinstance(entry, str):
        parts = _split_string_rule(entry)
    elif isinstance(entry, (list, tuple)):
        parts = list(entry)
    else:
        raise ValueError(f"unsupported rule type {type(entry).__name__}")

    if not 1 <= len(parts) <= 3:
        raise ValueError("expected owner, owner + name, or owner + name + arity")

    # Shorthand shapes leave trailing positions as wildcards
    parts = parts + [WILDCARD] * (3 - len(parts))
    owner, name, arity = parts
    return IgnoreRule(
        owner=_compile_field(owner, _is_dotted_identifier, 'owner'),
        name=_compile_field(name, str.isidentifier, 'name'),
        arity=_compile_arity(arity),
    )


def _split_string_rule(text: str) -> list:
    """Split "owner", "owner:name" or "owner:name/arity" into parts."""
    text = text.strip()
    if ':' not in text:
        return [text]

    owner, _, rest = text.partition(':')
    if '/' not in rest:
        return [owner, rest]

    name, _, arity = rest.partition('/')
    if arity in WILDCARD_TOKENS:
        return [owner, name, arity]
    if not arity.isdigit():
        raise ValueError(f"arity {arity!r} is not a non-negative integer")
    return [owner, name, int(arity)]


def _compile_field(value, is_valid, label):
    if value is WILDCARD:
        return WILDCARD
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string, got {value!r}")
    if value in WILDCARD_TOKENS:
        return WILDCARD
    if not is_valid(value):
        raise ValueError(f"{label} {value!r} is not a valid identifier")
    return value


def _is_dotted_identifier(value: str) -> bool:
    return all(part.isidentifier() for part in value.split('.'))


def _compile_arity(value):
    if value is WILDCARD:
        return WILDCARD
    if isinstance(value, str) and value in WILDCARD_TOKENS:
        return WILDCARD
    # bool is an int subclass; `true` in TOML is never a valid arity
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"arity {value!r} is not a non-negative integer")
    return value
