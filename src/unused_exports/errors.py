"""Exception hierarchy for unused-exports.

Configuration and calling-sequence errors are fatal to a session. Provider
errors are per unit and never abort a session on their own.
"""


class UnusedError(Exception):
    """Base class for every error raised by unused-exports."""


class ConfigurationError(UnusedError, ValueError):
    """Raised when project configuration cannot be loaded or validated."""


class CollectorStateError(UnusedError, RuntimeError):
    """Raised when the call collector is used out of sequence."""


class ProviderError(UnusedError):
    """Raised when the symbols of one compilation unit cannot be obtained."""

    def __init__(self, unit_id: str, reason: str):
        super().__init__(f"{unit_id}: {reason}")
        self.unit_id = unit_id
        self.reason = reason


class SessionError(UnusedError, RuntimeError):
    """Raised when a compile session is re-entered before it returns to idle."""
