"""Terminal-safe console output and warning helpers.

Detects terminal encoding and provides ASCII alternatives for the Unicode
icons used in reports, so output never crashes on terminals that lack UTF-8.
Library code reports recoverable problems through `log_warning`.
"""
import locale
import sys


# Unicode to ASCII icon mapping for non-UTF-8 terminals
ICON_MAP = {
    '✓': '[OK]',
    '✗': '[FAIL]',
    '⚠': '[WARN]',
    '→': '->',
    '…': '...',
    '•': '*',
    '⚡': '[!]',
}


def detect_terminal_encoding() -> str:
    """Detect the terminal's encoding.

    Returns:
        str: Terminal encoding ('utf-8', 'cp1252', 'ascii', etc.)
    """
    if getattr(sys.stdout, 'encoding', None):
        return sys.stdout.encoding.lower()

    try:
        return locale.getpreferredencoding().lower()
    except (LookupError, ValueError):
        return 'ascii'


def is_utf8_capable() -> bool:
    """Check if the terminal can handle UTF-8 Unicode characters."""
    return detect_terminal_encoding().replace('_', '-') in ('utf-8', 'utf8')


def sanitize_for_terminal(text: str) -> str:
    """Replace Unicode icons with ASCII equivalents on non-UTF-8 terminals.

    Args:
        text: Text potentially containing Unicode icons

    Returns:
        str: Text safe for the current terminal
    """
    if is_utf8_capable():
        return text

    for unicode_char, ascii_replacement in ICON_MAP.items():
        text = text.replace(unicode_char, ascii_replacement)
    return text


_console = None


def get_console():
    """Get or create the shared stderr console used for log messages."""
    global _console
    if _console is None:
        from .safe_console import SafeConsole
        _console = SafeConsole(stderr=True)
    return _console


def log_warning(message: str):
    from rich.markup import escape
    get_console().print(f"[bold yellow]⚠ Warning:[/bold yellow] {escape(message)}")
