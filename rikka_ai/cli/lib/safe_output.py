"""
Terminal-safe output for the CLI.

Model output may contain characters the terminal encoding cannot render
(emoji, CJK on cp1252 consoles, ...). Printing falls back to replacement
characters instead of raising UnicodeEncodeError mid-stream.
"""

import sys
from typing import TextIO

import typer


def supports_unicode(stream: TextIO | None = None) -> bool:
    """Check if the console can encode emoji."""
    stream = stream or sys.stdout
    try:
        "✅".encode(getattr(stream, "encoding", None) or "utf-8")
        return True
    except (UnicodeEncodeError, LookupError):
        return False


_UNICODE_SUPPORT = supports_unicode()


def emoji(unicode_char: str, ascii_fallback: str) -> str:
    """Return emoji if supported, otherwise an ASCII label like ``[ERROR]``."""
    return unicode_char if _UNICODE_SUPPORT else ascii_fallback


def _sanitize(text: str, stream: TextIO) -> str:
    encoding = getattr(stream, "encoding", None) or "utf-8"
    try:
        return text.encode(encoding, errors="replace").decode(encoding, errors="replace")
    except LookupError:
        return text.encode("ascii", errors="replace").decode("ascii")


def safe_print(text: str, end: str = "\n", flush: bool = False, err: bool = False) -> None:
    """
    Print text with terminal-encoding fallback.

    Args:
        text: Text to print
        end: String appended after the text (default: newline)
        flush: Whether to flush the stream
        err: Print to stderr instead of stdout
    """
    if err:
        safe_print_err(text, end=end, flush=flush)
        return

    try:
        print(text, end=end, flush=flush)
    except UnicodeEncodeError:
        print(_sanitize(text, sys.stdout), end=end, flush=flush)


def safe_print_err(text: str, end: str = "\n", flush: bool = False) -> None:
    """Print to stderr through typer.echo with the same fallback."""
    try:
        typer.echo(text, err=True, nl=(end == "\n"))
    except UnicodeEncodeError:
        typer.echo(_sanitize(text, sys.stderr), err=True, nl=(end == "\n"))
    if flush:
        sys.stderr.flush()
