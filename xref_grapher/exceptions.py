"""Custom exceptions for xref-grapher."""

from __future__ import annotations


class XrefError(Exception):
    """Base exception for all xref-grapher errors."""


class CompileError(XrefError):
    """Raised when erlc fails to produce Core Erlang for a source file."""

    def __init__(self, source: str, returncode: int | None, stderr: str = ""):
        self.source = source
        self.returncode = returncode
        self.stderr = stderr
        detail = f" (rc={returncode})" if returncode is not None else ""
        super().__init__(f"Error compiling {source}{detail}: {stderr.strip()}")


class CoreParseError(XrefError):
    """Raised when Core Erlang text cannot be parsed."""

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        filename: str | None = None,
    ):
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        where = filename or "<core>"
        if line is not None:
            where = f"{where}:{line}:{column}"
        super().__init__(f"{where}: {message}")
