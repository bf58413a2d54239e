# errors.py
#
# Every fatal condition aborts the whole formatting run; nothing partial is
# returned. CodeFormatError is the one recoverable failure: the formatter
# keeps the original code when an embedded-code formatter raises it.

from typing import Optional


class FormatError(Exception):
    """Base class for documents that cannot be formatted."""

    def __init__(self, message: str, *, filename: str = "(erb)", line: Optional[int] = None,
                 stack_top: Optional[str] = None, formatted: str = "", stack: str = ""):
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.line = line
        self.stack_top = stack_top
        self.formatted = formatted
        self.stack = stack

    @property
    def location(self) -> str:
        line = "?" if self.line is None else self.line
        return f"{self.filename}:{line}:in `{self.stack_top or ''}'"

    def details(self) -> str:
        return "\n".join([
            "==> FORMATTED:",
            self.formatted,
            "==> STACK:",
            self.stack,
            f"==> ERROR: {self.message}",
        ])

    def __str__(self) -> str:
        return f"{self.location}: {self.message}"


class BadAttributeSyntax(FormatError):
    pass


class UnknownTagName(FormatError):
    pass


class UnmatchedCloseTag(FormatError):
    pass


class UnrecognizedContent(FormatError):
    pass


class FrontMatterError(FormatError):
    pass


class CodeFormatError(Exception):
    """Raised by embedded-code formatters; never escapes the formatter."""
