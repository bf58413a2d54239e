"""
reformaerb: reflow ERB templates into a canonical, width-bounded layout.

    >>> import reformaerb
    >>> reformaerb.format("<div        > asdf    </div>")
    '<div>\\n  asdf\\n</div>\\n'
"""

from .config import FormatterConfig, Observer
from .errors import (
    BadAttributeSyntax, CodeFormatError, FormatError, FrontMatterError,
    UnknownTagName, UnmatchedCloseTag, UnrecognizedContent,
)
from .formatter import Formatter, format
from .ruby import SyntaxTreeFormatter, ruby_is_incomplete

__version__ = "0.1.0"

__all__ = [
    "format", "Formatter", "FormatterConfig", "Observer",
    "FormatError", "BadAttributeSyntax", "UnknownTagName", "UnmatchedCloseTag",
    "UnrecognizedContent", "FrontMatterError", "CodeFormatError",
    "SyntaxTreeFormatter", "ruby_is_incomplete",
]
