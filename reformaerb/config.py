# config.py
#
# Per-run settings and the optional tracing observer. A Formatter never
# reads anything global; everything it needs arrives through these.

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .ruby import ruby_is_incomplete

DEFAULT_LINE_WIDTH = 80


@dataclass(frozen=True)
class FormatterConfig:
    line_width: int = DEFAULT_LINE_WIDTH
    single_class_per_line: bool = False
    # token -> ordering key, or None for "unknown, sort last"
    css_class_sorter: Optional[Callable[[str], Any]] = None
    # code -> True when it is not a complete program on its own
    is_incomplete: Callable[[str], bool] = ruby_is_incomplete
    # (code, width) -> formatted code; None or CodeFormatError keeps the original
    format_code: Optional[Callable[[str, int], Optional[str]]] = None

    def __post_init__(self):
        if isinstance(self.line_width, bool) or not isinstance(self.line_width, int) or self.line_width < 1:
            raise ValueError(f"line_width must be a positive integer, got {self.line_width!r}")


class Observer:
    """No-op tracing hooks; subclass and pass as ``observer=``."""

    def on_append(self, text: str) -> None:
        pass

    def on_push(self, entry) -> None:
        pass

    def on_pop(self, entry) -> None:
        pass
