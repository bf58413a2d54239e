# stack.py
#
# The block stack: open markup tags and open ERB code blocks, in document
# order. Its depth is the indentation level of whatever is emitted next.

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Union

from .errors import UnmatchedCloseTag

log = logging.getLogger(__name__)

TAG = "tag"
CODE_BLOCK = "code"

INDENT = "  "


@dataclass(frozen=True)
class Tag:
    name: str
    raw: str = ""
    kind: str = TAG

    @property
    def label(self) -> str:
        return self.name


@dataclass(frozen=True)
class CodeBlock:
    label: str
    raw: str = ""
    kind: str = CODE_BLOCK


Entry = Union[Tag, CodeBlock]


class BlockStack:
    """
    Ordered collection of open constructs.

    Tags match on name, code blocks match any code block: a bare ``end``
    closes whatever ERB block is open.
    """

    def __init__(self, observer=None):
        self._entries: List[Entry] = []
        self._observer = observer

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def depth(self) -> int:
        return len(self._entries)

    @property
    def top(self) -> Optional[Entry]:
        return self._entries[-1] if self._entries else None

    @property
    def top_label(self) -> Optional[str]:
        top = self.top
        return top.label if top else None

    def indent(self, extra: int = 0) -> str:
        return INDENT * (len(self._entries) + extra)

    def push(self, entry: Entry) -> None:
        self._entries.append(entry)
        log.debug("PUSH %r (depth %d)", entry.label, len(self._entries))
        if self._observer is not None:
            self._observer.on_push(entry)

    def matches(self, kind: str, label: Optional[str] = None) -> bool:
        top = self.top
        if top is None or top.kind != kind:
            return False
        return kind == CODE_BLOCK or top.label == label

    def pop(self, kind: str, label: Optional[str] = None, raw: str = "") -> Entry:
        if not self.matches(kind, label):
            wanted = label if kind == TAG else f"code block {raw or label!r}"
            raise UnmatchedCloseTag(
                f"Unmatched close tag, tried with {wanted!r}, "
                f"but {self.describe_top()} was on the stack",
                stack_top=self.top_label,
            )
        entry = self._entries.pop()
        log.debug("POP  %r (depth %d)", entry.label, len(self._entries))
        if self._observer is not None:
            self._observer.on_pop(entry)
        return entry

    def describe_top(self) -> str:
        top = self.top
        if top is None:
            return "nothing"
        return f"{top.kind} {top.label!r}"

    def describe(self) -> str:
        return "\n".join(f"{e.kind}: {e.label!r}" for e in self._entries) or "(empty)"

    def ensure_empty(self) -> None:
        if self._entries:
            unclosed = ", ".join(repr(e.label) for e in self._entries)
            raise UnmatchedCloseTag(
                f"Unclosed blocks at end of document: {unclosed}",
                stack_top=self.top_label,
            )
