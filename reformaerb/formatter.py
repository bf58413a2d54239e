# formatter.py
#
# Formats an ERB template in a single pass:
#   1. cut off YAML front matter
#   2. swap every ERB tag (and anything that looks like a marker) for an
#      opaque marker, so the markup scan never sees Ruby
#   3. scan for open/close tags; text between them is reflowed and the ERB
#      markers inside it are classified and (re)formatted
#   4. put the markers back, re-attach the front matter
#
# Indentation is the depth of the block stack at the moment something is
# appended; nothing is stored per line.

import dataclasses
import logging
import re
import textwrap
from typing import List, Optional

from . import ruby
from .config import FormatterConfig
from .errors import BadAttributeSyntax, CodeFormatError, FormatError, UnknownTagName, UnrecognizedContent
from .frontmatter import split_front_matter
from .placeholders import MARKER, PlaceholderTable
from .reflow import (
    ATTR_NAME, DOUBLE_QUOTE_ATTR, SINGLE_QUOTE_ATTR, UNQUOTED_ATTR,
    available_width, format_attributes, greedy_lines,
)
from .stack import CODE_BLOCK, TAG, BlockStack, CodeBlock, Tag

log = logging.getLogger(__name__)

# ---------------- Token rules ----------------

ERB_TAG = re.compile(r"(<%(?:==|=|-|))\s*(.*?)\s*(-?%>)", re.S)
ERB_PLACEHOLDER = MARKER

# `name= "value"` is refused rather than guessed at
BAD_ATTR = re.compile(rf"{ATTR_NAME}=\s+")

TAG_NAME = r"[a-z0-9_:-]+"
TAG_NAME_ONLY = re.compile(rf"{TAG_NAME}\Z")
HTML_ATTR = rf"\s+{SINGLE_QUOTE_ATTR}|\s+{DOUBLE_QUOTE_ATTR}|\s+{UNQUOTED_ATTR}|\s+{ATTR_NAME}"
HTML_TAG_OPEN = rf"<(?P<open_name>{TAG_NAME})(?P<attrs>(?:{HTML_ATTR})*)(?P<space>\s*?)(?P<closing>/>|>)"
HTML_TAG_CLOSE = rf"</\s*(?P<close_name>{TAG_NAME})\s*>"
# A close tag and an open tag can never start at the same offset, so the
# alternation order only matters for readability.
HTML_TAG = re.compile(rf"(?P<close>{HTML_TAG_CLOSE})|(?P<open>{HTML_TAG_OPEN})")

_ENDS_WITH_SPACE = re.compile(r"\s\Z")

# Void elements; never pushed on the stack
SELF_CLOSING_TAG = re.compile(
    r"(area|base|br|col|command|embed|hr|img|input|keygen|link|menuitem|meta|param|source|track|wbr)\Z",
    re.I,
)

# Containers whose content is copied (right-stripped) instead of reflowed
RAW_TEXT_TAGS = {"script", "style"}


class Formatter:
    """
    Formats `source` on construction; the result is in ``.html``.

    A Formatter is single-use and shares no state with other instances, so
    documents can be formatted in parallel by separate Formatters.
    """

    def __init__(self, source: str, *, line_width: Optional[int] = None,
                 single_class_per_line: Optional[bool] = None, css_class_sorter=None,
                 filename: Optional[str] = None, is_incomplete=None, format_code=None,
                 id_factory=None, observer=None, config: Optional[FormatterConfig] = None):
        # keyword options given explicitly win over the ones in `config`
        options = {
            name: value for name, value in (
                ("line_width", line_width),
                ("single_class_per_line", single_class_per_line),
                ("css_class_sorter", css_class_sorter),
                ("is_incomplete", is_incomplete),
                ("format_code", format_code),
            ) if value is not None
        }
        if config is None:
            self.config = FormatterConfig(**options)
        else:
            self.config = dataclasses.replace(config, **options)
        self.line_width = self.config.line_width
        self.filename = filename or "(erb)"
        self.original_source = source
        self.observer = observer

        self.stack = BlockStack(observer)
        self.pos = 0
        self._out: List[str] = []
        self._html = ""
        self.front_matter: Optional[str] = None
        self.source = ""

        # one factory for both tables keeps every marker distinct
        self.pre_placeholders = PlaceholderTable(id_factory)
        self.erb_tags = PlaceholderTable(self.pre_placeholders.id_factory)

        try:
            self.front_matter, body = split_front_matter(source)
            body = self.pre_placeholders.extract(ERB_PLACEHOLDER, body)
            self.source = self.erb_tags.extract(ERB_TAG, body)
            self.format()
        except FormatError as error:
            self._locate(error)
            raise

    @property
    def html(self) -> str:
        return self._html

    def __str__(self) -> str:
        return self._html

    # ---------------- Output ----------------

    def append(self, text: str) -> None:
        self._out.append(text)
        if self.observer is not None:
            self.observer.on_append(text)

    def indented(self, string: str, strip: bool = True) -> str:
        if strip:
            string = string.strip()
        return "\n" + self.stack.indent() + string

    def restore(self, text: str) -> str:
        return self.erb_tags.restore(text)

    def current_column(self) -> int:
        """Width of the last output line so far, with markers restored."""
        tail: List[str] = []
        for piece in reversed(self._out):
            _, newline, rest = piece.rpartition("\n")
            tail.append(rest)
            if newline:
                break
        return len(self.pre_placeholders.restore(self.restore("".join(reversed(tail)))))

    def in_raw_text(self) -> bool:
        top = self.stack.top
        return top is not None and top.kind == TAG and top.label in RAW_TEXT_TAGS

    # ---------------- Errors ----------------

    def _locate(self, error: FormatError) -> None:
        if error.filename == "(erb)":
            error.filename = self.filename
        if error.line is None:
            error.line = self.source_line()
        if error.stack_top is None:
            error.stack_top = self.stack.top_label
        error.formatted = "".join(self._out)
        error.stack = self.stack.describe()

    def source_line(self) -> int:
        """1-based line in the original source of the current scan position."""
        prefix = self.pre_placeholders.restore(self.erb_tags.restore(self.source[:self.pos]))
        offset = self.front_matter.count("\n") if self.front_matter else 0
        return offset + prefix.count("\n") + 1

    # ---------------- Attributes ----------------

    def format_attributes(self, tag_name: str, attrs: str, tag_closing: str) -> str:
        return format_attributes(
            tag_name, attrs, tag_closing,
            stack=self.stack,
            line_width=self.line_width,
            restore=self.restore,
            css_class_sorter=self.config.css_class_sorter,
            single_class_per_line=self.config.single_class_per_line,
        )

    # ---------------- Text ----------------

    def format_text(self, text: str) -> None:
        if not text:
            return
        log.debug("format_text: %r", text)

        starting_space = text[0].isspace()
        final_newlines_count = text[len(text.rstrip()):].count("\n")

        if text.strip():
            width = available_width(self.line_width, self.stack.depth)
            # glued text continues the current output line
            first_width = None if starting_space else width - self.current_column()
            lines = greedy_lines(text, width, first_width)
            if not starting_space:
                self.append(lines.pop(0))
            for line in lines:
                self.append(self.indented(line))

        # keep one blank line where the source had a paragraph break
        if final_newlines_count > 1:
            self.append("\n")

    # ---------------- Ruby ----------------

    def format_ruby(self, code: str, terminator: Optional[str] = None) -> str:
        """
        Run `code` through the configured code formatter and re-indent the
        result to the current depth. With a terminator the code is an open
        block: it is closed for formatting and the closing line dropped.
        Formatter failures leave the code as written.
        """
        source = code + terminator if terminator else code
        formatted = None
        if self.config.format_code is not None:
            try:
                formatted = self.config.format_code(source, self.line_width)
            except CodeFormatError as e:
                log.debug("keeping unformatted ruby %r: %s", code, e)
        unformatted = formatted is None
        if unformatted:
            formatted = source

        lines = formatted.strip().split("\n")
        if terminator:
            if len(lines) < 2 or lines[-1].strip() != terminator.strip():
                return code
            lines = lines[:-1]
        if unformatted and len(lines) > 1:
            # continuation lines would otherwise gain one indent per run
            lines = lines[:1] + textwrap.dedent("\n".join(lines[1:])).split("\n")

        out = "".join(self.indented(line.rstrip(), strip=False) if line.strip() else "\n" for line in lines)
        return out.strip()

    def format_erb_tag(self, erb_code: str, space_before: bool) -> None:
        erb_open, ruby_code, erb_close = ERB_TAG.match(erb_code).groups()
        if not ruby_code.startswith("#"):
            erb_open += " "

        def emit(code: str) -> None:
            full_erb_tag = f"{erb_open}{code} {erb_close}"
            self.append(self.indented(full_erb_tag) if space_before else full_erb_tag)

        kind = ruby.classify(ruby_code, self.config.is_incomplete)
        log.debug("erb %s: %r", kind, ruby_code)

        if kind == ruby.CLOSER:
            self.stack.pop(CODE_BLOCK, raw=ruby_code)
            emit(ruby_code)
        elif kind == ruby.REOPENER:
            self.stack.pop(CODE_BLOCK, raw=ruby_code)
            emit(ruby_code)
            self.stack.push(CodeBlock(ruby_code, erb_code))
        elif kind == ruby.OPENER:
            terminator = ruby.closing_terminator(ruby_code, self.config.is_incomplete)
            emit(self.format_ruby(ruby_code, terminator))
            self.stack.push(CodeBlock(ruby_code, erb_code))
        else:
            emit(self.format_ruby(ruby_code))

    def format_erb_tags(self, string: str) -> None:
        if not string:
            return
        if self.in_raw_text():
            self.append(string.rstrip())
            return

        erb_pre_pos = 0
        for m in self.erb_tags.pattern.finditer(string):
            erb_pre_match = string[erb_pre_pos:m.start()]
            erb_pre_pos = m.end()

            self.format_text(erb_pre_match)
            self.format_erb_tag(self.erb_tags[m.group(1)], bool(_ENDS_WITH_SPACE.search(erb_pre_match)))

        self.format_text(string[erb_pre_pos:])

    # ---------------- Markup ----------------

    def format_tag(self, m: "re.Match", space_before: bool) -> None:
        if m.group("close"):
            tag_name = m.group("close_name")
            full_tag = f"</{tag_name}>"
            self.stack.pop(TAG, tag_name)
            self.append(self.indented(full_tag) if space_before else full_tag)

        elif m.group("open"):
            tag_name, tag_attrs, tag_closing = m.group("open_name", "attrs", "closing")

            if not TAG_NAME_ONLY.match(tag_name):
                raise UnknownTagName(f"Unknown tag {tag_name!r}")

            tag_self_closing = tag_closing == "/>" or SELF_CLOSING_TAG.match(tag_name)
            attributes = self.restore(self.format_attributes(tag_name, tag_attrs.strip(), tag_closing))
            full_tag = f"<{tag_name}{attributes}{tag_closing}"
            self.append(self.indented(full_tag) if space_before else full_tag)

            if not tag_self_closing:
                self.stack.push(Tag(tag_name, full_tag))
        else:
            raise UnrecognizedContent(f"Unrecognized content: {m.group(0)!r}")

    def format(self) -> None:
        source = self.source
        pos = 0
        n = len(source)

        while pos < n:
            m = HTML_TAG.search(source, pos)
            if m is None:
                self.pos = pos
                self.format_erb_tags(source[pos:])
                break

            pre_match = source[pos:m.start()]
            self.pos = pos

            bad = None if self.in_raw_text() else BAD_ATTR.search(pre_match)
            if bad:
                self.pos = pos + bad.start()
                raise BadAttributeSyntax(f"Bad attribute, please fix spaces after the equal sign:\n{pre_match}")

            self.format_erb_tags(pre_match)

            self.pos = m.start()
            space_before = m.start() > 0 and source[m.start() - 1].isspace()
            self.format_tag(m, space_before)
            pos = m.end()

        self.pos = n
        self.stack.ensure_empty()

        html = "".join(self._out)
        html = self.erb_tags.restore(html)
        html = self.pre_placeholders.restore(html)
        html = html.strip()
        if self.front_matter is not None:
            html = self.front_matter + "\n" + html
        self._html = html + "\n"


def format(source: str, **options) -> str:
    """Format an ERB template and return the result."""
    return Formatter(source, **options).html
