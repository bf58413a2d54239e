# reflow.py
#
# Width-bounded layout: greedy line filling for text (textwrap), word packing
# for class lists, and the attribute-list reflow of an opening tag.

import re
import textwrap
from typing import Any, Callable, List, NamedTuple, Optional

from .stack import TAG, BlockStack, Tag

# ---------------- Core sets / regex ----------------

# Below this many usable columns indentation is ignored for the line.
MIN_WIDTH = 40

SPACES = re.compile(r"\s+")

# https://stackoverflow.com/a/317081
ATTR_NAME = r"""[^\r\n\t\f\v= '"<>]*[^\r\n\t\f\v= '"<>/]"""  # not ending with a slash
UNQUOTED_VALUE = r"""[^<>'"\s]+"""
UNQUOTED_ATTR = rf"{ATTR_NAME}={UNQUOTED_VALUE}"
SINGLE_QUOTE_ATTR = rf"(?:{ATTR_NAME}='[^']*?')"
DOUBLE_QUOTE_ATTR = rf'(?:{ATTR_NAME}="[^"]*?")'

ATTR = re.compile(rf"{SINGLE_QUOTE_ATTR}|{DOUBLE_QUOTE_ATTR}|{UNQUOTED_ATTR}|{UNQUOTED_VALUE}")
_UNQUOTED_VALUE_ONLY = re.compile(rf"{UNQUOTED_VALUE}\Z")
_HAS_CLASS = re.compile(r"(?:\A|\s)class=")

# Attributes whose value is a whitespace-separated token list.
MULTILINE_ATTR_NAMES = {"class", "data-action"}

# Synthetic stack frames, never visible outside format_attributes().
ATTR_FRAME = "attr="
VALUE_FRAME = 'attr"'


# ---------------- Greedy packing ----------------

def available_width(line_width: int, depth: int) -> int:
    """Columns left on a new line at `depth` (the newline counts as one)."""
    width = line_width - (1 + 2 * depth)
    # Restore full line width if there are too few columns available
    return line_width if width <= MIN_WIDTH else width


def pack_words(words: List[str], width: int, measure: Callable[[str], int] = len) -> List[str]:
    """
    Greedily join words with single spaces into lines of at most `width`
    columns. A word wider than `width` gets a line of its own; words are
    never split.
    """
    lines: List[str] = []
    line: List[str] = []
    used = 0
    for word in words:
        size = measure(word)
        if line and used + 1 + size > width:
            lines.append(" ".join(line))
            line, used = [], 0
        used += size if not line else 1 + size
        line.append(word)
    if line:
        lines.append(" ".join(line))
    return lines


def greedy_lines(text: str, width: int, first_width: Optional[int] = None) -> List[str]:
    """
    Fill lines of at most `width` columns with the words of `text`. The
    first line may get a smaller budget (`first_width`) when it continues
    a line that already holds other output. Words are never split.
    """
    text = SPACES.sub(" ", text).strip()
    if not text:
        return []
    offset = 0 if first_width is None else max(width - first_width, 0)
    lines = textwrap.wrap(text, width, initial_indent=" " * offset,
                          break_long_words=False, break_on_hyphens=False)
    if offset:
        lines[0] = lines[0][offset:]
    return lines


def sort_tokens(tokens: List[str], key: Callable[[str], Any]) -> List[str]:
    """Stable sort; tokens whose key is None go last, in source order."""
    def order(token):
        k = key(token)
        return (1, 0) if k is None else (0, k)
    return sorted(tokens, key=order)


# ---------------- Attributes ----------------

class Attribute(NamedTuple):
    name: str
    quote: Optional[str]          # None for bare names
    value: str                    # raw value between the quotes
    tokens: List[str]             # parsed token list for multi-value names

    @property
    def multi_value(self) -> bool:
        return self.quote is not None and self.name in MULTILINE_ATTR_NAMES

    def render(self) -> str:
        if self.quote is None:
            return self.name
        value = " ".join(self.tokens) if self.multi_value else self.value
        return f"{self.name}={self.quote}{value}{self.quote}"


def parse_attribute(raw: str, css_class_sorter: Optional[Callable[[str], Any]] = None) -> Attribute:
    name, sep, value = raw.strip().partition("=")
    if not sep:
        return Attribute(name, None, "", [])
    if not value:
        return Attribute(name, '"', "", [])
    if _UNQUOTED_VALUE_ONLY.match(value):
        quote, value = '"', value
    else:
        quote, value = value[0], value[1:-1]
    tokens = value.split() if name in MULTILINE_ATTR_NAMES else []
    if name == "class" and css_class_sorter is not None:
        tokens = sort_tokens(tokens, css_class_sorter)
    return Attribute(name, quote, value, tokens)


def squeeze_attributes(attrs: str) -> str:
    """
    Collapse whitespace between attributes to single spaces. Inside quoted
    values only runs that include a newline are collapsed.
    """
    out: List[str] = []
    i = 0
    n = len(attrs)
    quote = None

    while i < n:
        ch = attrs[i]
        if ch.isspace():
            j = i
            while j < n and attrs[j].isspace():
                j += 1
            run = attrs[i:j]
            out.append(run if quote and "\n" not in run else " ")
            i = j
            continue
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        out.append(ch)
        i += 1

    return "".join(out)


def format_attributes(tag_name: str, attrs: str, tag_closing: str, *, stack: BlockStack,
                      line_width: int, restore: Callable[[str], str] = lambda s: s,
                      css_class_sorter: Optional[Callable[[str], Any]] = None,
                      single_class_per_line: bool = False) -> str:
    """
    Lay out the attribute list of an opening tag.

    Returns the text between the tag name and its closing marker: either
    `` a="b" c`` on one line, or one attribute per line one level deeper
    than the tag followed by a newline at the tag's own indentation.
    Class tokens are sorted when a sorter is given; long class and
    data-action values are split across lines.
    """
    if not attrs.strip():
        return ""

    plain_attrs = squeeze_attributes(attrs).strip()
    indent = len(stack.indent())
    within_line_width = indent + len(f"<{tag_name} {restore(plain_attrs)}{tag_closing}") <= line_width

    if within_line_width and css_class_sorter is None and not _HAS_CLASS.search(plain_attrs):
        return " " + plain_attrs

    attributes = [parse_attribute(raw, css_class_sorter) for raw in ATTR.findall(plain_attrs)]
    rendered = [attr.render() for attr in attributes]
    one_line = " ".join(rendered)
    if indent + len(f"<{tag_name} {restore(one_line)}{tag_closing}") <= line_width:
        return " " + one_line

    def indented(string: str) -> str:
        return "\n" + stack.indent() + string.strip()

    def measure(string: str) -> int:
        return len(restore(string))

    attr_html: List[str] = []
    stack.push(Tag(ATTR_FRAME, attrs))

    for attr, full_attr in zip(attributes, rendered):
        too_long = len(stack.indent()) + measure(full_attr) > line_width
        if not (attr.multi_value and too_long and len(attr.tokens) > 1):
            attr_html.append(indented(full_attr))
            continue

        attr_html.append(indented(f"{attr.name}={attr.quote}"))
        stack.push(Tag(VALUE_FRAME, attr.value))

        if attr.name == "class" and not single_class_per_line:
            lines = pack_words(attr.tokens, available_width(line_width, stack.depth), measure)
        else:
            lines = attr.tokens
        for line in lines:
            attr_html.append(indented(line))

        stack.pop(TAG, VALUE_FRAME)
        attr_html[-1] += attr.quote

    stack.pop(TAG, ATTR_FRAME)
    attr_html.append("\n" + stack.indent())
    return "".join(attr_html)
