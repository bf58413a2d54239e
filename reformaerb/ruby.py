# ruby.py
#
# Everything the formatter knows about the Ruby inside ERB tags:
#   - classify(): opener / closer / reopener / standalone / expression
#   - ruby_is_incomplete(): default syntax probe, a small bracket-and-keyword
#     balance lexer (no AST)
#   - SyntaxTreeFormatter: optional code formatter driving the `stree` CLI

import logging
import re
import shutil
import subprocess
from typing import Callable, List, Optional

from .errors import CodeFormatError

log = logging.getLogger(__name__)

# ---------------- Classification ----------------

STANDALONE = "standalone"
CLOSER = "closer"
REOPENER = "reopener"
OPENER = "opener"
EXPRESSION = "expression"

RUBY_STANDALONE_BLOCK = re.compile(r"\A(yield|next)\b")
RUBY_CLOSE_BLOCK = re.compile(r"\A(end|\})\Z")
RUBY_REOPEN_BLOCK = re.compile(r"\A(else|ensure|(elsif|when|in|rescue)\b(.*))\Z", re.S)

# Appended to a candidate opener; if one of them closes it, it is an opener.
TERMINATORS = ("\nend", "\n}")


def classify(code: str, is_incomplete: Callable[[str], bool]) -> str:
    if RUBY_STANDALONE_BLOCK.match(code):
        return STANDALONE
    if RUBY_CLOSE_BLOCK.match(code):
        return CLOSER
    if RUBY_REOPEN_BLOCK.match(code):
        return REOPENER
    if closing_terminator(code, is_incomplete) is not None:
        return OPENER
    return EXPRESSION


def closing_terminator(code: str, is_incomplete: Callable[[str], bool]) -> Optional[str]:
    """Return the terminator that completes `code`, None if it is not an opener."""
    if not is_incomplete(code):
        return None
    for terminator in TERMINATORS:
        if not is_incomplete(code + terminator):
            return terminator
    return None


# ---------------- Default syntax probe ----------------

# Keywords opening a block closed by `end`, wherever they appear.
_BLOCK_KEYWORDS = {"def", "class", "module", "case", "begin", "for"}
# Keywords opening a block only at statement position (otherwise modifiers).
_CONDITIONAL_KEYWORDS = {"if", "unless", "while", "until"}
# `while x do` / `for x in y do`: the `do` belongs to the loop.
_LOOP_KEYWORDS = {"while", "until", "for"}
_KEYWORDS = _BLOCK_KEYWORDS | _CONDITIONAL_KEYWORDS | {
    "do", "end", "then", "else", "elsif", "when", "in", "and", "or", "not",
    "return", "yield", "rescue", "ensure", "next", "break", "redo", "retry",
    "super", "defined?",
}
# after these `if` is a modifier: `return if x`, `end while y`
_OPERAND_KEYWORDS = {
    "self", "nil", "true", "false", "end", "__FILE__", "__LINE__",
    "return", "break", "next", "redo", "retry", "yield", "super",
}

_OPEN = {"(": ")", "[": "]", "{": "}"}
_CLOSE = {")", "]", "}"}

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*[?!]?")
_NUMBER = re.compile(r"[0-9][0-9_]*(?:\.[0-9_]+)?(?:[eE][+-]?[0-9]+)?")
_PERCENT_LITERAL = re.compile(r"%[qQwWiIrsx]?([^A-Za-z0-9\s])")
_PAIRS = {"(": ")", "[": "]", "{": "}", "<": ">"}


class _Unbalanced(Exception):
    pass


def _skip_string(code: str, i: int, close: str, open_: Optional[str] = None,
                 interpolate: bool = True) -> int:
    """Return the index just past the literal whose body starts at `i`."""
    n = len(code)
    nesting = 0
    while i < n:
        ch = code[i]
        if ch == "\\":
            i += 2
            continue
        if interpolate and code.startswith("#{", i):
            i = _skip_interpolation(code, i + 2)
            continue
        if open_ is not None and ch == open_:
            nesting += 1
        elif ch == close:
            if nesting == 0:
                return i + 1
            nesting -= 1
        i += 1
    raise _Unbalanced("unterminated literal")


def _skip_interpolation(code: str, i: int) -> int:
    n = len(code)
    depth = 0
    while i < n:
        ch = code[i]
        if ch in "\"'`":
            i = _skip_string(code, i + 1, ch, interpolate=ch != "'")
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            if depth == 0:
                return i + 1
            depth -= 1
        i += 1
    raise _Unbalanced("unterminated interpolation")


def _balance(code: str) -> List[str]:
    """
    Walk `code` and return the stack of still-open constructs.

    Raises _Unbalanced when something closes that was never opened or when
    a literal never ends.
    """
    stack: List[str] = []
    n = len(code)
    i = 0
    prev = None        # previous significant token
    operand = False    # did `prev` end an operand (so `if` is a modifier)?
    loop_pending = False

    def close(expected: str) -> None:
        if not stack or stack[-1] != expected:
            raise _Unbalanced(f"unexpected {expected!r}")
        stack.pop()

    while i < n:
        ch = code[i]

        if ch == "\n" or ch == ";":
            prev, operand, loop_pending = ch, False, False
            i += 1
            continue
        if ch in " \t\r\f\v":
            i += 1
            continue
        if ch == "\\" and code.startswith("\\\n", i):
            i += 2
            continue
        if ch == "#":
            j = code.find("\n", i)
            i = n if j == -1 else j
            continue

        if ch in "\"`":
            i = _skip_string(code, i + 1, ch)
            prev, operand = "str", True
            continue
        if ch == "'":
            i = _skip_string(code, i + 1, "'", interpolate=False)
            prev, operand = "str", True
            continue
        if ch == "%" and not operand:
            m = _PERCENT_LITERAL.match(code, i)
            if m:
                delim = m.group(1)
                closing = _PAIRS.get(delim, delim)
                opening = delim if delim in _PAIRS else None
                i = _skip_string(code, m.end(), closing, opening)
                prev, operand = "str", True
                continue
        if ch == "/" and not operand:
            i = _skip_string(code, i + 1, "/")
            while i < n and code[i] in "imxounse":
                i += 1
            prev, operand = "regexp", True
            continue
        if ch == "?" and not operand and i + 1 < n and not code[i + 1].isspace():
            # character literal ?a
            i += 3 if code[i + 1] == "\\" else 2
            prev, operand = "char", True
            continue
        if ch == ":" and i + 1 < n and code[i + 1] != ":" and prev != ":":
            m = _IDENT.match(code, i + 1)
            if m and not (i > 0 and code[i - 1] == ":"):
                i = m.end()
                prev, operand = "symbol", True
                continue
        if ch in "@$":
            m = _IDENT.match(code, i + 1 + (code.startswith("@@", i)))
            if m:
                i = m.end()
                prev, operand = "var", True
                continue

        if ch in _OPEN:
            stack.append(_OPEN[ch])
            prev, operand = ch, False
            i += 1
            continue
        if ch in _CLOSE:
            close(ch)
            prev, operand = ch, True
            i += 1
            continue

        m = _NUMBER.match(code, i)
        if m:
            i = m.end()
            prev, operand = "num", True
            continue

        m = _IDENT.match(code, i)
        if m:
            word = m.group(0)
            i = m.end()
            method_call = prev in (".", "&.", "::")
            label = code.startswith(":", i) and not code.startswith("::", i)
            if method_call or label or word not in _KEYWORDS:
                prev, operand = word, True
                continue
            if word == "end":
                close("end")
            elif word == "do":
                if loop_pending:
                    loop_pending = False
                else:
                    stack.append("end")
            elif word in _BLOCK_KEYWORDS:
                stack.append("end")
                loop_pending = word in _LOOP_KEYWORDS
            elif word in _CONDITIONAL_KEYWORDS and not operand:
                stack.append("end")
                loop_pending = word in _LOOP_KEYWORDS
            prev, operand = word, word in _OPERAND_KEYWORDS
            continue

        # operators and punctuation
        if code.startswith("&.", i):
            prev, operand = "&.", False
            i += 2
            continue
        if code.startswith("::", i):
            prev, operand = "::", False
            i += 2
            continue
        prev, operand = ch, False
        i += 1

    return stack


def ruby_is_incomplete(code: str) -> bool:
    """True when `code` is not a complete Ruby program on its own."""
    try:
        return bool(_balance(code))
    except _Unbalanced:
        return True


# ---------------- Code formatter adapter ----------------

class SyntaxTreeFormatter:
    """
    format_code implementation running `stree format` (the syntax_tree gem)
    on stdin. Any failure is reported as CodeFormatError so the caller can
    keep the original code.
    """

    def __init__(self, executable: str = "stree", plugins: str = "plugin/trailing_comma",
                 timeout: float = 10.0):
        self.executable = executable
        self.plugins = plugins
        self.timeout = timeout

    @staticmethod
    def available(executable: str = "stree") -> bool:
        return shutil.which(executable) is not None

    def command(self, width: int) -> List[str]:
        path = shutil.which(self.executable)
        if path is None:
            raise CodeFormatError(f"{self.executable!r} not found on PATH")
        cmd = [path, "format", f"--print-width={width}"]
        if self.plugins:
            cmd.append(f"--plugins={self.plugins}")
        return cmd

    def __call__(self, code: str, width: int) -> str:
        cmd = self.command(width)
        try:
            proc = subprocess.run(cmd, input=code, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                  text=True, timeout=self.timeout, check=True)
        except subprocess.CalledProcessError as e:
            raise CodeFormatError(e.stderr.strip() or f"stree exited with {e.returncode}") from e
        except (subprocess.TimeoutExpired, OSError) as e:
            raise CodeFormatError(str(e)) from e
        return proc.stdout
