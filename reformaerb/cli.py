# cli.py
#
# Usage:
#   reformaerb app/views/index.html.erb                # print the formatted template
#   reformaerb --write app/views/**/*.html.erb          # format files in place
#   reformaerb --stdin-filename app/views/x.html.erb < x.html.erb
#
# Files matching .format-erb-ignore are echoed (or left) unchanged. A
# template that cannot be formatted is reported on stderr, left untouched,
# and makes the exit status 1.

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, TextIO, Tuple

from .config import DEFAULT_LINE_WIDTH
from .errors import FormatError
from .formatter import Formatter
from .ignore_list import IgnoreList
from .ruby import SyntaxTreeFormatter

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="reformaerb", description="Format ERB templates.")
    p.add_argument("filenames", nargs="*", metavar="FILENAME", help="templates to format")
    p.add_argument("-w", "--write", action=argparse.BooleanOptionalAction, default=False,
                   help="write the result back to each file")
    p.add_argument("--stdin", action=argparse.BooleanOptionalAction, default=None,
                   help="read the template from stdin")
    p.add_argument("--stdin-filename", metavar="FILEPATH",
                   help="name of the template read from stdin (implies --stdin)")
    p.add_argument("--line-width", type=int, default=DEFAULT_LINE_WIDTH, help="maximum line width")
    p.add_argument("--single-class-per-line", action="store_true",
                   help="put each CSS class on its own line when a class list is split")
    p.add_argument("--stree", action=argparse.BooleanOptionalAction, default=None,
                   help="format embedded Ruby with syntax_tree's stree (default: when it is on PATH)")
    p.add_argument("--debug", action=argparse.BooleanOptionalAction, default=False,
                   help="log formatter internals")
    return p


def _read_inputs(args: argparse.Namespace, parser: argparse.ArgumentParser,
                 stdin: TextIO) -> Tuple[bool, List[Tuple[str, str]]]:
    read_stdin = args.stdin
    if args.stdin_filename is not None:
        if read_stdin is False:
            parser.error("Can't set stdin filename and not use stdin at the same time")
        read_stdin = True

    if read_stdin:
        if args.filenames:
            parser.error("Can't read both stdin and a list of files")
        return True, [(args.stdin_filename or "-", stdin.read())]

    if not args.filenames:
        parser.error("no templates given")
    return False, [(name, Path(name).read_text(encoding="utf-8")) for name in args.filenames]


def main(argv: Optional[List[str]] = None, stdin: Optional[TextIO] = None,
         stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    if args.line_width < 1:
        parser.error("--line-width must be at least 1")

    format_code = None
    if args.stree or (args.stree is None and SyntaxTreeFormatter.available()):
        format_code = SyntaxTreeFormatter()

    from_stdin, files = _read_inputs(args, parser, stdin)
    ignore_list = IgnoreList()
    status = 0

    for filename, code in files:
        if ignore_list.should_ignore_file(filename):
            log.debug("ignoring %s", filename)
            if not args.write or from_stdin:
                stdout.write(code)
            continue

        try:
            html = Formatter(
                code,
                filename=filename,
                line_width=args.line_width,
                single_class_per_line=args.single_class_per_line,
                format_code=format_code,
            ).html
        except FormatError as e:
            print(f"{e}\n{e.details()}" if args.debug else str(e), file=stderr)
            status = 1
            continue

        if args.write and not from_stdin:
            Path(filename).write_text(html, encoding="utf-8")
        else:
            stdout.write(html)

    return status


if __name__ == "__main__":
    sys.exit(main())
