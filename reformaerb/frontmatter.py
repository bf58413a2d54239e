# frontmatter.py
#
# A template may open with a YAML block ("---" ... "---"). It is cut off
# before formatting and put back verbatim afterwards.

from typing import Optional, Tuple

import yaml

from .errors import FrontMatterError

DELIMITER = "---\n"


def _first_document_end_line(source: str) -> int:
    # The event stream is lazy: parsing stops right after the first
    # document, so the template body is never fed to the YAML scanner.
    for event in yaml.parse(source, Loader=yaml.SafeLoader):
        if isinstance(event, yaml.DocumentEndEvent):
            return event.start_mark.line
    return source.count("\n")


def split_front_matter(source: str) -> Tuple[Optional[str], str]:
    """Return (front_matter, body); front_matter is None when absent."""
    if not source.startswith(DELIMITER):
        return None, source

    try:
        end_line = _first_document_end_line(source)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        raise FrontMatterError(
            f"Invalid front matter: {e}",
            line=mark.line + 1 if mark is not None else None,
        ) from e

    lines = source.splitlines(keepends=True)
    first_body_line = end_line + 1
    front_matter = "".join(lines[:first_body_line])
    if not front_matter.endswith("\n"):
        front_matter += "\n"
    return front_matter, "".join(lines[first_body_line:])
