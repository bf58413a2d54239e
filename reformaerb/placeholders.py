# placeholders.py
#
# Opaque markers standing in for chunks of the source (ERB tags, and text
# that already looks like a marker) while the markup is scanned.

import re
import uuid
from typing import Callable, Dict, Optional

# Shape shared by every marker; anything in the source with this shape is
# itself swapped out first so restoring can never hit a false positive.
MARKER = re.compile(r"erb[a-z0-9]+tag")

_NEVER = re.compile(r"(?!)")


def uuid_marker() -> str:
    return "erb" + uuid.uuid4().hex + "tag"


def counter_markers(prefix: str = "") -> Callable[[], str]:
    """Deterministic marker factory: erb1tag, erb2tag, ..."""
    count = 0

    def build() -> str:
        nonlocal count
        count += 1
        return f"erb{prefix}{count}tag"

    return build


class PlaceholderTable:
    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self.id_factory = id_factory or uuid_marker
        self._originals: Dict[str, str] = {}
        self._pattern: Optional[re.Pattern] = None

    def __len__(self) -> int:
        return len(self._originals)

    def __contains__(self, marker: str) -> bool:
        return marker in self._originals

    def __getitem__(self, marker: str) -> str:
        return self._originals[marker]

    def add(self, original: str) -> str:
        marker = self.id_factory()
        if not MARKER.fullmatch(marker) or marker in self._originals:
            raise ValueError(f"Bad or duplicate placeholder marker: {marker!r}")
        self._originals[marker] = original
        self._pattern = None
        return marker

    def extract(self, pattern: re.Pattern, text: str) -> str:
        return pattern.sub(lambda m: self.add(m.group(0)), text)

    @property
    def pattern(self) -> re.Pattern:
        if self._pattern is None:
            if self._originals:
                # longest first so a marker is never shadowed by a prefix of another
                keys = sorted(self._originals, key=len, reverse=True)
                self._pattern = re.compile("(" + "|".join(map(re.escape, keys)) + ")")
            else:
                self._pattern = _NEVER
        return self._pattern

    def restore(self, text: str) -> str:
        if not self._originals:
            return text
        return self.pattern.sub(lambda m: self._originals[m.group(1)], text)
