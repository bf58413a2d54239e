# ignore_list.py
#
# Globs of templates the command line must leave alone, one per line, read
# from .format-erb-ignore in the project directory.

import fnmatch
import os
from pathlib import Path
from typing import List, Optional, Union

IGNORE_FILE = ".format-erb-ignore"


class IgnoreList:
    def __init__(self, contents: Optional[str] = None, base_dir: Union[str, Path, None] = None):
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        if contents is None:
            path = self.base_dir / IGNORE_FILE
            contents = path.read_text(encoding="utf-8") if path.exists() else ""
        self.patterns: List[str] = [line.strip() for line in contents.splitlines() if line.strip()]

    def _expand(self, path: str) -> str:
        return os.path.normpath(os.path.join(os.path.abspath(self.base_dir), path))

    def should_ignore_file(self, path: Union[str, Path]) -> bool:
        path = self._expand(str(path))
        return any(fnmatch.fnmatchcase(path, self._expand(pattern)) for pattern in self.patterns)
