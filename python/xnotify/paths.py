"""
Watch list expansion.

Turns --include glob patterns (and paths piped on stdin) into the explicit
list of files and directories handed to FileWatcher.
"""

import glob
import logging
import os
import stat
import sys
from pathlib import Path
from typing import Iterable, Optional, TextIO

from xnotify.watcher.types import normalize_path

logger = logging.getLogger(__name__)


def relative_path(base: Path, path: Path) -> str:
    """Forward-slash path of path relative to base (path itself if outside)."""
    try:
        return normalize_path(os.path.relpath(path, base))
    except ValueError:
        # Different drive on Windows
        return normalize_path(str(path))


def _is_excluded(rel_path: str, excludes: Iterable) -> bool:
    return any(pattern.search(rel_path) for pattern in excludes)


def find_paths(
    base: Path,
    pattern: str,
    recursive: bool = True,
    excludes: Iterable = (),
    root: Optional[Path] = None,
) -> list[Path]:
    """
    Expand a glob pattern under base into the paths to watch.

    Args:
        base: Directory the pattern is relative to
        pattern: Glob pattern (e.g. ".", "src", "*.py")
        recursive: Descend into matched directories
        excludes: Compiled regexes; a match anywhere in the path relative to
            root drops the path (and, for directories, everything below it)
        root: Base the exclusions are evaluated against (default: base)

    Returns:
        Matching paths, parents before children
    """
    root = root or base
    excludes = list(excludes)
    found: list[Path] = []

    for match in sorted(glob.glob(os.path.join(str(base), pattern))):
        path = Path(os.path.normpath(match))
        if _is_excluded(relative_path(root, path), excludes):
            logger.debug(f"Excluded: {path}")
            continue
        found.append(path)
        if recursive and path.is_dir():
            found.extend(find_paths(path, "*", recursive=True, excludes=excludes, root=root))

    return found


def paths_from_stdin(stream: Optional[TextIO] = None) -> list[Path]:
    """
    Read paths to watch from piped stdin, one per line.

    Returns an empty list when stdin is a terminal, so running xnotify
    interactively never blocks waiting for input.
    """
    stream = stream if stream is not None else sys.stdin
    if stream is None or _is_interactive(stream):
        return []
    return [Path(line.strip()) for line in stream if line.strip()]


def _is_interactive(stream: TextIO) -> bool:
    if stream.isatty():
        return True
    try:
        mode = os.fstat(stream.fileno()).st_mode
    except (AttributeError, OSError, ValueError):
        # Not a real file (e.g. io.StringIO), read it
        return False
    # Only read pipes and regular files; anything else would block
    return not (stat.S_ISFIFO(mode) or stat.S_ISREG(mode))
