"""Heroku-style .slugignore parsing.

A .slugignore file lists one glob per line. Blank lines and lines starting
with `#` are skipped, a leading `/` anchors the pattern to the directory
holding the file, and unanchored patterns match at any depth. Patterns support
`**`, character classes and `{a,b}` alternation.

A parsed SlugIgnore only describes the directory it was parsed from, at the
time it was parsed: patterns are expanded once, up front, into the concrete
set of matching relative paths.
"""

from __future__ import annotations

import logging
from pathlib import Path
from pathlib import PurePosixPath

from wcmatch import glob as wcglob

from ..errors import SlugIgnoreError

logger = logging.getLogger(__name__)

SLUGIGNORE_FILE = ".slugignore"

_ROOT = "."

_GLOB_FLAGS = wcglob.GLOBSTAR | wcglob.BRACE | wcglob.DOTMATCH


class SlugIgnore:
    """Set of ignored paths relative to a source directory.

    Example:
        >>> ignore = SlugIgnore({"vendor/cache"})
        >>> ignore.is_ignored("vendor/cache/pkg.gem")
        True
        >>> ignore.is_ignored("vendor/bundle")
        False
    """

    def __init__(self, ignored: set[str] | None = None) -> None:
        self._ignored = frozenset(ignored or ())

    def __len__(self) -> int:
        return len(self._ignored)

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and self.is_ignored(path)

    def is_ignored(self, path: str) -> bool:
        """Check whether path, or any directory above it, is ignored.

        Args:
            path: Path relative to the source directory (a leading `/` is tolerated)

        Returns:
            True if path or one of its ancestors matched a pattern
        """
        if not self._ignored:
            return False

        current = PurePosixPath(path.lstrip("/"))
        while str(current) != _ROOT:
            if str(current) in self._ignored:
                return True
            current = current.parent

        return False


def validate_pattern(pattern: str) -> None:
    """Check that pattern is a well-formed recursive glob.

    Raises:
        SlugIgnoreError: On unbalanced brackets or braces, a dangling
            escape, or `**` used as part of a path segment
    """
    depth_square = 0
    depth_brace = 0
    escaped = False

    for char in pattern:
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "[":
            depth_square += 1
        elif char == "]" and depth_square:
            depth_square -= 1
        elif char == "{":
            depth_brace += 1
        elif char == "}":
            if not depth_brace:
                raise SlugIgnoreError(f"slugignore pattern is malformed: {pattern}")
            depth_brace -= 1

    if escaped or depth_square or depth_brace:
        raise SlugIgnoreError(f"slugignore pattern is malformed: {pattern}")

    for segment in pattern.split("/"):
        if "**" in segment and segment != "**":
            raise SlugIgnoreError(f"slugignore pattern is malformed: {pattern}")


def _globs(line: str) -> list[str]:
    if line.startswith("/"):
        return [line.lstrip("/")]
    return [line, f"**/{line}"]


def _expand(source_dir: Path, pattern: str) -> set[str]:
    # a trailing slash only narrows matches to directories
    pattern = pattern.rstrip("/")
    if not pattern:
        return set()

    try:
        matches = wcglob.glob(pattern, root_dir=str(source_dir), flags=_GLOB_FLAGS)
    except ValueError as e:
        raise SlugIgnoreError(f"Error expanding slugignore pattern {pattern}: {e}") from e
    paths = {Path(match).as_posix() for match in matches}
    paths.discard(_ROOT)
    return paths


def parse(source_dir: Path | str) -> SlugIgnore:
    """Parse the .slugignore file of source_dir.

    Args:
        source_dir: Directory holding the .slugignore file

    Returns:
        SlugIgnore describing source_dir; empty when there is no .slugignore

    Raises:
        SlugIgnoreError: If any pattern is malformed
    """
    source_dir = Path(source_dir)
    ignore_file = source_dir / SLUGIGNORE_FILE

    if not ignore_file.is_file():
        logger.debug(f"No {SLUGIGNORE_FILE} in {source_dir}")
        return SlugIgnore()

    globs: list[str] = []
    for raw in ignore_file.read_text(encoding="utf-8").splitlines():
        line = raw.rstrip("\r")
        if line.startswith("#") or not line.strip():
            continue
        globs.extend(_globs(line))

    ignored: set[str] = set()
    for glob in globs:
        validate_pattern(glob)
        ignored |= _expand(source_dir, glob)

    logger.info(f"Parsed {ignore_file}: {len(globs)} globs matching {len(ignored)} paths")
    return SlugIgnore(ignored)
