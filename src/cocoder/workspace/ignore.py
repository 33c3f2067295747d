"""Translate ignore files into absolute glob patterns."""

from __future__ import annotations

from pathlib import Path

from loguru import logger
from wcmatch import glob

from cocoder.errors import ConfigurationError

IGNORE_FILE_NAME = ".gitignore"
MATCH_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB | glob.DOTGLOB


def ignore_file_patterns(root_dir: Path, current_dir: Path) -> list[str]:
    """Merge ignore files from current_dir up to root_dir into absolute patterns.

    Patterns of the innermost directory come first. Each entry is anchored to
    the directory holding its ignore file and matches the entry itself and
    everything beneath it.
    """
    root = Path(root_dir)
    current = Path(current_dir)
    if not current.is_relative_to(root):
        raise ConfigurationError(f"{current} is not a subdirectory of {root}")
    if not current.is_dir():
        raise ConfigurationError(f"{current} is not a directory")

    patterns: list[str] = []
    directory = current
    while True:
        patterns.extend(_read_ignore_file(directory))
        if directory == root or directory.parent == directory:
            break
        directory = directory.parent
    return patterns


def find_ignore_patterns(base_dir: Path) -> list[str]:
    """Collect patterns from every ignore file at or below base_dir.

    Ignore files living inside directories already ignored by the root ignore
    file are not read.
    """
    base = Path(base_dir)
    root_patterns = ignore_file_patterns(base, base)
    patterns = list(root_patterns)

    found = glob.glob(f"**/{IGNORE_FILE_NAME}", flags=MATCH_FLAGS | glob.NODIR, root_dir=str(base))
    for relative in sorted(found):
        ignore_file = base / relative
        if root_patterns and glob.globmatch(ignore_file.as_posix(), root_patterns, flags=MATCH_FLAGS):
            continue
        patterns.extend(ignore_file_patterns(base, ignore_file.parent))

    return list(dict.fromkeys(patterns))


def is_ignored(path: Path, patterns: list[str]) -> bool:
    """Return whether an absolute path matches any of the absolute patterns."""
    if not patterns:
        return False
    return glob.globmatch(Path(path).as_posix(), patterns, flags=MATCH_FLAGS)


def _read_ignore_file(directory: Path) -> list[str]:
    ignore_file = directory / IGNORE_FILE_NAME
    if not ignore_file.is_file():
        return []
    try:
        lines = ignore_file.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeError) as exc:
        logger.warning("workspace.ignore.unreadable path={} error={}", ignore_file, exc)
        return []

    prefix = glob.escape(directory.as_posix())
    patterns: list[str] = []
    for line in lines:
        entry = line.strip()
        # negation is not supported
        if not entry or entry.startswith(("#", "!")):
            continue
        entry = entry.removeprefix("/").rstrip("/")
        if not entry:
            continue
        patterns.append(f"{prefix}/**/{entry}")
        patterns.append(f"{prefix}/**/{entry}/**")
    return patterns
