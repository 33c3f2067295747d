"""Collect workspace file contents into a token-budgeted prompt."""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from wcmatch import glob

from cocoder.errors import WorkspaceNotFoundError
from cocoder.tokens import TokenCounter, count_tokens
from cocoder.workspace.ignore import find_ignore_patterns, is_ignored

INCLUDE_FLAGS = glob.GLOBSTAR | glob.BRACE | glob.EXTGLOB | glob.NODIR


@dataclass(frozen=True)
class FileCollection:
    """Result of one collection call."""

    prompt: str
    processed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    truncated: list[str] = field(default_factory=list)


def format_file_block(relative_path: str, contents: str) -> str:
    return f"File {relative_path}: ```{contents}```\n\n"


def collect_files(
    base_dir: Path | str,
    file_patterns: Sequence[str],
    *,
    ignore_patterns: Sequence[str] | None = None,
    use_ignore_files: bool = False,
    max_file_size: int | None = None,
    max_tokens: int | None = None,
    max_files: int | None = None,
    token_counter: TokenCounter | None = None,
) -> FileCollection:
    """Render matching files as prompt blocks within size, token and count limits.

    A file that does not fit the budget is recorded as skipped and the scan
    goes on with the next file.
    """
    base = _validate_base_dir(base_dir)
    excluded = resolve_ignore_patterns(base, ignore_patterns, use_ignore_files=use_ignore_files)
    counter = token_counter or count_tokens

    blocks: list[str] = []
    processed: list[str] = []
    skipped: list[str] = []
    truncated: list[str] = []
    used_tokens = 0

    for relative in iter_matching_files(base, file_patterns, excluded):
        contents = _read_text(base / relative)
        if contents is None:
            skipped.append(relative)
            continue

        was_truncated = max_file_size is not None and len(contents) > max_file_size
        if was_truncated:
            contents = contents[:max_file_size]

        block = format_file_block(relative, contents)
        block_tokens = counter(block) if max_tokens is not None else 0
        fits_tokens = max_tokens is None or used_tokens + block_tokens <= max_tokens
        fits_count = max_files is None or len(processed) < max_files
        if not (fits_tokens and fits_count):
            logger.debug(
                "workspace.file.skipped path={} tokens={} used={} files={}",
                relative,
                block_tokens,
                used_tokens,
                len(processed),
            )
            skipped.append(relative)
            continue

        blocks.append(block)
        processed.append(relative)
        if was_truncated:
            truncated.append(relative)
        used_tokens += block_tokens

    return FileCollection(prompt="".join(blocks), processed=processed, skipped=skipped, truncated=truncated)


def resolve_ignore_patterns(
    base_dir: Path,
    ignore_patterns: Iterable[str] | None,
    *,
    use_ignore_files: bool = False,
) -> list[str]:
    """Anchor ignore patterns at base_dir and merge in ignore-file patterns.

    Each pattern matches the paths it names and everything beneath them.
    """
    prefix = glob.escape(base_dir.as_posix())
    patterns: list[str] = []
    for pattern in ignore_patterns or ():
        pattern = pattern.strip()
        if not pattern:
            continue
        anchored = pattern if pattern.startswith("/") else f"{prefix}/{pattern.rstrip('/')}"
        patterns.extend([anchored, f"{anchored}/**"])
    if use_ignore_files:
        patterns.extend(find_ignore_patterns(base_dir))
    return list(dict.fromkeys(patterns))


def iter_matching_files(base_dir: Path, file_patterns: Iterable[str], excluded: list[str]) -> Iterator[str]:
    """Yield relative posix paths of files matching the patterns, each once."""
    seen: set[str] = set()
    for pattern in file_patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        for match in sorted(glob.glob(pattern, flags=INCLUDE_FLAGS, root_dir=str(base_dir))):
            path = Path(os.path.normpath(base_dir / match))
            if not path.is_relative_to(base_dir):
                logger.debug("workspace.file.outside path={} base={}", path, base_dir)
                continue
            relative = path.relative_to(base_dir).as_posix()
            if relative in seen:
                continue
            seen.add(relative)
            if is_ignored(path, excluded):
                continue
            yield relative


def _validate_base_dir(base_dir: Path | str) -> Path:
    base = Path(os.path.normpath(base_dir))
    if not base.is_absolute():
        raise WorkspaceNotFoundError(f"Base directory must be an absolute path: {base}")
    if not base.is_dir():
        raise WorkspaceNotFoundError(f"Directory {base} does not exist")
    return base


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeError) as exc:
        logger.warning("workspace.file.unreadable path={} error={}", path, exc)
        return None
