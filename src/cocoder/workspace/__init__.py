"""Workspace file collection."""

from cocoder.workspace.collector import FileCollection, collect_files, format_file_block
from cocoder.workspace.ignore import find_ignore_patterns, ignore_file_patterns

__all__ = [
    "FileCollection",
    "collect_files",
    "find_ignore_patterns",
    "format_file_block",
    "ignore_file_patterns",
]
