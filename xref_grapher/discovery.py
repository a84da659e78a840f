"""Source discovery: find the Erlang files to analyse under a root directory."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

SOURCE_SUFFIX = ".erl"

# EUnit test modules are excluded; they would add an edge to every module under test.
TEST_FILE_PATTERN = "*tests.erl"

# Directories to skip during scanning
_SKIP_DIRS = {
    ".git",
    ".svn",
    ".hg",
    "_build",
    ".rebar3",
}


def is_test_file(path: str | Path) -> bool:
    return fnmatch.fnmatchcase(Path(path).name, TEST_FILE_PATTERN)


def discover_sources(root: str | Path) -> list[Path]:
    """Recursively collect ``*.erl`` files under ``root``.

    The order is deterministic: names sorted within each directory, a
    directory's own files before those of its subdirectories. Files
    matching ``TEST_FILE_PATTERN`` are left out.
    """
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Source root not found: {root}")

    sources: list[Path] = []
    skipped = 0
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
        for name in sorted(filenames):
            if not name.endswith(SOURCE_SUFFIX):
                continue
            if is_test_file(name):
                skipped += 1
                continue
            sources.append(Path(dirpath) / name)

    logger.info("Found %d source files under %s (%d test files skipped)", len(sources), root, skipped)
    return sources
