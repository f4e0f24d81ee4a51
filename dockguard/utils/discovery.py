"""Locate Dockerfiles and compose files beneath the given paths."""

from __future__ import annotations

import fnmatch
import logging
from pathlib import Path
from typing import Generator, Iterable

from ..parsers import COMPOSE_FILE_PATTERNS

DOCKERFILE_PATTERNS = ("dockerfile", "dockerfile.*", "*.dockerfile", "containerfile")
SKIPPED_DIRECTORIES = {".git", "node_modules", ".venv", "venv", "__pycache__"}

logger = logging.getLogger(__name__)


def is_manifest(path: Path) -> bool:
    name = path.name.lower()
    return any(fnmatch.fnmatch(name, pattern) for pattern in DOCKERFILE_PATTERNS + COMPOSE_FILE_PATTERNS)


def iter_manifest_files(root_paths: Iterable[str]) -> Generator[Path, None, None]:
    """Yield manifests beneath the provided paths; explicit files are yielded as-is."""

    for root in root_paths:
        base = Path(root)
        if not base.exists():
            logger.warning("Skipping %s: no such file or directory", root)
            continue
        if base.is_file():
            yield base
            continue
        for path in sorted(base.rglob("*")):
            if SKIPPED_DIRECTORIES.intersection(path.relative_to(base).parts[:-1]):
                continue
            if path.is_file() and is_manifest(path):
                yield path
