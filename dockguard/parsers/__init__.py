"""Parsers turning manifest text into document models."""

from __future__ import annotations

import fnmatch
from pathlib import PurePath
from typing import Union

from ..errors import ParseError
from . import compose, dockerfile
from .compose import ComposeDocument, ServiceSpec, VolumeMount
from .dockerfile import DockerfileDocument, Instruction
from .kinds import DocumentKind

Document = Union[DockerfileDocument, ComposeDocument]

COMPOSE_FILE_PATTERNS = (
    "docker-compose*.yml",
    "docker-compose*.yaml",
    "compose*.yml",
    "compose*.yaml",
)


def detect_kind(path: str) -> DocumentKind:
    """Classify a manifest by its file name."""

    name = PurePath(path).name.lower()
    if any(fnmatch.fnmatch(name, pattern) for pattern in COMPOSE_FILE_PATTERNS):
        return DocumentKind.COMPOSE
    return DocumentKind.DOCKERFILE


def parse_document(path: str, text: str) -> Document:
    """Parse ``text`` with the parser matching ``path``; errors carry the path."""

    try:
        if detect_kind(path) is DocumentKind.COMPOSE:
            return compose.parse(text, path=path)
        return dockerfile.parse(text, path=path)
    except ParseError as exc:
        raise exc.with_path(path) from exc


__all__ = [
    "ComposeDocument",
    "Document",
    "DockerfileDocument",
    "DocumentKind",
    "Instruction",
    "ServiceSpec",
    "VolumeMount",
    "detect_kind",
    "parse_document",
]
