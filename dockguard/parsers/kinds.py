"""Document kinds understood by the auditor."""

from __future__ import annotations

from enum import Enum


class DocumentKind(str, Enum):
    DOCKERFILE = "dockerfile"
    COMPOSE = "compose"
