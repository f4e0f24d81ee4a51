"""Error types raised and collected during an audit run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


class DockguardError(Exception):
    """Base class for dockguard failures."""


class ParseError(DockguardError):
    """A manifest could not be turned into a document model."""

    def __init__(self, reason: str, line: Optional[int] = None, path: str = "") -> None:
        self.reason = reason
        self.line = line
        self.path = path
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.path or "<input>"
        if self.line is not None:
            location = f"{location}:{self.line}"
        return f"{location}: {self.reason}"

    def with_path(self, path: str) -> "ParseError":
        return ParseError(self.reason, line=self.line, path=path)

    def to_dict(self) -> Dict[str, object]:
        return {"file": self.path, "line": self.line, "reason": self.reason}


class DuplicateRuleError(DockguardError):
    """Two rules were registered under the same id."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} is already registered")


class ConfigError(DockguardError, ValueError):
    """The audit configuration is malformed."""


@dataclass(frozen=True)
class RuleEvaluationError:
    """Record of a single rule predicate failing on one document."""

    rule_id: str
    file: str
    reason: str

    def to_dict(self) -> Dict[str, str]:
        return {"rule_id": self.rule_id, "file": self.file, "reason": self.reason}
