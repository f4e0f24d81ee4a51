"""Rule records and the registry the engine evaluates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from dockguard.errors import DuplicateRuleError
from dockguard.parsers.kinds import DocumentKind
from dockguard.result import RawMatch
from dockguard.severity import Severity

from .patterns import PatternTables

Predicate = Callable[[Any, "ScanContext"], Iterable[RawMatch]]


@dataclass(frozen=True)
class ScanContext:
    """Bundle read-only inputs shared across rules."""

    patterns: PatternTables = field(default_factory=PatternTables)


@dataclass(frozen=True)
class Rule:
    """Metadata plus the predicate of one check."""

    id: str
    applies_to: DocumentKind
    severity: Severity
    title: str
    evaluate: Predicate
    cwe: Optional[str] = None
    message: str = ""
    fix: Optional[str] = None
    category: str = "security"

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "applies_to": self.applies_to.value,
            "severity": self.severity.value,
            "category": self.category,
            "cwe": self.cwe,
            "title": self.title,
        }


class RuleRegistry:
    """Ordered, id-unique collection of rules."""

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: Dict[str, Rule] = {}
        for item in rules:
            self.register(item)

    def register(self, rule: Rule) -> None:
        if rule.id in self._rules:
            raise DuplicateRuleError(rule.id)
        self._rules[rule.id] = rule

    def all(self) -> Tuple[Rule, ...]:
        return tuple(self._rules.values())

    def by_document_kind(self, kind: DocumentKind) -> Tuple[Rule, ...]:
        return tuple(item for item in self._rules.values() if item.applies_to is kind)

    def get(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __len__(self) -> int:
        return len(self._rules)


# ----------------------------------------------------------------------
# Static catalog
# ----------------------------------------------------------------------
_CATALOG: List[Rule] = []


def rule(
    rule_id: str,
    applies_to: DocumentKind,
    severity: Severity,
    title: str,
    *,
    cwe: Optional[str] = None,
    message: str = "",
    fix: Optional[str] = None,
    category: str = "security",
) -> Callable[[Predicate], Predicate]:
    """Decorator adding a predicate to the static rule catalog."""

    def decorator(fn: Predicate) -> Predicate:
        _CATALOG.append(
            Rule(
                id=rule_id,
                applies_to=applies_to,
                severity=severity,
                title=title,
                evaluate=fn,
                cwe=cwe,
                message=message or title,
                fix=fix,
                category=category,
            )
        )
        return fn

    return decorator


def catalog() -> Tuple[Rule, ...]:
    from . import compose_security, dockerfile_security, optimization  # noqa: F401

    return tuple(_CATALOG)


def default_registry() -> RuleRegistry:
    """Build a registry holding every catalog rule."""

    return RuleRegistry(catalog())


__all__ = [
    "PatternTables",
    "Rule",
    "RuleRegistry",
    "ScanContext",
    "catalog",
    "default_registry",
    "rule",
]
