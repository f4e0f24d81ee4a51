"""Evaluate registry rules against parsed documents."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Sequence, Tuple

from .errors import RuleEvaluationError
from .parsers import Document
from .result import CheckResult, Finding, RawMatch
from .rules import Rule, RuleRegistry, ScanContext

logger = logging.getLogger(__name__)

DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class EngineResult:
    """Everything one engine run produced, in evaluation order."""

    findings: Tuple[Finding, ...] = ()
    checks: Tuple[CheckResult, ...] = ()
    errors: Tuple[RuleEvaluationError, ...] = ()


@dataclass(frozen=True)
class _Outcome:
    findings: Tuple[Finding, ...] = ()
    check: Optional[CheckResult] = None
    error: Optional[RuleEvaluationError] = None


class RuleEngine:
    """Run every applicable rule on every document.

    Rules only read the immutable document model, so (document, rule) pairs are
    evaluated on a fixed thread pool. A predicate that raises is recorded as a
    :class:`RuleEvaluationError` and never affects sibling rules.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        context: Optional[ScanContext] = None,
        suppress_rules: FrozenSet[str] = frozenset(),
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        self._registry = registry
        self._context = context or ScanContext()
        self._suppress_rules = frozenset(suppress_rules)
        self._workers = max(1, workers)

    def applicable_rules(self, document: Document) -> Tuple[Rule, ...]:
        return tuple(
            rule
            for rule in self._registry.by_document_kind(document.kind)
            if rule.id not in self._suppress_rules
        )

    def run(self, documents: Sequence[Document]) -> EngineResult:
        tasks = [(document, rule) for document in documents for rule in self.applicable_rules(document)]
        logger.debug("Evaluating %d rule/document pairs across %d documents", len(tasks), len(documents))
        if not tasks:
            return EngineResult()

        with ThreadPoolExecutor(max_workers=min(self._workers, len(tasks))) as pool:
            outcomes = list(pool.map(lambda task: self._evaluate(*task), tasks))

        findings: List[Finding] = []
        checks: List[CheckResult] = []
        errors: List[RuleEvaluationError] = []
        for outcome in outcomes:
            findings.extend(outcome.findings)
            if outcome.check is not None:
                checks.append(outcome.check)
            if outcome.error is not None:
                errors.append(outcome.error)
        return EngineResult(findings=tuple(findings), checks=tuple(checks), errors=tuple(errors))

    def _evaluate(self, document: Document, rule: Rule) -> _Outcome:
        try:
            matches = list(rule.evaluate(document, self._context))
        except Exception as exc:
            logger.warning("Rule %s failed on %s: %s", rule.id, document.path, exc)
            logger.debug("Rule %s traceback", rule.id, exc_info=True)
            reason = f"{type(exc).__name__}: {exc}"
            return _Outcome(error=RuleEvaluationError(rule_id=rule.id, file=document.path, reason=reason))

        findings = tuple(self._to_finding(rule, document.path, match) for match in matches)
        return _Outcome(
            findings=findings,
            check=CheckResult(rule_id=rule.id, file=document.path, passed=not findings),
        )

    @staticmethod
    def _to_finding(rule: Rule, path: str, match: RawMatch) -> Finding:
        return Finding(
            rule_id=rule.id,
            severity=rule.severity,
            file=path,
            line=match.line,
            matched_text=match.matched_text,
            message=match.message or rule.message,
            title=rule.title,
            cwe=rule.cwe,
            suggested_fix=match.suggested_fix or rule.fix,
        )
