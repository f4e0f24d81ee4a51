"""Merge engine output into a deterministic report."""

from __future__ import annotations

from typing import Iterable, List, Sequence, Set, Tuple

from .errors import ParseError, RuleEvaluationError
from .result import AggregatedReport, CheckResult, Finding, Summary


def aggregate(
    raw: Sequence[Finding],
    checks: Iterable[CheckResult] = (),
    parse_errors: Iterable[ParseError] = (),
    rule_errors: Iterable[RuleEvaluationError] = (),
) -> AggregatedReport:
    """Deduplicate and sort findings, then count them.

    Findings are unique per (rule_id, file, line), first occurrence wins. The
    order is severity descending, then file, line and rule id ascending.
    Passed counts distinct (rule_id, file) evaluations that matched nothing.
    """

    findings = sorted(_dedupe_findings(raw), key=Finding.sort_key)

    summary = Summary()
    for finding in findings:
        summary.increment(finding.severity)
    summary.passed = len(_passed_checks(checks))

    return AggregatedReport(
        findings=tuple(findings),
        summary=summary,
        parse_errors=tuple(sorted(_dedupe_parse_errors(parse_errors), key=lambda error: (error.path, error.line or 0))),
        rule_errors=tuple(sorted(set(rule_errors), key=lambda error: (error.file, error.rule_id))),
    )


def _dedupe_findings(raw: Sequence[Finding]) -> List[Finding]:
    seen: Set[Tuple[str, str, int]] = set()
    unique: List[Finding] = []
    for finding in raw:
        if finding.key in seen:
            continue
        seen.add(finding.key)
        unique.append(finding)
    return unique


def _passed_checks(checks: Iterable[CheckResult]) -> Set[Tuple[str, str]]:
    return {(check.rule_id, check.file) for check in checks if check.passed}


def _dedupe_parse_errors(errors: Iterable[ParseError]) -> List[ParseError]:
    seen: Set[Tuple[str, object, str]] = set()
    unique: List[ParseError] = []
    for error in errors:
        key = (error.path, error.line, error.reason)
        if key not in seen:
            seen.add(key)
            unique.append(error)
    return unique
