"""Core result data structures for the auditor."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .errors import ParseError, RuleEvaluationError
from .severity import SEVERITY_ORDER, Severity


@dataclass(frozen=True)
class RawMatch:
    """A predicate hit before rule metadata is attached."""

    line: int
    matched_text: str
    message: Optional[str] = None
    suggested_fix: Optional[str] = None


@dataclass(frozen=True)
class Finding:
    """Capture a single rule violation tied to a file and line."""

    rule_id: str
    severity: Severity
    file: str
    line: int
    matched_text: str
    message: str
    title: str = ""
    cwe: Optional[str] = None
    suggested_fix: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.rule_id, self.file, self.line)

    def sort_key(self) -> Tuple[int, str, int, str]:
        return (-self.severity.rank, self.file, self.line, self.rule_id)

    def to_dict(self) -> Dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "title": self.title,
            "file": self.file,
            "line": self.line,
            "cwe": self.cwe,
            "matched_text": self.matched_text,
            "message": self.message,
            "suggested_fix": self.suggested_fix,
        }


@dataclass(frozen=True)
class CheckResult:
    """Outcome of evaluating one rule against one document."""

    rule_id: str
    file: str
    passed: bool


@dataclass
class Summary:
    """Aggregate finding counts by severity."""

    critical: int = 0
    high: int = 0
    medium: int = 0
    passed: int = 0

    def increment(self, severity: Severity) -> None:
        attr = severity.value.lower()
        setattr(self, attr, getattr(self, attr) + 1)

    def count(self, severity: Severity) -> int:
        return getattr(self, severity.value.lower())

    def to_dict(self) -> Dict[str, int]:
        return {
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "passed": self.passed,
        }

    def as_rows(self) -> List[Tuple[str, int]]:
        """Return severity/count pairs ordered for reporting."""

        return [(severity.label, self.count(severity)) for severity in SEVERITY_ORDER]

    @property
    def total(self) -> int:
        return sum(self.count(severity) for severity in SEVERITY_ORDER)


@dataclass(frozen=True)
class AggregatedReport:
    """Sorted, deduplicated findings plus the errors met along the way."""

    findings: Tuple[Finding, ...] = ()
    summary: Summary = field(default_factory=Summary)
    parse_errors: Tuple[ParseError, ...] = ()
    rule_errors: Tuple[RuleEvaluationError, ...] = ()

    def failed(self, fail_on_severity: Severity = Severity.HIGH) -> bool:
        threshold = Severity.parse(fail_on_severity).rank
        return any(finding.severity.rank >= threshold for finding in self.findings)

    def exit_code(self, fail_on_severity: Severity = Severity.HIGH) -> int:
        return 1 if self.failed(fail_on_severity) else 0

    def recommended_rule_ids(self, limit: int = 5) -> List[str]:
        """Return the first ``limit`` distinct rule ids in report order."""

        seen: List[str] = []
        for finding in self.findings:
            if finding.rule_id not in seen:
                seen.append(finding.rule_id)
            if len(seen) >= limit:
                break
        return seen

    def to_dict(self) -> Dict[str, object]:
        return {
            "summary": self.summary.to_dict(),
            "parse_errors": [error.to_dict() for error in self.parse_errors],
            "rule_errors": [error.to_dict() for error in self.rule_errors],
            "findings": [finding.to_dict() for finding in self.findings],
        }


def format_summary_table(report: AggregatedReport, max_findings: int = 5) -> str:
    """Create a human-readable summary table for console output."""

    lines: List[str] = []
    lines.append("Audit Summary")
    lines.append("=" * 40)
    header = f"{'Severity':<10} | {'Count':>5}"
    lines.append(header)
    lines.append("-" * len(header))
    for severity, count in report.summary.as_rows():
        lines.append(f"{severity:<10} | {count:>5}")
    lines.append("-" * len(header))
    lines.append(f"Passed    : {report.summary.passed}")
    lines.append(f"Findings  : {report.summary.total}")
    if report.parse_errors or report.rule_errors:
        lines.append(f"Errors    : {len(report.parse_errors) + len(report.rule_errors)}")

    findings = report.findings[:max_findings]
    if findings:
        lines.append("")
        lines.append("Top Findings")
        lines.append("-" * 40)
        for finding in findings:
            lines.append(f"[{finding.severity.value}] {finding.rule_id} {finding.title}")
            lines.append(f"  Location: {finding.file}:{finding.line}")
    return "\n".join(lines)
