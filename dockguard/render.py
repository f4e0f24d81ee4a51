"""Render an aggregated report as markdown or JSON."""

from __future__ import annotations

import json
from typing import Dict, List

from .result import AggregatedReport, Finding

FORMATS = ("markdown", "json")
REPORT_TITLE = "# Docker Security & Optimization Audit"


def render(report: AggregatedReport, fmt: str = "markdown", max_recommendations: int = 5) -> str:
    if fmt == "json":
        return render_json(report)
    if fmt == "markdown":
        return render_markdown(report, max_recommendations=max_recommendations)
    raise ValueError(f"Unknown report format {fmt!r} (expected one of: {', '.join(FORMATS)})")


def render_json(report: AggregatedReport) -> str:
    return json.dumps(report.to_dict(), indent=2, sort_keys=True)


def render_markdown(report: AggregatedReport, max_recommendations: int = 5) -> str:
    """Mirror the audit template: summary, errors, findings, then actions."""

    lines: List[str] = [REPORT_TITLE, "", "## Summary"]
    for label, count in report.summary.as_rows():
        lines.append(f"- {label}: {count}")
    lines.append(f"- Passed: {report.summary.passed}")

    if report.parse_errors:
        lines.extend(["", "## Parse Errors"])
        for error in report.parse_errors:
            location = error.path if error.line is None else f"{error.path}:{error.line}"
            lines.append(f"- {location}: {error.reason}")

    if report.rule_errors:
        lines.extend(["", "## Rule Errors"])
        for rule_error in report.rule_errors:
            lines.append(f"- {rule_error.file}: {rule_error.rule_id}: {rule_error.reason}")

    lines.extend(["", "## Findings"])
    if not report.findings:
        lines.extend(["", "No findings."])
    for finding in report.findings:
        lines.append("")
        lines.extend(_finding_block(finding))

    recommended = _recommendations(report, max_recommendations)
    if recommended:
        lines.extend(["", "## Recommended Actions (Priority Order)"])
        for position, text in enumerate(recommended, start=1):
            lines.append(f"{position}. {text}")

    return "\n".join(lines) + "\n"


def _finding_block(finding: Finding) -> List[str]:
    block = [
        f"### [{finding.severity.value}] {finding.title} ({finding.rule_id})",
        f"File: {finding.file}:{finding.line}",
    ]
    if finding.cwe:
        block.append(f"CWE: {finding.cwe}")
    block.append(f"Current: {_inline_code(finding.matched_text)}")
    if finding.suggested_fix:
        block.append(f"Fix: {finding.suggested_fix}")
    return block


def _recommendations(report: AggregatedReport, limit: int) -> List[str]:
    first_by_rule: Dict[str, Finding] = {}
    for finding in report.findings:
        first_by_rule.setdefault(finding.rule_id, finding)
    items = []
    for rule_id in report.recommended_rule_ids(limit):
        finding = first_by_rule[rule_id]
        count = sum(1 for item in report.findings if item.rule_id == rule_id)
        occurrences = "1 occurrence" if count == 1 else f"{count} occurrences"
        action = finding.suggested_fix or finding.message
        items.append(f"[{finding.severity.value}] {finding.title} ({rule_id}, {occurrences}): {action}")
    return items


def _inline_code(text: str) -> str:
    single_line = " ".join(text.split())
    fence = "``" if "`" in single_line else "`"
    return f"{fence}{single_line}{fence}" if fence == "`" else f"{fence} {single_line} {fence}"
