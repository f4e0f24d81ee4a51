from dockguard.aggregate import aggregate
from dockguard.errors import ParseError
from dockguard.result import CheckResult, Finding
from dockguard.severity import Severity


def make_finding(rule_id, severity, file="Dockerfile", line=1, text="FROM x"):
    return Finding(
        rule_id=rule_id,
        severity=severity,
        file=file,
        line=line,
        matched_text=text,
        message="message",
        title=rule_id,
    )


def test_findings_sorted_by_severity_file_line_rule():
    raw = [
        make_finding("OPT-002", Severity.MEDIUM, line=1),
        make_finding("SEC-002", Severity.HIGH, file="b/Dockerfile", line=1),
        make_finding("SEC-006", Severity.MEDIUM, line=1),
        make_finding("SEC-003", Severity.CRITICAL, line=9),
        make_finding("SEC-002", Severity.HIGH, file="a/Dockerfile", line=4),
    ]

    report = aggregate(raw)

    assert [(finding.rule_id, finding.file) for finding in report.findings] == [
        ("SEC-003", "Dockerfile"),
        ("SEC-002", "a/Dockerfile"),
        ("SEC-002", "b/Dockerfile"),
        ("OPT-002", "Dockerfile"),
        ("SEC-006", "Dockerfile"),
    ]


def test_duplicate_triples_keep_first_occurrence():
    first = make_finding("SEC-001", Severity.CRITICAL, line=3, text="first")
    second = make_finding("SEC-001", Severity.CRITICAL, line=3, text="second")

    report = aggregate([first, second, make_finding("SEC-001", Severity.CRITICAL, line=4)])

    assert len(report.findings) == 2
    assert report.findings[0].matched_text == "first"
    assert report.summary.critical == 2


def test_summary_counts_and_passed_checks():
    raw = [make_finding("SEC-002", Severity.HIGH), make_finding("OPT-001", Severity.MEDIUM)]
    checks = [
        CheckResult("SEC-001", "Dockerfile", True),
        CheckResult("SEC-001", "Dockerfile", True),
        CheckResult("SEC-002", "Dockerfile", False),
        CheckResult("SEC-004", "Dockerfile", True),
    ]

    report = aggregate(raw, checks)

    assert report.summary.to_dict() == {"critical": 0, "high": 1, "medium": 1, "passed": 2}
    assert report.summary.total == 2


def test_failure_threshold():
    report = aggregate([make_finding("OPT-001", Severity.MEDIUM)])

    assert report.exit_code(Severity.HIGH) == 0
    assert report.exit_code(Severity.MEDIUM) == 1
    assert report.failed("medium")


def test_parse_errors_are_carried_and_sorted():
    errors = [ParseError("bad", line=2, path="b.yml"), ParseError("bad", line=1, path="a.yml")]

    report = aggregate([], parse_errors=errors)

    assert [error.path for error in report.parse_errors] == ["a.yml", "b.yml"]


def test_aggregate_does_not_mutate_input():
    raw = [make_finding("OPT-001", Severity.MEDIUM), make_finding("SEC-001", Severity.CRITICAL)]
    snapshot = list(raw)

    aggregate(raw)

    assert raw == snapshot
