"""Command-line entry point for the dockguard auditor."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

from .audit import Source, audit
from .config import AuditConfig, load_config
from .errors import ConfigError
from .render import FORMATS, render
from .result import AggregatedReport, format_summary_table
from .rules import default_registry
from .severity import SEVERITY_ORDER, Severity
from .utils import iter_manifest_files, read_text_file

DEFAULT_PATHS = (".",)

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dockguard",
        description="Audit Dockerfiles and docker-compose files for security and optimization issues",
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="Files or directories to audit (defaults to the current directory).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (defaults to .dockguard.yaml when present).",
    )
    parser.add_argument(
        "--format",
        choices=FORMATS,
        default="markdown",
        help="Report format (defaults to markdown).",
    )
    parser.add_argument(
        "--out",
        "--output",
        dest="output_path",
        type=str,
        default=None,
        help="Path to write the report (e.g., artifacts/docker-audit.md).",
    )
    parser.add_argument(
        "--fail-on",
        dest="fail_on",
        choices=[severity.value for severity in SEVERITY_ORDER],
        type=str.upper,
        default=None,
        help="Lowest severity that makes the run exit non-zero (defaults to HIGH).",
    )
    parser.add_argument(
        "--suppress",
        action="append",
        default=[],
        metavar="RULE_ID",
        help="Skip a rule entirely (repeatable, or comma separated).",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="Print the rule catalog and exit.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    return parser


def list_rules() -> str:
    lines = []
    for item in default_registry().all():
        cwe = item.cwe or "-"
        lines.append(f"{item.id:<16} {item.severity.value:<9} {cwe:<8} {item.title}")
    return "\n".join(lines)


def read_sources(paths: List[str]) -> List[Source]:
    sources: List[Source] = []
    for path in iter_manifest_files(paths):
        sources.append((str(path), read_text_file(path)))
    logger.info("Discovered %d manifest(s)", len(sources))
    return sources


def write_output(report: AggregatedReport, config: AuditConfig, output_path: str | None, report_format: str) -> None:
    print(format_summary_table(report), file=sys.stderr)

    payload = render(report, report_format, max_recommendations=config.max_recommendations)
    if output_path:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        output_file.write_text(payload, encoding="utf-8")
        print(f"\nReport written to {output_path}", file=sys.stderr)
    else:
        sys.stdout.write(payload)


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    level = logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.list_rules:
        print(list_rules())
        return 0

    paths = args.paths or list(DEFAULT_PATHS)
    missing = [path for path in paths if not Path(path).exists()]
    if missing:
        print(f"dockguard: no such file or directory: {', '.join(missing)}", file=sys.stderr)
        return 2

    try:
        config = load_config(args.config)
        suppressed = [rule_id for value in args.suppress for rule_id in value.split(",") if rule_id.strip()]
        config = config.with_suppressed(suppressed)
        report = audit(read_sources(paths), config)
    except ConfigError as exc:
        print(f"dockguard: {exc}", file=sys.stderr)
        return 2

    write_output(report, config, args.output_path, args.format)
    fail_on = Severity.parse(args.fail_on) if args.fail_on else config.fail_on_severity
    return report.exit_code(fail_on)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
