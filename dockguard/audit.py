"""Audit pipeline: parse, evaluate, aggregate."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from .aggregate import aggregate
from .config import AuditConfig
from .engine import RuleEngine
from .errors import ConfigError, ParseError
from .parsers import Document, parse_document
from .result import AggregatedReport
from .rules import RuleRegistry, ScanContext, default_registry

logger = logging.getLogger(__name__)

Source = Tuple[str, str]


def audit(
    sources: Iterable[Source],
    config: Optional[AuditConfig] = None,
    registry: Optional[RuleRegistry] = None,
) -> AggregatedReport:
    """Audit already-read ``(path, content)`` pairs.

    A file that fails to parse is reported in ``parse_errors``; the remaining
    files are still audited.
    """

    config = AuditConfig() if config is None else config
    registry = default_registry() if registry is None else registry
    unknown = sorted(rule_id for rule_id in config.suppress_rules if rule_id not in registry)
    if unknown:
        raise ConfigError(f"Cannot suppress unknown rule(s): {', '.join(unknown)}")

    documents: List[Document] = []
    parse_errors: List[ParseError] = []
    for path, text in sources:
        try:
            documents.append(parse_document(path, text))
        except ParseError as exc:
            logger.warning("Skipping %s: %s", path, exc.reason)
            parse_errors.append(exc)

    engine = RuleEngine(
        registry,
        context=ScanContext(patterns=config.patterns),
        suppress_rules=config.suppress_rules,
        workers=config.workers,
    )
    result = engine.run(documents)
    logger.info(
        "Audited %d document(s): %d finding(s), %d rule error(s)",
        len(documents),
        len(result.findings),
        len(result.errors),
    )
    return aggregate(result.findings, result.checks, parse_errors, result.errors)
