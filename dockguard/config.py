"""Audit configuration loaded from an optional YAML file."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional

import yaml

from .errors import ConfigError
from .rules.patterns import PatternTables, merge_patterns
from .severity import Severity
from .utils.fileio import read_yaml_file

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".dockguard.yaml"
KNOWN_KEYS = {"suppress_rules", "fail_on_severity", "max_recommendations", "workers", "patterns"}


@dataclass(frozen=True)
class AuditConfig:
    """Tunables for one audit run."""

    suppress_rules: FrozenSet[str] = frozenset()
    fail_on_severity: Severity = Severity.HIGH
    max_recommendations: int = 5
    workers: int = 4
    patterns: PatternTables = field(default_factory=PatternTables)

    def with_suppressed(self, rule_ids: Iterable[str]) -> "AuditConfig":
        return AuditConfig(
            suppress_rules=self.suppress_rules | {rule_id.strip().upper() for rule_id in rule_ids},
            fail_on_severity=self.fail_on_severity,
            max_recommendations=self.max_recommendations,
            workers=self.workers,
            patterns=self.patterns,
        )


def load_config(path: Optional[Path] = None) -> AuditConfig:
    """Load configuration from ``path`` (default ``.dockguard.yaml``).

    A missing default file yields the defaults; a missing explicit file or a
    malformed one raises :class:`ConfigError`.
    """

    explicit = path is not None
    config_path = Path(path) if explicit else Path(DEFAULT_CONFIG_FILENAME)
    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        return AuditConfig()
    try:
        data = read_yaml_file(config_path)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {config_path} is not valid YAML: {exc}") from exc
    logger.info("Loaded configuration from %s", config_path)
    return config_from_mapping(data or {}, source=str(config_path))


def config_from_mapping(data: Any, source: str = "<config>") -> AuditConfig:
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {source}")
    unknown = sorted(set(data) - KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"{source}: unknown config key(s): {', '.join(unknown)}")

    kwargs: Dict[str, Any] = {}
    suppress = data.get("suppress_rules") or []
    if isinstance(suppress, str) or not isinstance(suppress, list):
        raise ConfigError(f"{source}: suppress_rules must be a list of rule ids")
    kwargs["suppress_rules"] = frozenset(str(rule_id).strip().upper() for rule_id in suppress)

    if "fail_on_severity" in data:
        try:
            kwargs["fail_on_severity"] = Severity.parse(data["fail_on_severity"])
        except ValueError as exc:
            raise ConfigError(f"{source}: {exc}") from exc

    for key in ("max_recommendations", "workers"):
        if key in data:
            value = data[key]
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{source}: {key} must be a positive integer")
            kwargs[key] = value

    patterns = data.get("patterns") or {}
    if not isinstance(patterns, dict):
        raise ConfigError(f"{source}: patterns must be a mapping")
    try:
        kwargs["patterns"] = merge_patterns(PatternTables(), patterns)
    except KeyError as exc:
        raise ConfigError(f"{source}: unknown pattern table {exc.args[0]!r}") from exc
    except TypeError as exc:
        raise ConfigError(f"{source}: {exc}") from exc

    return AuditConfig(**kwargs)
