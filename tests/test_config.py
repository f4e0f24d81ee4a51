import pytest

from dockguard.config import AuditConfig, config_from_mapping, load_config
from dockguard.errors import ConfigError
from dockguard.severity import Severity


def test_load_config_reads_yaml(tmp_path):
    config_path = tmp_path / ".dockguard.yaml"
    config_path.write_text(
        """
suppress_rules:
  - opt-010
fail_on_severity: medium
max_recommendations: 3
workers: 2
patterns:
  sensitive_ports: ["22", "8443"]
        """.strip(),
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.suppress_rules == frozenset({"OPT-010"})
    assert config.fail_on_severity is Severity.MEDIUM
    assert config.max_recommendations == 3
    assert config.workers == 2
    assert config.patterns.sensitive_ports == ("22", "8443")
    assert config.patterns.secret_name_keywords == AuditConfig().patterns.secret_name_keywords


def test_missing_default_config_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    assert load_config() == AuditConfig()


def test_missing_explicit_config_is_an_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"unknown": 1},
        {"suppress_rules": "SEC-001"},
        {"fail_on_severity": "LOW"},
        {"workers": 0},
        {"patterns": {"no_such_table": ["x"]}},
        {"patterns": {"sensitive_ports": "22"}},
    ],
)
def test_invalid_config_values(data):
    with pytest.raises(ConfigError):
        config_from_mapping(data)


def test_with_suppressed_merges_rule_ids():
    config = AuditConfig(suppress_rules=frozenset({"SEC-001"})).with_suppressed(["opt-001 "])

    assert config.suppress_rules == frozenset({"SEC-001", "OPT-001"})
