import pytest

from dockguard.errors import DuplicateRuleError
from dockguard.parsers import DocumentKind
from dockguard.rules import RuleRegistry, catalog, default_registry
from dockguard.severity import Severity


def test_catalog_holds_security_and_optimization_rules():
    registry = default_registry()
    ids = [rule.id for rule in registry.all()]

    assert len(ids) == 32
    assert len(set(ids)) == 32
    assert len([rule_id for rule_id in ids if "SEC-" in rule_id]) == 19
    assert len([rule_id for rule_id in ids if rule_id.startswith("OPT-")]) == 13


def test_rules_are_grouped_by_document_kind():
    registry = default_registry()

    dockerfile_rules = registry.by_document_kind(DocumentKind.DOCKERFILE)
    compose_rules = registry.by_document_kind(DocumentKind.COMPOSE)

    assert len(dockerfile_rules) == 23
    assert len(compose_rules) == 9
    assert all(rule.id.startswith("COMPOSE-SEC-") for rule in compose_rules)


def test_security_rules_carry_cwe_metadata():
    for rule in default_registry().all():
        assert rule.severity in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM)
        if rule.id.startswith("OPT-"):
            assert rule.cwe is None
        elif rule.id != "SEC-006":
            assert rule.cwe and rule.cwe.startswith("CWE-")


def test_duplicate_registration_is_rejected():
    rules = catalog()
    registry = RuleRegistry(rules)

    with pytest.raises(DuplicateRuleError) as excinfo:
        registry.register(rules[0])

    assert excinfo.value.rule_id == rules[0].id
