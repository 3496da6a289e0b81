"""
Tests for Rule Engine — dispatch, stamping, filtering and failure isolation.
"""

import pytest

from loopguard.config import settings
from loopguard.core.ast_parser import parse_php
from loopguard.core.rule_engine import (
    RULE_REGISTRY,
    RegisteredRule,
    RuleEngine,
    enabled_registry,
)
from loopguard.models.ast_models import CallableDecl
from loopguard.models.rule_models import Severity


def test_all_defects_detected(sample_php_code):
    module_ast = parse_php(sample_php_code, "Repository.php")
    result = RuleEngine().run({"Repository.php": module_ast})
    found = sorted((f.rule_id, f.line) for f in result.findings)
    assert found == [
        ("array.initialization.missing", 21),
        ("loop.multipleConditions", 29),
        ("loop.notLooping", 12),
        ("loop.parameterOverride", 30),
        ("methodCall.infiniteRecursion", 5),
    ]


def test_findings_are_stamped(sample_php_code):
    module_ast = parse_php(sample_php_code, "Repository.php")
    result = RuleEngine().run({"Repository.php": module_ast})
    recursion = result.by_rule_id("methodCall.infiniteRecursion")[0]
    assert recursion.file == "Repository.php"
    assert recursion.detector == "infinity_loop"
    assert recursion.severity == Severity.HIGH
    assert all(f.file == "Repository.php" for f in result.findings)


def test_clean_code_no_findings(clean_php_code):
    module_ast = parse_php(clean_php_code, "clean.php")
    result = RuleEngine().run({"clean.php": module_ast})
    assert result.findings == []


def test_all_rules_executed(sample_php_code):
    module_ast = parse_php(sample_php_code, "Repository.php")
    result = RuleEngine().run({"Repository.php": module_ast})
    assert sorted(result.rules_executed) == [
        "infinity_loop",
        "loop_not_looping",
        "missing_array_initialization",
        "suspicious_loop",
    ]
    assert result.total_files_scanned == 1
    assert result.scan_duration_ms >= 0


def test_parse_failure_produces_no_findings():
    module_ast = parse_php("<?php\nwhile ($x) {\n", "broken.php")
    result = RuleEngine().run({"broken.php": module_ast})
    assert result.findings == []
    assert result.total_files_scanned == 1


def test_failing_rule_is_isolated(sample_php_code):
    def explode(node, tree, oracle):
        raise RuntimeError("boom")

    rules = dict(RULE_REGISTRY)
    rules["explodes"] = RegisteredRule(
        rule_id="explodes", node_types=(CallableDecl,), check=explode, severity=Severity.LOW
    )
    module_ast = parse_php(sample_php_code, "Repository.php")
    result = RuleEngine(rules=rules).run({"Repository.php": module_ast})
    assert len(result.findings) == 5
    assert not any(f.detector == "explodes" for f in result.findings)


def test_run_single_rule(sample_php_code):
    module_ast = parse_php(sample_php_code, "Repository.php")
    findings = RuleEngine().run_single_rule("suspicious_loop", module_ast)
    assert {f.rule_id for f in findings} == {"loop.multipleConditions", "loop.parameterOverride"}
    assert all(f.detector == "suspicious_loop" for f in findings)


def test_run_single_rule_unknown(sample_php_code):
    module_ast = parse_php(sample_php_code, "Repository.php")
    with pytest.raises(ValueError, match="Unknown rule"):
        RuleEngine().run_single_rule("no_such_rule", module_ast)


def test_enabled_rules_filter(monkeypatch, sample_php_code):
    monkeypatch.setattr(settings, "enabled_rules", ["loop_not_looping", "bogus"])
    assert list(enabled_registry()) == ["loop_not_looping"]

    module_ast = parse_php(sample_php_code, "Repository.php")
    result = RuleEngine().run({"Repository.php": module_ast})
    assert result.rules_executed == ["loop_not_looping"]
    assert [f.rule_id for f in result.findings] == ["loop.notLooping"]


def test_findings_across_files(sample_php_code, clean_php_code):
    modules = {
        "a.php": parse_php(sample_php_code, "a.php"),
        "b.php": parse_php(clean_php_code, "b.php"),
    }
    result = RuleEngine().run(modules)
    assert {f.file for f in result.findings} == {"a.php"}
    assert result.total_files_scanned == 2
