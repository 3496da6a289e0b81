"""
Rule Engine — Drives the loop detectors over parsed PHP modules.

Walks every node of every module once, nested callables included, and hands
each node to the detectors registered for its type. Detectors are pure
functions of (node, tree, oracle); the engine owns file stamping, timing and
failure isolation.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from loopguard.config import settings
from loopguard.core.scope_oracle import ScopeOracle
from loopguard.models.ast_models import ModuleAST, SyntaxNode, SyntaxTree
from loopguard.models.rule_models import Finding, RuleResult, Severity

from loopguard.core.rules import (
    infinity_loop,
    loop_not_looping,
    missing_array_init,
    suspicious_loop,
)

logger = logging.getLogger("loopguard.engine")

# Type for a detector check function
RuleCheckFn = Callable[[SyntaxNode, SyntaxTree, ScopeOracle], list[Finding]]


@dataclass(frozen=True)
class RegisteredRule:
    """A detector plus the node types it is dispatched on."""

    rule_id: str
    node_types: tuple[type, ...]
    check: RuleCheckFn
    severity: Severity


def _register(module) -> RegisteredRule:
    return RegisteredRule(
        rule_id=module.RULE_ID,
        node_types=tuple(module.NODE_TYPES),
        check=module.check,
        severity=module.SEVERITY,
    )


# Registry of all loop detectors
RULE_REGISTRY: dict[str, RegisteredRule] = {
    rule.rule_id: rule
    for rule in (
        _register(infinity_loop),
        _register(loop_not_looping),
        _register(missing_array_init),
        _register(suspicious_loop),
    )
}


def enabled_registry() -> dict[str, RegisteredRule]:
    """The registry narrowed to ``settings.enabled_rules`` when configured."""
    if not settings.enabled_rules:
        return dict(RULE_REGISTRY)
    unknown = [r for r in settings.enabled_rules if r not in RULE_REGISTRY]
    if unknown:
        logger.warning(f"Ignoring unknown rules in enabled_rules: {unknown}")
    return {r: RULE_REGISTRY[r] for r in settings.enabled_rules if r in RULE_REGISTRY}


class RuleEngine:
    """
    Deterministic loop-analysis engine.

    Rules are pure functions of the tree and its scope oracle.
    A rule that raises is logged and contributes nothing for that node.
    """

    def __init__(self, rules: dict[str, RegisteredRule] | None = None) -> None:
        self.rules = rules if rules is not None else enabled_registry()

    def run(self, modules: dict[str, ModuleAST]) -> RuleResult:
        """
        Run all rules against all modules.

        Args:
            modules: Dict mapping file_path -> ModuleAST.

        Returns:
            RuleResult with all findings, ordered by file then traversal.
        """
        start = time.monotonic()
        findings: list[Finding] = []

        for file_path, module_ast in modules.items():
            findings.extend(self._run_module(file_path, module_ast, self.rules))

        elapsed = (time.monotonic() - start) * 1000

        return RuleResult(
            findings=findings,
            rules_executed=list(self.rules),
            total_files_scanned=len(modules),
            scan_duration_ms=round(elapsed, 2),
        )

    def run_single_rule(self, rule_id: str, module_ast: ModuleAST) -> list[Finding]:
        """Run a single rule against a single module."""
        if rule_id not in RULE_REGISTRY:
            raise ValueError(f"Unknown rule: {rule_id}")
        rules = {rule_id: RULE_REGISTRY[rule_id]}
        return self._run_module(module_ast.file_path, module_ast, rules)

    def _run_module(
        self,
        file_path: str,
        module_ast: ModuleAST,
        rules: dict[str, RegisteredRule],
    ) -> list[Finding]:
        tree = module_ast.tree
        if tree.root is None:
            return []

        oracle = ScopeOracle(tree)
        findings: list[Finding] = []
        for node in tree.walk([tree.root.id], enter_callables=True):
            for rule in rules.values():
                if not isinstance(node, rule.node_types):
                    continue
                try:
                    produced = rule.check(node, tree, oracle)
                except Exception:
                    # Rule failures should not crash the engine
                    logger.exception(
                        f"Rule '{rule.rule_id}' failed on {file_path}:{node.line}"
                    )
                    continue
                for finding in produced:
                    findings.append(
                        finding.model_copy(
                            update={
                                "file": file_path,
                                "detector": rule.rule_id,
                                "severity": rule.severity,
                            }
                        )
                    )
        return findings
