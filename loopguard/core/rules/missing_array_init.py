"""
Missing Array Initialization Rule — Detects appends to never-initialized arrays
inside nested loops.

    foreach ($rows as $row) {
        foreach ($row as $cell) {
            $cells[] = $cell;      // $cells was never set to []
        }
    }

Phase 1 collects candidates: every ``$x[]`` append reached at loop depth >= 2,
peeled down to its root variable. Phase 2 drops candidates the callable
plausibly initializes: parameters, closure captures, foreach subjects, and
variables assigned on an earlier line of the same scope.
"""

from __future__ import annotations

from dataclasses import dataclass

from loopguard.core.loop_depth import walk_with_depth
from loopguard.core.scope_oracle import ScopeOracle
from loopguard.models.ast_models import (
    ArrayAppend,
    CallableDecl,
    ForeachLoop,
    Ident,
    IndexAccess,
    SyntaxNode,
    SyntaxTree,
)
from loopguard.models.rule_models import Finding, Severity


RULE_ID = "missing_array_initialization"
IDENTIFIER = "array.initialization.missing"
NODE_TYPES = (CallableDecl,)
SEVERITY = Severity.MEDIUM

MIN_LOOP_DEPTH = 2


@dataclass(frozen=True)
class Candidate:
    """An append at depth >= 2 whose container roots in a plain variable."""

    append_node: int
    root_name: str
    line: int


def check(node: SyntaxNode, tree: SyntaxTree, oracle: ScopeOracle) -> list[Finding]:
    """Flag nested-loop appends to arrays never initialized in the callable."""
    if not isinstance(node, CallableDecl) or not node.body:
        return []

    candidates = collect_candidates(tree, node.body)
    if not candidates:
        return []

    foreach_subjects = _foreach_subject_names(tree, node.body)
    findings: list[Finding] = []
    for candidate in candidates:
        name = candidate.root_name
        if name in node.params:
            continue
        if node.is_closure and name in node.captured_vars:
            continue
        if name in foreach_subjects:
            continue
        if oracle.is_assigned_before(name, candidate.line, node.id):
            continue
        findings.append(
            Finding(
                rule_id=IDENTIFIER,
                message=f"array ${name} is not initialized before being used in a nested loop",
                line=candidate.line,
            )
        )
    return findings


def collect_candidates(tree: SyntaxTree, body: list[int]) -> list[Candidate]:
    candidates: list[Candidate] = []
    for node_id, depth in walk_with_depth(tree, body):
        node = tree[node_id]
        if depth < MIN_LOOP_DEPTH or not isinstance(node, ArrayAppend):
            continue
        root = _root_variable(tree, node.container)
        if root is None:
            continue
        candidates.append(Candidate(append_node=node_id, root_name=root, line=node.line))
    return candidates


def _root_variable(tree: SyntaxTree, node_id: int) -> str | None:
    """Peel ``$a[$k][]`` style layers down to ``a``; None for other roots."""
    node = tree[node_id]
    while isinstance(node, (IndexAccess, ArrayAppend)):
        node = tree[node.container]
    return node.name if isinstance(node, Ident) else None


def _foreach_subject_names(tree: SyntaxTree, body: list[int]) -> set[str]:
    names: set[str] = set()
    for loop in tree.find(body, lambda n: isinstance(n, ForeachLoop)):
        if loop.subject is None:
            continue
        subject = tree[loop.subject]
        if isinstance(subject, Ident):
            names.add(subject.name)
    return names
