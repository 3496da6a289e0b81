"""
Self-Recursion Rule — Detects callables whose only statement calls themselves.

    public function getItems() { return $this->getItems(); }

A single-statement body that immediately re-invokes the same callable on a
self-reference receiver never terminates. Calls through ``parent::`` or any
other receiver are a different target and are ignored. A call without a
receiver only recurses from a plain function: inside a method it resolves to
the global function of the same name.
"""

from __future__ import annotations

from loopguard.core.scope_oracle import ScopeOracle
from loopguard.models.ast_models import (
    Call,
    CallableDecl,
    ExpressionStatement,
    Return,
    SyntaxNode,
    SyntaxTree,
    is_self_reference,
)
from loopguard.models.rule_models import Finding, Severity


RULE_ID = "infinity_loop"
IDENTIFIER = "methodCall.infiniteRecursion"
MESSAGE = "causes infinity loop"
NODE_TYPES = (CallableDecl,)
SEVERITY = Severity.HIGH


def check(node: SyntaxNode, tree: SyntaxTree, oracle: ScopeOracle) -> list[Finding]:
    """Flag a callable whose sole statement recurses into itself."""
    if not isinstance(node, CallableDecl) or node.is_abstract or not node.body:
        return []
    if len(node.body) != 1:
        return []

    call = _sole_call(tree, tree[node.body[0]])
    if call is None or call.name is None:
        return []
    if call.name.lower() != node.name.lower():
        return []
    if call.receiver is None:
        # Inside a method a bare call resolves to a global function
        if node.callable_kind != "function":
            return []
    elif not is_self_reference(tree[call.receiver]):
        return []

    return [Finding(rule_id=IDENTIFIER, message=MESSAGE, line=node.line)]


def _sole_call(tree: SyntaxTree, statement: SyntaxNode) -> Call | None:
    if isinstance(statement, Return):
        expr_id = statement.expr
    elif isinstance(statement, ExpressionStatement):
        expr_id = statement.expr
    else:
        return None
    if expr_id is None:
        return None
    expr = tree[expr_id]
    return expr if isinstance(expr, Call) else None
