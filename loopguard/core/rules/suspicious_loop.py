"""
Suspicious Loop Rule — Detects loop headers and loop variables that silently
override other variables.

Three independent checks per loop of a callable:
  1. A ``for`` header with comma-separated conditions, where PHP only uses
     the last one to decide whether to continue.
  2. A loop variable that reuses the name of a callable parameter.
  3. A loop variable that reuses a variable introduced by an enclosing loop.
"""

from __future__ import annotations

from loopguard.core.scope_oracle import ScopeOracle
from loopguard.models.ast_models import (
    Assign,
    CallableDecl,
    ForeachLoop,
    ForLoop,
    Ident,
    SyntaxNode,
    SyntaxTree,
    is_loop,
)
from loopguard.models.rule_models import Finding, Severity


RULE_ID = "suspicious_loop"
NODE_TYPES = (CallableDecl,)
SEVERITY = Severity.MEDIUM

MULTIPLE_CONDITIONS = "loop.multipleConditions"
PARAMETER_OVERRIDE = "loop.parameterOverride"
OUTER_VARIABLE_OVERRIDE = "loop.outerVariableOverride"


def check(node: SyntaxNode, tree: SyntaxTree, oracle: ScopeOracle) -> list[Finding]:
    """Run the header and shadowing checks on every loop of a callable."""
    if not isinstance(node, CallableDecl) or not node.body:
        return []

    loops = tree.find(node.body, is_loop)
    introduced = {loop.id: introduced_names(tree, loop) for loop in loops}
    findings: list[Finding] = []

    for loop in loops:
        if isinstance(loop, ForLoop) and len(loop.conditions) > 1:
            findings.append(
                Finding(
                    rule_id=MULTIPLE_CONDITIONS,
                    message="use && or || for multiple conditions; only the last is checked",
                    line=loop.line,
                )
            )

        names = introduced[loop.id]
        for name in names:
            if name in node.params:
                findings.append(
                    Finding(
                        rule_id=PARAMETER_OVERRIDE,
                        message=f"variable '{name}' is introduced as a parameter and overridden here",
                        line=loop.line,
                    )
                )

        for outer in loops:
            if outer.id == loop.id or not outer.span.strictly_contains(loop.span):
                continue
            for name in names:
                if name in introduced[outer.id]:
                    findings.append(
                        Finding(
                            rule_id=OUTER_VARIABLE_OVERRIDE,
                            message=(
                                f"variable '{name}' is introduced in an outer loop "
                                "and overridden here"
                            ),
                            line=loop.line,
                        )
                    )

    return findings


def introduced_names(tree: SyntaxTree, loop: SyntaxNode) -> list[str]:
    """Variables a loop header binds, in source order without duplicates."""
    names: list[str] = []
    if isinstance(loop, ForLoop):
        for expr_id in loop.init:
            expr = tree[expr_id]
            if isinstance(expr, Assign) and isinstance(tree[expr.target], Ident):
                names.append(tree[expr.target].name)
    elif isinstance(loop, ForeachLoop):
        for var_id in (loop.key_var, loop.value_var):
            if var_id is not None and isinstance(tree[var_id], Ident):
                names.append(tree[var_id].name)
    return list(dict.fromkeys(names))
