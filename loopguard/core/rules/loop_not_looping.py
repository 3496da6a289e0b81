"""
Loop Not Looping Rule — Detects loops whose body can run at most once.

Fires on an empty body, or on a body made of a single ``break``, ``return``
or ``throw``. A ``foreach`` over a generator, iterator or traversable is
exempt: pulling just the first value out of such a source is a common idiom.

The check is intentionally shallow. A lone ``continue`` or a body that exits
only on some path never fires.
"""

from __future__ import annotations

from loopguard.core.scope_oracle import ScopeOracle
from loopguard.models.ast_models import (
    LOOP_TYPES,
    Break,
    ForeachLoop,
    Return,
    SyntaxNode,
    SyntaxTree,
    Throw,
    is_loop,
)
from loopguard.models.rule_models import Finding, Severity


RULE_ID = "loop_not_looping"
IDENTIFIER = "loop.notLooping"
MESSAGE = "this loop does not loop"
NODE_TYPES = LOOP_TYPES
SEVERITY = Severity.MEDIUM

_EXIT_TYPES = (Break, Return, Throw)


def check(node: SyntaxNode, tree: SyntaxTree, oracle: ScopeOracle) -> list[Finding]:
    """Flag a loop that cannot execute its body more than once."""
    if not is_loop(node):
        return []

    if isinstance(node, ForeachLoop) and node.subject is not None:
        subject_type = oracle.resolve_type(node.subject)
        if oracle.is_iterable_source(subject_type):
            return []

    body = node.body
    if len(body) > 1:
        return []
    if len(body) == 1 and not isinstance(tree[body[0]], _EXIT_TYPES):
        return []

    return [Finding(rule_id=IDENTIFIER, message=MESSAGE, line=node.line)]
