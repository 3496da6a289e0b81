"""
Loop Depth Tracker — Depth-first walk that tracks the loop nesting level.

Each stack entry carries its own depth, so there is no shared counter to
restore on the way out and walks over different callables are independent.
Nesting depth is not bounded by the interpreter recursion limit.
"""

from __future__ import annotations

from typing import Iterator

from loopguard.models.ast_models import CallableDecl, SyntaxTree, is_loop


def walk_with_depth(
    tree: SyntaxTree, node_ids: list[int], depth: int = 0
) -> Iterator[tuple[int, int]]:
    """
    Yield ``(node_id, loop_depth)`` pairs in pre-order.

    ``loop_depth`` is the number of loop nodes between the start of the walk
    and the node, excluding the node itself. Nested callables are yielded but
    not entered: their bodies start a fresh depth of their own.
    """
    stack = [(node_id, depth) for node_id in reversed(node_ids)]
    while stack:
        node_id, node_depth = stack.pop()
        node = tree[node_id]
        yield node_id, node_depth
        if isinstance(node, CallableDecl):
            continue
        child_depth = node_depth + 1 if is_loop(node) else node_depth
        stack.extend((child_id, child_depth) for child_id in reversed(node.children))
