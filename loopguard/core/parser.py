"""
LoopGuard — PHP source parser using tree-sitter.
"""

from __future__ import annotations

import tree_sitter_php as tsphp
from tree_sitter import Language, Node, Parser


PHP_LANGUAGE = Language(tsphp.language_php())
# Grammar variant for bare PHP without an opening <?php tag
PHP_ONLY_LANGUAGE = Language(tsphp.language_php_only())


def _first_error(node: Node) -> Node | None:
    """Return the first ERROR or MISSING node in document order."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "ERROR" or current.is_missing:
            return current
        stack.extend(
            c for c in reversed(current.children) if c.has_error or c.is_missing
        )
    return None


class PhpParser:
    """Thin wrapper around tree-sitter for PHP source code."""

    def __init__(self) -> None:
        self._parser = Parser(PHP_LANGUAGE)
        self._php_only_parser = Parser(PHP_ONLY_LANGUAGE)

    def parse(self, code: str) -> tuple:
        """Parse PHP source and return (tree, source_bytes).

        Source without an opening tag is parsed as bare PHP.
        Raises ValueError if the code cannot be parsed.
        """
        source_bytes = code.encode("utf-8")
        if code.lstrip().startswith("<?") or "<?php" in code:
            tree = self._parser.parse(source_bytes)
        else:
            tree = self._php_only_parser.parse(source_bytes)
        if tree.root_node.has_error:
            error = _first_error(tree.root_node)
            line = error.start_point[0] + 1 if error is not None else 0
            raise ValueError(f"Failed to parse PHP source code at line {line}")
        return tree, source_bytes
