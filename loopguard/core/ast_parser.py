"""
AST Parser — Converts tree-sitter PHP trees into the LoopGuard node arena.

Only the constructs the loop analyzers reason about get a dedicated node
variant (loops, exits, calls, appends, assignments, variables, declarations);
everything else becomes a generic ``Other`` node that keeps its children so
traversals still reach nested loops and closures.
"""

from __future__ import annotations

import logging
from typing import Callable

from tree_sitter import Node

from loopguard.core.parser import PhpParser
from loopguard.models.ast_models import (
    ArrayAppend,
    ArrayLiteral,
    Assign,
    Block,
    Break,
    Call,
    CallableDecl,
    ClassDecl,
    Continue,
    DoWhileLoop,
    ExpressionStatement,
    ForeachLoop,
    ForLoop,
    Ident,
    IndexAccess,
    ModuleAST,
    New,
    Other,
    Program,
    Return,
    ScopeName,
    Span,
    SyntaxTree,
    Throw,
    WhileLoop,
    Yield,
)

logger = logging.getLogger("loopguard.parser")

PHP_EXTENSIONS = (".php", ".phtml", ".inc", ".php5", ".php7", ".php8")

# Nodes that carry no analyzable content
_SKIPPED_TYPES = {"comment", "php_tag", "text", "text_interpolation", "empty_statement", "?>"}

_NAME_TYPES = {"name", "qualified_name", "relative_scope"}

_CLASS_KINDS = {
    "class_declaration": "class",
    "interface_declaration": "interface",
    "trait_declaration": "trait",
    "enum_declaration": "enum",
}

_CLOSURE_TYPES = {"anonymous_function", "anonymous_function_creation_expression"}

_PARAMETER_TYPES = {"simple_parameter", "variadic_parameter", "property_promotion_parameter"}


def _short_name(text: str) -> str:
    """Strip namespace qualification: '\\Foo\\Bar' -> 'Bar'."""
    return text.strip().lstrip("\\").rsplit("\\", 1)[-1]


class _TreeBuilder:
    """Walks a tree-sitter PHP tree and appends arena nodes bottom-up."""

    def __init__(self, source: bytes) -> None:
        self.source = source
        self.tree = SyntaxTree()
        self._class_stack: list[str] = []
        self._handlers: dict[str, Callable[[Node], int]] = {
            "compound_statement": self._block,
            "expression_statement": self._expression_statement,
            "throw_statement": self._throw,
            "throw_expression": self._throw,
            "return_statement": self._return,
            "break_statement": self._break,
            "continue_statement": self._continue,
            "for_statement": self._for,
            "foreach_statement": self._foreach,
            "while_statement": self._while,
            "do_statement": self._do_while,
            "function_definition": self._function,
            "method_declaration": self._method,
            "variable_name": self._variable,
            "subscript_expression": self._subscript,
            "assignment_expression": self._assign,
            "reference_assignment_expression": self._assign,
            "function_call_expression": self._function_call,
            "member_call_expression": self._member_call,
            "nullsafe_member_call_expression": self._member_call,
            "scoped_call_expression": self._scoped_call,
            "object_creation_expression": self._new,
            "array_creation_expression": self._array_literal,
            "yield_expression": self._yield,
            "parenthesized_expression": self._parenthesized,
        }
        for ts_type in _CLASS_KINDS:
            self._handlers[ts_type] = self._class
        for ts_type in _CLOSURE_TYPES:
            self._handlers[ts_type] = self._closure

    # ── Helpers ──

    def _text(self, node: Node) -> str:
        return self.source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    def _span(self, node: Node) -> Span:
        return Span(start_line=node.start_point[0] + 1, end_line=node.end_point[0] + 1)

    def _named(self, node: Node) -> list[Node]:
        return [c for c in node.named_children if c.type not in _SKIPPED_TYPES]

    def _first_named(self, node: Node) -> Node | None:
        named = self._named(node)
        return named[0] if named else None

    def _convert_optional(self, node: Node | None) -> int | None:
        return None if node is None else self.convert(node)

    def _statements(self, nodes: list[Node]) -> list[int]:
        return [self.convert(n) for n in nodes if n.is_named and n.type not in _SKIPPED_TYPES]

    def _loop_body(self, nodes: list[Node]) -> list[int]:
        """Statements of a loop body given the loop's children after its header.

        Handles ``{ ... }``, single-statement, colon (``endfor``) and bare
        ``;`` forms. A body holding only comments gets one placeholder
        ``Other(label="comment")`` statement so it does not count as empty.
        """
        named: list[Node] = []
        for n in nodes:
            if n.type == "colon_block":
                named.extend(self._named(n))
            elif n.is_named and n.type not in _SKIPPED_TYPES:
                named.append(n)
        colon_form = any(
            n.type == "colon_block" or (not n.is_named and n.type == ":") for n in nodes
        )
        if not colon_form and len(named) == 1 and named[0].type == "compound_statement":
            body = self._statements(named[0].named_children)
        else:
            body = self._statements(named)
        if not body:
            comment = self._body_comment(nodes)
            if comment is not None:
                body = [self._add(Other(span=self._span(comment), label="comment"))]
        return body

    def _body_comment(self, nodes: list[Node]) -> Node | None:
        for n in nodes:
            if n.type == "comment":
                return n
            if n.type in ("compound_statement", "colon_block"):
                found = next((c for c in n.named_children if c.type == "comment"), None)
                if found is not None:
                    return found
        return None

    def _flatten_sequence(self, nodes: list[Node]) -> list[Node]:
        """Split comma-separated ``sequence_expression`` chains into expressions."""
        flat: list[Node] = []
        for node in nodes:
            if node.type == "sequence_expression":
                flat.extend(self._flatten_sequence(self._named(node)))
            else:
                flat.append(node)
        return flat

    def _add(self, node) -> int:
        return self.tree.add(node)

    # ── Dispatch ──

    def convert(self, node: Node) -> int:
        handler = self._handlers.get(node.type, self._other)
        return handler(node)

    def build(self, root: Node) -> SyntaxTree:
        statements = self._statements(root.named_children)
        self.tree.root_id = self._add(
            Program(span=self._span(root), statements=statements, children=statements)
        )
        self.tree.link_parents()
        return self.tree

    def _other(self, node: Node) -> int:
        """Build a generic node and its generic descendants from an explicit stack.

        Long operator chains (``$a . $b . $c ...``) nest one generic node per
        operand, so these are converted without recursion. Children with a
        dedicated handler still go through ``convert``; ids stay in source
        post-order.
        """
        # frames: (tree-sitter node, its named children, converted child ids)
        stack: list[tuple[Node, list[Node], list[int]]] = [(node, self._named(node), [])]
        while True:
            current, named, children = stack[-1]
            if len(children) < len(named):
                child = named[len(children)]
                if child.type in self._handlers:
                    children.append(self.convert(child))
                else:
                    stack.append((child, self._named(child), []))
                continue
            stack.pop()
            node_id = self._add(Other(span=self._span(current), label=current.type, children=children))
            if not stack:
                return node_id
            stack[-1][2].append(node_id)

    # ── Statements ──

    def _block(self, node: Node) -> int:
        statements = self._statements(node.named_children)
        return self._add(Block(span=self._span(node), statements=statements, children=statements))

    def _expression_statement(self, node: Node) -> int:
        inner = self._first_named(node)
        if inner is None:
            return self._other(node)
        if inner.type == "throw_expression":
            return self._throw(inner, span_node=node)
        expr = self.convert(inner)
        return self._add(
            ExpressionStatement(span=self._span(node), expr=expr, children=[expr])
        )

    def _throw(self, node: Node, span_node: Node | None = None) -> int:
        expr = self._convert_optional(self._first_named(node))
        children = [] if expr is None else [expr]
        return self._add(Throw(span=self._span(span_node or node), expr=expr, children=children))

    def _return(self, node: Node) -> int:
        expr = self._convert_optional(self._first_named(node))
        children = [] if expr is None else [expr]
        return self._add(Return(span=self._span(node), expr=expr, children=children))

    def _exit_level(self, node: Node) -> int:
        operand = self._first_named(node)
        if operand is not None and operand.type == "integer":
            try:
                return int(self._text(operand))
            except ValueError:
                return 1
        return 1

    def _break(self, node: Node) -> int:
        return self._add(Break(span=self._span(node), level=self._exit_level(node)))

    def _continue(self, node: Node) -> int:
        return self._add(Continue(span=self._span(node), level=self._exit_level(node)))

    # ── Loops ──

    def _for(self, node: Node) -> int:
        sections: list[list[Node]] = [[], [], []]
        section = 0
        in_header = False
        body_start = len(node.children)
        for index, child in enumerate(node.children):
            if not in_header:
                if child.type == "(":
                    in_header = True
                continue
            if child.type == ";":
                section = min(section + 1, 2)
            elif child.type == ")":
                body_start = index + 1
                break
            elif child.is_named and child.type not in _SKIPPED_TYPES:
                sections[section].append(child)

        init = [self.convert(n) for n in self._flatten_sequence(sections[0])]
        conditions = [self.convert(n) for n in self._flatten_sequence(sections[1])]
        increment = [self.convert(n) for n in self._flatten_sequence(sections[2])]
        body = self._loop_body(node.children[body_start:])
        return self._add(
            ForLoop(
                span=self._span(node),
                init=init,
                conditions=conditions,
                increment=increment,
                body=body,
                children=init + conditions + increment + body,
            )
        )

    def _foreach(self, node: Node) -> int:
        subject_node: Node | None = None
        binding_node: Node | None = None
        state = "before"
        body_start = len(node.children)
        for index, child in enumerate(node.children):
            if state == "before":
                if child.type == "(":
                    state = "subject"
            elif state == "subject":
                if not child.is_named and child.type.lower() == "as":
                    state = "binding"
                elif child.is_named and child.type not in _SKIPPED_TYPES and subject_node is None:
                    subject_node = child
            elif state == "binding":
                if child.type == ")":
                    body_start = index + 1
                    break
                if child.is_named and child.type not in _SKIPPED_TYPES and binding_node is None:
                    binding_node = child

        subject = self._convert_optional(subject_node)
        key_var: int | None = None
        value_var: int | None = None
        by_ref = False
        if binding_node is not None:
            if binding_node.type in ("pair", "foreach_pair"):
                parts = self._named(binding_node)
                if parts:
                    key_var = self.convert(parts[0])
                if len(parts) > 1:
                    value_var, by_ref = self._foreach_value(parts[-1])
            else:
                value_var, by_ref = self._foreach_value(binding_node)

        body = self._loop_body(node.children[body_start:])
        header = [i for i in (subject, key_var, value_var) if i is not None]
        return self._add(
            ForeachLoop(
                span=self._span(node),
                subject=subject,
                key_var=key_var,
                value_var=value_var,
                by_ref=by_ref,
                body=body,
                children=header + body,
            )
        )

    def _foreach_value(self, node: Node) -> tuple[int, bool]:
        if node.type == "by_ref":
            inner = self._first_named(node)
            if inner is not None:
                return self.convert(inner), True
        return self.convert(node), False

    def _while(self, node: Node) -> int:
        cond: int | None = None
        body_start = len(node.children)
        for index, child in enumerate(node.children):
            if child.type == "parenthesized_expression":
                cond = self.convert(child)
                body_start = index + 1
                break
        body = self._loop_body(node.children[body_start:])
        children = ([] if cond is None else [cond]) + body
        return self._add(WhileLoop(span=self._span(node), cond=cond, body=body, children=children))

    def _do_while(self, node: Node) -> int:
        body_nodes: list[Node] = []
        cond_node: Node | None = None
        seen_while = False
        for child in node.children[1:]:
            if not child.is_named and child.type.lower() == "while":
                seen_while = True
            elif not seen_while:
                body_nodes.append(child)
            elif child.type == "parenthesized_expression" and cond_node is None:
                cond_node = child
        body = self._loop_body(body_nodes)
        cond = self._convert_optional(cond_node)
        children = body + ([] if cond is None else [cond])
        return self._add(DoWhileLoop(span=self._span(node), body=body, cond=cond, children=children))

    # ── Declarations ──

    def _parameters(self, node: Node) -> tuple[list[str], dict[str, str]]:
        params: list[str] = []
        param_types: dict[str, str] = {}
        formal = node.child_by_field_name("parameters")
        if formal is None:
            return params, param_types
        for param in self._named(formal):
            if param.type not in _PARAMETER_TYPES:
                continue
            name_node = param.child_by_field_name("name")
            if name_node is not None and name_node.type == "by_ref":
                name_node = self._first_named(name_node)
            if name_node is None or name_node.type != "variable_name":
                name_node = next(
                    (c for c in param.named_children if c.type == "variable_name"), None
                )
            if name_node is None:
                continue
            name = self._text(name_node).lstrip("$")
            params.append(name)
            type_node = param.child_by_field_name("type")
            if type_node is not None:
                param_types[name] = self._text(type_node)
        return params, param_types

    def _return_type(self, node: Node) -> str | None:
        type_node = node.child_by_field_name("return_type")
        return None if type_node is None else self._text(type_node).lstrip(":").strip()

    def _callable(
        self,
        node: Node,
        name: str,
        callable_kind: str,
        is_abstract: bool = False,
        captured_vars: list[str] | None = None,
        class_name: str | None = None,
    ) -> int:
        params, param_types = self._parameters(node)
        body_node = node.child_by_field_name("body")
        body: list[int] | None = None
        if body_node is not None and body_node.type == "compound_statement":
            body = self._statements(body_node.named_children)
        is_generator = bool(body) and bool(
            self.tree.find(body, lambda n: isinstance(n, Yield))
        )
        return self._add(
            CallableDecl(
                span=self._span(node),
                name=name,
                callable_kind=callable_kind,
                params=params,
                param_types=param_types,
                is_abstract=is_abstract,
                body=body,
                captured_vars=captured_vars or [],
                return_type=self._return_type(node),
                class_name=class_name,
                is_generator=is_generator,
                children=list(body or []),
            )
        )

    def _function(self, node: Node) -> int:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node) if name_node is not None else ""
        return self._callable(node, name, "function")

    def _method(self, node: Node) -> int:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node) if name_node is not None else ""
        is_abstract = any(c.type == "abstract_modifier" for c in node.children)
        class_name = self._class_stack[-1] if self._class_stack else None
        return self._callable(node, name, "method", is_abstract=is_abstract, class_name=class_name)

    def _closure(self, node: Node) -> int:
        captured: list[str] = []
        for child in node.named_children:
            if child.type != "anonymous_function_use_clause":
                continue
            for var in self._named(child):
                if var.type == "by_ref":
                    var = self._first_named(var)
                if var is not None and var.type == "variable_name":
                    captured.append(self._text(var).lstrip("$"))
        return self._callable(node, "{closure}", "closure", captured_vars=captured)

    def _class(self, node: Node) -> int:
        name_node = node.child_by_field_name("name")
        name = self._text(name_node) if name_node is not None else ""
        parents: list[str] = []
        for child in node.named_children:
            if child.type in ("base_clause", "class_interface_clause"):
                parents.extend(
                    _short_name(self._text(c)) for c in child.named_children if c.type in _NAME_TYPES
                )
        members: list[int] = []
        body_node = node.child_by_field_name("body")
        self._class_stack.append(name)
        try:
            if body_node is not None:
                members = [self.convert(c) for c in self._named(body_node)]
        finally:
            self._class_stack.pop()
        return self._add(
            ClassDecl(
                span=self._span(node),
                name=name,
                class_kind=_CLASS_KINDS[node.type],
                parents=parents,
                members=members,
                children=members,
            )
        )

    # ── Expressions ──

    def _variable(self, node: Node) -> int:
        return self._add(Ident(span=self._span(node), name=self._text(node).lstrip("$")))

    def _parenthesized(self, node: Node) -> int:
        inner = self._first_named(node)
        if inner is None:
            return self._other(node)
        return self.convert(inner)

    def _subscript(self, node: Node) -> int:
        named = self._named(node)
        if not named:
            return self._other(node)
        container = self.convert(named[0])
        if len(named) == 1:
            return self._add(
                ArrayAppend(span=self._span(node), container=container, children=[container])
            )
        index = self.convert(named[1])
        return self._add(
            IndexAccess(
                span=self._span(node),
                container=container,
                index=index,
                children=[container, index],
            )
        )

    def _assign(self, node: Node) -> int:
        named = self._named(node)
        left = node.child_by_field_name("left")
        right = node.child_by_field_name("right")
        if left is None and named:
            left = named[0]
        if right is None and len(named) > 1:
            right = named[-1]
        if left is None or right is None:
            return self._other(node)
        target = self.convert(left)
        value = self.convert(right)
        return self._add(
            Assign(
                span=self._span(node),
                target=target,
                value=value,
                by_ref=node.type == "reference_assignment_expression",
                children=[target, value],
            )
        )

    def _arguments(self, node: Node) -> list[int]:
        args_node = node.child_by_field_name("arguments")
        if args_node is None:
            args_node = next((c for c in node.named_children if c.type == "arguments"), None)
        if args_node is None:
            return []
        args: list[int] = []
        for arg in self._named(args_node):
            if arg.type == "argument":
                parts = self._named(arg)
                if parts:
                    args.append(self.convert(parts[-1]))
            else:
                args.append(self.convert(arg))
        return args

    def _member_name(self, node: Node) -> str | None:
        name_node = node.child_by_field_name("name")
        if name_node is not None and name_node.type == "name":
            return self._text(name_node)
        return None

    def _function_call(self, node: Node) -> int:
        callee = node.child_by_field_name("function")
        args = self._arguments(node)
        name: str | None = None
        children: list[int] = []
        if callee is not None and callee.type in ("name", "qualified_name"):
            name = _short_name(self._text(callee))
        elif callee is not None:
            children.append(self.convert(callee))
        return self._add(
            Call(span=self._span(node), receiver=None, name=name, args=args, children=children + args)
        )

    def _member_call(self, node: Node) -> int:
        obj = node.child_by_field_name("object")
        receiver = self._convert_optional(obj)
        args = self._arguments(node)
        children = ([] if receiver is None else [receiver]) + args
        return self._add(
            Call(
                span=self._span(node),
                receiver=receiver,
                name=self._member_name(node),
                args=args,
                children=children,
            )
        )

    def _scoped_call(self, node: Node) -> int:
        scope = node.child_by_field_name("scope")
        receiver: int | None = None
        if scope is not None and scope.type in _NAME_TYPES:
            receiver = self._add(ScopeName(span=self._span(scope), name=_short_name(self._text(scope))))
        elif scope is not None:
            receiver = self.convert(scope)
        args = self._arguments(node)
        children = ([] if receiver is None else [receiver]) + args
        return self._add(
            Call(
                span=self._span(node),
                receiver=receiver,
                name=self._member_name(node),
                args=args,
                children=children,
            )
        )

    def _new(self, node: Node) -> int:
        class_name: str | None = None
        children: list[int] = []
        for child in self._named(node):
            if child.type in ("name", "qualified_name") and class_name is None:
                class_name = _short_name(self._text(child))
            elif child.type == "arguments":
                children.extend(self._arguments(node))
            else:
                children.append(self.convert(child))
        return self._add(New(span=self._span(node), class_name=class_name, children=children))

    def _array_literal(self, node: Node) -> int:
        children = [self.convert(c) for c in self._named(node)]
        return self._add(ArrayLiteral(span=self._span(node), children=children))

    def _yield(self, node: Node) -> int:
        children = [self.convert(c) for c in self._named(node)]
        return self._add(Yield(span=self._span(node), children=children))


_parser = PhpParser()


def parse_php(source: str, file_path: str = "<unknown>") -> ModuleAST:
    """
    Parse PHP source code into a ModuleAST holding the node arena.

    Args:
        source: PHP source code string.
        file_path: Path to the source file (for reference in output).

    Returns:
        ModuleAST; on a syntax error, or nesting too deep to convert, the
        tree is empty and parse_errors is set.
    """
    total_lines = source.count("\n") + 1
    try:
        ts_tree, source_bytes = _parser.parse(source)
    except ValueError as e:
        logger.debug(f"Parse failed for {file_path}: {e}")
        return ModuleAST(file_path=file_path, total_lines=total_lines, parse_errors=[str(e)])

    try:
        tree = _TreeBuilder(source_bytes).build(ts_tree.root_node)
    except RecursionError:
        # Deep call or member chains still convert recursively
        logger.warning(f"Nesting too deep in {file_path}, file not analyzed")
        return ModuleAST(
            file_path=file_path,
            total_lines=total_lines,
            parse_errors=["Expression nesting too deep to analyze"],
        )
    return ModuleAST(file_path=file_path, tree=tree, total_lines=total_lines)


def parse_file(source: str, file_path: str) -> ModuleAST:
    """
    Parse a source file based on its extension.

    Only PHP files are analyzed; other files produce an empty module with a
    parse warning so no detector runs on them.
    """
    if not file_path.lower().endswith(PHP_EXTENSIONS):
        return ModuleAST(
            file_path=file_path,
            language="unknown",
            total_lines=source.count("\n") + 1,
            parse_errors=[f"Unsupported file type for {file_path}: only PHP is analyzed"],
        )
    return parse_php(source, file_path)
