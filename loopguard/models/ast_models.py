"""
AST Data Models — Arena representation of parsed PHP code.

These models are the output of the AST parser and the input to the scope
oracle and the rule engine. Every node lives in ``SyntaxTree.nodes`` and is
addressed by its index; nodes reference each other only through ids, and
parent ids are filled in once by ``SyntaxTree.link_parents()``.
"""

from __future__ import annotations

from typing import Annotated, Callable, Iterator, Literal, Union

from pydantic import BaseModel, Field


class Span(BaseModel):
    """Source line span of a node (1-based, inclusive)."""

    start_line: int
    end_line: int

    def strictly_contains(self, other: Span) -> bool:
        return self.start_line < other.start_line and self.end_line > other.end_line


class _NodeBase(BaseModel):
    id: int = Field(default=-1, description="Index of the node inside its arena")
    span: Span
    children: list[int] = Field(
        default_factory=list, description="Direct child ids in source order"
    )
    parent: int | None = Field(default=None, description="Parent id, set by link_parents()")

    @property
    def line(self) -> int:
        return self.span.start_line


# ── Statements ──


class Program(_NodeBase):
    kind: Literal["program"] = "program"
    statements: list[int] = Field(default_factory=list)


class Block(_NodeBase):
    """A nested ``{ ... }`` statement group."""

    kind: Literal["block"] = "block"
    statements: list[int] = Field(default_factory=list)


class ForLoop(_NodeBase):
    kind: Literal["for"] = "for"
    init: list[int] = Field(default_factory=list)
    conditions: list[int] = Field(
        default_factory=list, description="Comma-separated condition expressions"
    )
    increment: list[int] = Field(default_factory=list)
    body: list[int] = Field(default_factory=list)


class ForeachLoop(_NodeBase):
    kind: Literal["foreach"] = "foreach"
    subject: int | None = None
    key_var: int | None = None
    value_var: int | None = None
    by_ref: bool = False
    body: list[int] = Field(default_factory=list)


class WhileLoop(_NodeBase):
    kind: Literal["while"] = "while"
    cond: int | None = None
    body: list[int] = Field(default_factory=list)


class DoWhileLoop(_NodeBase):
    kind: Literal["do_while"] = "do_while"
    body: list[int] = Field(default_factory=list)
    cond: int | None = None


class Break(_NodeBase):
    kind: Literal["break"] = "break"
    level: int = 1


class Continue(_NodeBase):
    kind: Literal["continue"] = "continue"
    level: int = 1


class Return(_NodeBase):
    kind: Literal["return"] = "return"
    expr: int | None = None


class Throw(_NodeBase):
    kind: Literal["throw"] = "throw"
    expr: int | None = None


class ExpressionStatement(_NodeBase):
    kind: Literal["expression_statement"] = "expression_statement"
    expr: int


# ── Expressions ──


class Call(_NodeBase):
    """Function, method or static call. ``receiver`` is None for plain calls."""

    kind: Literal["call"] = "call"
    receiver: int | None = None
    name: str | None = Field(default=None, description="None for dynamic callee names")
    args: list[int] = Field(default_factory=list)


class ArrayAppend(_NodeBase):
    """Append without explicit index: ``$container[]``."""

    kind: Literal["array_append"] = "array_append"
    container: int


class IndexAccess(_NodeBase):
    kind: Literal["index_access"] = "index_access"
    container: int
    index: int


class Assign(_NodeBase):
    kind: Literal["assign"] = "assign"
    target: int
    value: int
    by_ref: bool = False


class Ident(_NodeBase):
    """A PHP variable; ``name`` is stored without the leading ``$``."""

    kind: Literal["ident"] = "ident"
    name: str


class ScopeName(_NodeBase):
    """Class reference used as a static receiver: self, static, parent, Foo."""

    kind: Literal["scope_name"] = "scope_name"
    name: str


class New(_NodeBase):
    kind: Literal["new"] = "new"
    class_name: str | None = None


class ArrayLiteral(_NodeBase):
    kind: Literal["array_literal"] = "array_literal"


class Yield(_NodeBase):
    kind: Literal["yield"] = "yield"


# ── Declarations ──


class CallableDecl(_NodeBase):
    """A function, method or closure declaration."""

    kind: Literal["callable"] = "callable"
    name: str
    callable_kind: Literal["function", "method", "closure"] = "function"
    params: list[str] = Field(default_factory=list)
    param_types: dict[str, str] = Field(
        default_factory=dict, description="Declared parameter type hints by name"
    )
    is_abstract: bool = False
    body: list[int] | None = Field(default=None, description="None when there is no body")
    captured_vars: list[str] = Field(
        default_factory=list, description="Closure use() variables"
    )
    return_type: str | None = None
    class_name: str | None = None
    is_generator: bool = False

    @property
    def is_closure(self) -> bool:
        return self.callable_kind == "closure"


class ClassDecl(_NodeBase):
    kind: Literal["class"] = "class"
    name: str
    class_kind: Literal["class", "interface", "trait", "enum"] = "class"
    parents: list[str] = Field(
        default_factory=list, description="Extended classes and implemented interfaces"
    )
    members: list[int] = Field(default_factory=list)


class Other(_NodeBase):
    """Any construct the loop analyzers do not need to distinguish."""

    kind: Literal["other"] = "other"
    label: str = ""


SyntaxNode = Annotated[
    Union[
        Program,
        Block,
        ForLoop,
        ForeachLoop,
        WhileLoop,
        DoWhileLoop,
        Break,
        Continue,
        Return,
        Throw,
        ExpressionStatement,
        Call,
        ArrayAppend,
        IndexAccess,
        Assign,
        Ident,
        ScopeName,
        New,
        ArrayLiteral,
        Yield,
        CallableDecl,
        ClassDecl,
        Other,
    ],
    Field(discriminator="kind"),
]

LOOP_TYPES = (ForLoop, ForeachLoop, WhileLoop, DoWhileLoop)


SELF_SCOPE_NAMES = ("self", "static")


def is_loop(node: _NodeBase) -> bool:
    return isinstance(node, LOOP_TYPES)


def is_self_reference(node: _NodeBase) -> bool:
    """True for ``$this`` or the ``self`` / ``static`` keywords."""
    if isinstance(node, Ident):
        return node.name == "this"
    if isinstance(node, ScopeName):
        return node.name.lower() in SELF_SCOPE_NAMES
    return False


class SyntaxTree(BaseModel):
    """Node arena. ``nodes[i].id == i``; nodes are appended bottom-up, so the
    Program root is addressed through ``root_id``."""

    nodes: list[SyntaxNode] = Field(default_factory=list)
    root_id: int | None = None

    def add(self, node: _NodeBase) -> int:
        node.id = len(self.nodes)
        self.nodes.append(node)
        return node.id

    def __getitem__(self, node_id: int) -> SyntaxNode:
        return self.nodes[node_id]

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root(self) -> SyntaxNode | None:
        return None if self.root_id is None else self.nodes[self.root_id]

    def link_parents(self) -> None:
        """Fill in parent back-references from the child lists."""
        for node in self.nodes:
            node.parent = None
        for node in self.nodes:
            for child_id in node.children:
                self.nodes[child_id].parent = node.id

    def parent(self, node_id: int) -> SyntaxNode | None:
        parent_id = self.nodes[node_id].parent
        return None if parent_id is None else self.nodes[parent_id]

    def ancestors(self, node_id: int) -> Iterator[SyntaxNode]:
        """Yield ancestors from the direct parent up to the root."""
        current = self.parent(node_id)
        while current is not None:
            yield current
            current = self.parent(current.id)

    def enclosing_callable(self, node_id: int) -> CallableDecl | None:
        for ancestor in self.ancestors(node_id):
            if isinstance(ancestor, CallableDecl):
                return ancestor
        return None

    def enclosing_class(self, node_id: int) -> ClassDecl | None:
        for ancestor in self.ancestors(node_id):
            if isinstance(ancestor, ClassDecl):
                return ancestor
        return None

    def walk(
        self, node_ids: list[int], enter_callables: bool = True
    ) -> Iterator[SyntaxNode]:
        """Pre-order walk over the given subtrees.

        With ``enter_callables=False`` nested CallableDecl nodes are yielded
        but their bodies are not visited.
        """
        stack = list(reversed(node_ids))
        while stack:
            node = self.nodes[stack.pop()]
            yield node
            if not enter_callables and isinstance(node, CallableDecl):
                continue
            stack.extend(reversed(node.children))

    def find(
        self,
        node_ids: list[int],
        predicate: Callable[[SyntaxNode], bool],
        enter_callables: bool = False,
    ) -> list[SyntaxNode]:
        return [
            n for n in self.walk(node_ids, enter_callables=enter_callables) if predicate(n)
        ]

    def callables(self) -> list[CallableDecl]:
        return [n for n in self.nodes if isinstance(n, CallableDecl)]

    def classes(self) -> list[ClassDecl]:
        return [n for n in self.nodes if isinstance(n, ClassDecl)]


class ModuleAST(BaseModel):
    """Complete structured representation of a parsed PHP file."""

    file_path: str
    language: str = Field(default="php")
    tree: SyntaxTree = Field(default_factory=SyntaxTree)
    total_lines: int = 0
    parse_errors: list[str] = Field(
        default_factory=list, description="Non-fatal parse warnings"
    )
