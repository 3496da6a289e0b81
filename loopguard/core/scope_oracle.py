"""
Scope Oracle — Type and definedness questions asked by the loop detectors.

Built once per syntax tree. Answers:
  - resolve_type(expr)        static type of an expression, ``mixed`` when unknown
  - is_assigned_before(...)   was a variable assigned textually earlier in a scope
  - is_iterable_source(type)  generator / iterator / traversable / iterable test

Type inference is deliberately shallow: literals, ``new``, parameter hints,
the latest earlier assignment of a variable, and calls to functions or
methods declared in the same file.
"""

from __future__ import annotations

from loopguard.models.ast_models import (
    ArrayLiteral,
    Assign,
    Call,
    CallableDecl,
    Ident,
    New,
    SyntaxTree,
    is_self_reference,
)
from loopguard.models.type_models import ARRAY, MIXED, PhpType


# Built-in PHP classes and interfaces relevant to iteration, mapped to their
# direct supertypes (lower-cased).
BUILTIN_SUPERTYPES: dict[str, tuple[str, ...]] = {
    "traversable": (),
    "iterator": ("traversable",),
    "iteratoraggregate": ("traversable",),
    "generator": ("iterator",),
    "outeriterator": ("iterator",),
    "recursiveiterator": ("iterator",),
    "seekableiterator": ("iterator",),
    "arrayiterator": ("seekableiterator", "arrayaccess", "countable", "serializable"),
    "recursivearrayiterator": ("arrayiterator", "recursiveiterator"),
    "arrayobject": ("iteratoraggregate", "arrayaccess", "countable", "serializable"),
    "iteratoriterator": ("outeriterator",),
    "filteriterator": ("iteratoriterator",),
    "callbackfilteriterator": ("filteriterator",),
    "regexiterator": ("filteriterator",),
    "limititerator": ("iteratoriterator",),
    "cachingiterator": ("iteratoriterator", "arrayaccess", "countable"),
    "infiniteiterator": ("iteratoriterator",),
    "norewinditerator": ("iteratoriterator",),
    "appenditerator": ("iteratoriterator",),
    "multipleiterator": ("iterator",),
    "recursiveiteratoriterator": ("outeriterator",),
    "emptyiterator": ("iterator",),
    "directoryiterator": ("splfileinfo", "seekableiterator"),
    "filesystemiterator": ("directoryiterator",),
    "recursivedirectoryiterator": ("filesystemiterator", "recursiveiterator"),
    "globiterator": ("filesystemiterator", "countable"),
    "splfileobject": ("splfileinfo", "recursiveiterator", "seekableiterator"),
    "spldoublylinkedlist": ("iterator", "countable", "arrayaccess", "serializable"),
    "splqueue": ("spldoublylinkedlist",),
    "splstack": ("spldoublylinkedlist",),
    "splheap": ("iterator", "countable"),
    "splminheap": ("splheap",),
    "splmaxheap": ("splheap",),
    "splpriorityqueue": ("iterator", "countable"),
    "splfixedarray": ("iteratoraggregate", "arrayaccess", "countable"),
    "splobjectstorage": ("countable", "iterator", "serializable", "arrayaccess"),
    "weakmap": ("arrayaccess", "countable", "iteratoraggregate"),
    "dateperiod": ("iteratoraggregate",),
    "pdostatement": ("iteratoraggregate",),
    "mysqli_result": ("iteratoraggregate",),
    "domnodelist": ("iteratoraggregate", "countable"),
    "domnamednodemap": ("iteratoraggregate", "countable"),
    "simplexmlelement": ("stringable", "countable", "recursiveiterator"),
}

# Types whose foreach may legitimately yield a single value
ITERABLE_SOURCE_TYPES = ("generator", "iterator", "iteratoraggregate", "traversable")

_ITERABLE_PSEUDO_TYPE = "iterable"


def _normalize(type_name: str) -> str:
    return type_name.strip().lstrip("\\").rsplit("\\", 1)[-1]


class ScopeOracle:
    """Per-tree type and assignment oracle."""

    def __init__(self, tree: SyntaxTree) -> None:
        self.tree = tree
        self._class_parents: dict[str, list[str]] = {
            cls.name.lower(): [p.lower() for p in cls.parents] for cls in tree.classes()
        }
        self._functions: dict[str, CallableDecl] = {}
        self._methods: dict[tuple[str, str], CallableDecl] = {}
        for decl in tree.callables():
            if decl.callable_kind == "function":
                self._functions.setdefault(decl.name.lower(), decl)
            elif decl.callable_kind == "method" and decl.class_name:
                self._methods.setdefault((decl.class_name.lower(), decl.name.lower()), decl)
        self._assignments: dict[int | None, list[Assign]] = {}

    # ── Types ──

    def resolve_type(self, expr_id: int, _seen: frozenset[int] = frozenset()) -> PhpType:
        """Static type of the expression, ``mixed`` when it cannot be inferred."""
        node = self.tree[expr_id]
        if isinstance(node, ArrayLiteral):
            return ARRAY
        if isinstance(node, New):
            return self.named_type(node.class_name) if node.class_name else MIXED
        if isinstance(node, Ident):
            return self._variable_type(node, _seen)
        if isinstance(node, Call):
            return self._call_type(node, _seen)
        if isinstance(node, Assign):
            return self.resolve_type(node.value, _seen)
        return MIXED

    def named_type(self, type_name: str) -> PhpType:
        name = _normalize(type_name)
        return PhpType(name=name, ancestors=sorted(self._supertypes(name.lower(), set())))

    def type_from_hint(self, hint: str) -> PhpType:
        """Resolve a declared type hint. ``?T`` and ``T|null`` become ``T``;
        other unions and intersections are ``mixed``."""
        text = hint.strip().lstrip("?")
        if "|" in text:
            members = [m.strip() for m in text.split("|") if m.strip().lower() != "null"]
            if len(members) != 1:
                return MIXED
            text = members[0]
        if not text or "&" in text or "(" in text:
            return MIXED
        return self.named_type(text)

    def is_iterable_source(self, php_type: PhpType) -> bool:
        if php_type.name.lower() == _ITERABLE_PSEUDO_TYPE:
            return True
        return any(php_type.is_subtype_of(t) for t in ITERABLE_SOURCE_TYPES)

    def _supertypes(self, lower_name: str, seen: set[str]) -> set[str]:
        direct = list(self._class_parents.get(lower_name, [])) + list(
            BUILTIN_SUPERTYPES.get(lower_name, ())
        )
        result: set[str] = set()
        for parent in direct:
            if parent in seen:
                continue
            seen.add(parent)
            result.add(parent)
            result |= self._supertypes(parent, seen)
        return result

    def _variable_type(self, node: Ident, seen: frozenset[int]) -> PhpType:
        if node.name == "this":
            cls = self.tree.enclosing_class(node.id)
            return self.named_type(cls.name) if cls is not None else MIXED

        scope = self.tree.enclosing_callable(node.id)
        assignment = self._latest_assignment(node.name, node.line, scope)
        if assignment is not None and assignment.id not in seen:
            return self.resolve_type(assignment.value, seen | {assignment.id})

        if scope is not None and node.name in scope.params:
            hint = scope.param_types.get(node.name)
            return self.type_from_hint(hint) if hint else MIXED
        return MIXED

    def _call_type(self, node: Call, seen: frozenset[int]) -> PhpType:
        if node.name is None:
            return MIXED

        target: CallableDecl | None = None
        if node.receiver is None:
            target = self._functions.get(node.name.lower())
        elif is_self_reference(self.tree[node.receiver]):
            cls = self.tree.enclosing_class(node.id)
            if cls is not None:
                target = self._methods.get((cls.name.lower(), node.name.lower()))
        else:
            receiver_type = self.resolve_type(node.receiver, seen)
            target = self._methods.get((receiver_type.name.lower(), node.name.lower()))

        if target is None:
            return MIXED
        if target.is_generator:
            return self.named_type("Generator")
        if target.return_type:
            return self.type_from_hint(target.return_type)
        return MIXED

    # ── Assignments ──

    def _scope_assignments(self, scope: CallableDecl | None) -> list[Assign]:
        """All plain assignments of a scope, not entering nested callables."""
        key = None if scope is None else scope.id
        if key not in self._assignments:
            if scope is None:
                root = self.tree.root
                statements = list(root.children) if root is not None else []
            else:
                statements = list(scope.body or [])
            self._assignments[key] = [
                n for n in self.tree.find(statements, lambda n: isinstance(n, Assign))
            ]
        return self._assignments[key]

    def _assignments_to(self, name: str, line: int, scope: CallableDecl | None) -> list[Assign]:
        found: list[Assign] = []
        for assignment in self._scope_assignments(scope):
            target = self.tree[assignment.target]
            if isinstance(target, Ident) and target.name == name and assignment.line < line:
                found.append(assignment)
        return found

    def _latest_assignment(
        self, name: str, line: int, scope: CallableDecl | None
    ) -> Assign | None:
        candidates = self._assignments_to(name, line, scope)
        if not candidates:
            return None
        return max(candidates, key=lambda a: (a.line, a.id))

    def is_assigned_before(self, name: str, line: int, scope_id: int | None) -> bool:
        """True if ``$name`` is assigned on a line strictly before ``line``
        within the given callable (or the top-level program when None)."""
        scope = None
        if scope_id is not None:
            node = self.tree[scope_id]
            scope = node if isinstance(node, CallableDecl) else None
        return bool(self._assignments_to(name, line, scope))
