"""
Tests for the Scope Oracle — type resolution and earlier-assignment queries.
"""

from loopguard.core.ast_parser import parse_php
from loopguard.core.scope_oracle import ScopeOracle
from loopguard.models.ast_models import ForeachLoop


def _foreach_subject_types(code: str):
    module_ast = parse_php(code, "oracle.php")
    tree = module_ast.tree
    oracle = ScopeOracle(tree)
    loops = [n for n in tree.nodes if isinstance(n, ForeachLoop)]
    loops.sort(key=lambda n: n.line)
    return oracle, [oracle.resolve_type(loop.subject) for loop in loops]


def test_array_literal_and_new():
    code = '''<?php
foreach ([1, 2] as $a) {}
foreach (new ArrayIterator([]) as $b) {}
'''
    oracle, types = _foreach_subject_types(code)
    assert types[0].name == "array"
    assert not oracle.is_iterable_source(types[0])
    assert types[1].name == "ArrayIterator"
    assert types[1].is_subtype_of("Traversable")
    assert oracle.is_iterable_source(types[1])


def test_parameter_hints():
    code = '''<?php
function f(iterable $a, ?Iterator $b, Foo|Bar $c, Generator|null $d, $e) {
    foreach ($a as $x) {}
    foreach ($b as $x) {}
    foreach ($c as $x) {}
    foreach ($d as $x) {}
    foreach ($e as $x) {}
}
'''
    oracle, types = _foreach_subject_types(code)
    assert oracle.is_iterable_source(types[0])
    assert types[1].name == "Iterator"
    assert types[2].is_mixed
    assert types[3].name == "Generator"
    assert types[4].is_mixed


def test_generator_function_and_declared_return_type():
    code = '''<?php
function gen() { yield 1; }
function items(): IteratorAggregate { return new Bag(); }
function rows(): array { return []; }
foreach (gen() as $a) {}
foreach (items() as $b) {}
foreach (rows() as $c) {}
foreach (unknown() as $d) {}
'''
    oracle, types = _foreach_subject_types(code)
    assert types[0].name == "Generator"
    assert oracle.is_iterable_source(types[1])
    assert not oracle.is_iterable_source(types[2])
    assert types[3].is_mixed


def test_user_class_ancestry():
    code = '''<?php
class Base implements IteratorAggregate {}
class Child extends Base {
    public function each() {
        foreach ($this as $item) {}
    }
}
foreach (new Child() as $x) {}
'''
    oracle, types = _foreach_subject_types(code)
    assert all(oracle.is_iterable_source(t) for t in types)
    assert types[0].name == "Child"
    assert "iteratoraggregate" in types[0].ancestors


def test_variable_resolved_through_latest_assignment():
    code = '''<?php
function f() {
    $items = [];
    $items = new ArrayObject();
    foreach ($items as $x) {}
}
'''
    oracle, types = _foreach_subject_types(code)
    assert types[0].name == "ArrayObject"


def test_self_referential_assignment_is_mixed():
    code = '''<?php
function f() {
    $a = $a;
    foreach ($a as $x) {}
}
'''
    _, types = _foreach_subject_types(code)
    assert types[0].is_mixed


def test_method_call_on_this():
    code = '''<?php
class Reader {
    private function lines() { yield "a"; }
    public function first() {
        foreach ($this->lines() as $line) { return $line; }
    }
}
'''
    oracle, types = _foreach_subject_types(code)
    assert types[0].name == "Generator"


def test_is_assigned_before_is_scope_and_line_bound():
    code = '''<?php
function f() {
    $a = [];
    $cb = function () {
        $b = 1;
    };
    $c = 2;
}
'''
    module_ast = parse_php(code, "oracle.php")
    tree = module_ast.tree
    oracle = ScopeOracle(tree)
    f = next(c for c in tree.callables() if c.name == "f")
    closure = next(c for c in tree.callables() if c.is_closure)

    assert oracle.is_assigned_before("a", 4, f.id)
    assert not oracle.is_assigned_before("a", 3, f.id)
    assert not oracle.is_assigned_before("b", 10, f.id)
    assert oracle.is_assigned_before("b", 10, closure.id)
    assert not oracle.is_assigned_before("a", 10, closure.id)
    assert oracle.is_assigned_before("cb", 10, None) is False
