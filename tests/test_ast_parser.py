"""
Tests for AST Parser — verify the node arena built from PHP source.
"""

from loopguard.core.ast_parser import parse_file, parse_php
from loopguard.models.ast_models import (
    ArrayAppend,
    Assign,
    Break,
    Call,
    CallableDecl,
    ClassDecl,
    DoWhileLoop,
    ForeachLoop,
    ForLoop,
    Ident,
    IndexAccess,
    Return,
    ScopeName,
    Throw,
    WhileLoop,
)


def _nodes_of(module_ast, node_type):
    return [n for n in module_ast.tree.nodes if isinstance(n, node_type)]


def test_parent_links_are_consistent(sample_php_code):
    result = parse_php(sample_php_code, "Repository.php")
    tree = result.tree
    assert tree.root is not None
    assert tree.root.parent is None
    for index, node in enumerate(tree.nodes):
        assert node.id == index
        if node.id == tree.root_id:
            continue
        assert node.parent is not None
        assert node.id in tree[node.parent].children


def test_extracts_callables_and_classes(sample_php_code):
    result = parse_php(sample_php_code, "Repository.php")
    methods = {c.name: c for c in _nodes_of(result, CallableDecl)}
    assert set(methods) == {"getItems", "firstOnly", "grid", "scan", "load"}
    assert all(m.callable_kind == "method" for m in methods.values())
    assert all(m.class_name == "Repository" for m in methods.values())
    assert methods["scan"].params == ["item", "limit"]
    assert methods["firstOnly"].param_types == {"rows": "array"}
    assert methods["load"].return_type == "array"

    classes = _nodes_of(result, ClassDecl)
    assert [c.name for c in classes] == ["Repository"]


def test_callable_declaration_line(sample_php_code):
    result = parse_php(sample_php_code, "Repository.php")
    get_items = next(c for c in _nodes_of(result, CallableDecl) if c.name == "getItems")
    assert get_items.line == 5
    assert len(get_items.body) == 1
    assert isinstance(result.tree[get_items.body[0]], Return)


def test_for_header_sections():
    code = "<?php\nfor ($i = 0, $j = 0; $i < 10, $j < 5; $i++, $j++) {\n    echo $i;\n}\n"
    result = parse_php(code, "loop.php")
    loop = _nodes_of(result, ForLoop)[0]
    assert len(loop.init) == 2
    assert len(loop.conditions) == 2
    assert len(loop.increment) == 2
    assert len(loop.body) == 1
    assert all(isinstance(result.tree[i], Assign) for i in loop.init)


def test_for_with_empty_header_and_body():
    result = parse_php("<?php\nfor (;;);\n", "loop.php")
    loop = _nodes_of(result, ForLoop)[0]
    assert loop.init == [] and loop.conditions == [] and loop.increment == []
    assert loop.body == []


def test_foreach_key_value_binding():
    code = "<?php\nforeach ($map as $key => &$value) {\n    $value = 1;\n}\n"
    result = parse_php(code, "loop.php")
    loop = _nodes_of(result, ForeachLoop)[0]
    tree = result.tree
    assert tree[loop.subject].name == "map"
    assert tree[loop.key_var].name == "key"
    assert tree[loop.value_var].name == "value"
    assert loop.by_ref is True


def test_foreach_value_only_binding():
    result = parse_php("<?php\nforeach ($items as $item) {}\n", "loop.php")
    loop = _nodes_of(result, ForeachLoop)[0]
    assert loop.key_var is None
    assert result.tree[loop.value_var].name == "item"
    assert loop.body == []


def test_while_and_do_while_bodies():
    code = "<?php\nwhile ($running) {\n    break;\n}\ndo {\n    throw new Exception();\n} while (true);\n"
    result = parse_php(code, "loop.php")
    while_loop = _nodes_of(result, WhileLoop)[0]
    do_loop = _nodes_of(result, DoWhileLoop)[0]
    assert isinstance(result.tree[while_loop.body[0]], Break)
    assert isinstance(result.tree[do_loop.body[0]], Throw)
    assert do_loop.cond is not None


def test_colon_form_loop_body():
    code = "<?php\nforeach ($items as $item):\n    echo $item;\n    echo $item;\nendforeach;\n"
    result = parse_php(code, "loop.php")
    loop = _nodes_of(result, ForeachLoop)[0]
    assert len(loop.body) == 2


def test_break_level():
    code = "<?php\nwhile (true) {\n    while (true) {\n        break 2;\n    }\n}\n"
    result = parse_php(code, "loop.php")
    assert _nodes_of(result, Break)[0].level == 2


def test_append_and_index_access():
    result = parse_php("<?php\n$grid[$x][] = 1;\n", "grid.php")
    append = _nodes_of(result, ArrayAppend)[0]
    index = result.tree[append.container]
    assert isinstance(index, IndexAccess)
    assert isinstance(result.tree[index.container], Ident)


def test_call_receivers():
    code = "<?php\nfoo();\n$this->bar();\nself::baz();\nparent::qux();\n"
    result = parse_php(code, "calls.php")
    calls = {c.name: c for c in _nodes_of(result, Call)}
    tree = result.tree
    assert calls["foo"].receiver is None
    assert tree[calls["bar"].receiver].name == "this"
    assert isinstance(tree[calls["baz"].receiver], ScopeName)
    assert tree[calls["qux"].receiver].name == "parent"


def test_closure_captures_and_generator_flag():
    code = "<?php\nfunction gen() { yield 1; }\n$f = function ($a) use ($b, &$c) { return $a; };\n"
    result = parse_php(code, "closures.php")
    callables = {c.name: c for c in _nodes_of(result, CallableDecl)}
    assert callables["gen"].is_generator is True
    closure = callables["{closure}"]
    assert closure.is_closure
    assert closure.params == ["a"]
    assert closure.captured_vars == ["b", "c"]


def test_abstract_method_has_no_body():
    code = "<?php\nabstract class Base {\n    abstract public function run();\n}\n"
    result = parse_php(code, "base.php")
    method = _nodes_of(result, CallableDecl)[0]
    assert method.is_abstract is True
    assert method.body is None


def test_class_parents():
    code = "<?php\nclass Bag extends \\Base\\Collection implements \\IteratorAggregate, Countable {}\n"
    result = parse_php(code, "bag.php")
    cls = _nodes_of(result, ClassDecl)[0]
    assert cls.parents == ["Collection", "IteratorAggregate", "Countable"]


def test_code_without_open_tag():
    result = parse_php("while (true) {}\n", "bare.php")
    assert result.parse_errors == []
    assert len(_nodes_of(result, WhileLoop)) == 1


def test_syntax_error_yields_empty_module():
    result = parse_php("<?php\nfunction broken( {\n", "broken.php")
    assert result.parse_errors
    assert "line" in result.parse_errors[0]
    assert result.tree.root is None
    assert len(result.tree) == 0


def test_unsupported_extension():
    result = parse_file("print('hi')", "script.py")
    assert result.language == "unknown"
    assert result.parse_errors
    assert len(result.tree) == 0


def test_comment_only_loop_body_is_not_empty():
    code = "<?php\nforeach ($items as $item) {\n    // handled by the caller\n}\n"
    result = parse_php(code, "loop.php")
    loop = _nodes_of(result, ForeachLoop)[0]
    assert len(loop.body) == 1
    placeholder = result.tree[loop.body[0]]
    assert placeholder.kind == "other" and placeholder.label == "comment"


def test_long_operator_chain_converts():
    operands = " . ".join(["$a"] * 1000)
    result = parse_php(f"<?php\n$s = {operands};\n", "concat.php")
    assert result.parse_errors == []
    assert len([n for n in _nodes_of(result, Ident) if n.name == "a"]) == 1000


def test_too_deep_call_chain_is_a_parse_failure():
    chain = "$a" + "->b()" * 3000
    result = parse_php(f"<?php\n{chain};\n", "chain.php")
    assert result.parse_errors == ["Expression nesting too deep to analyze"]
    assert len(result.tree) == 0
