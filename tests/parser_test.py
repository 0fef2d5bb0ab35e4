import logging

import pytest

from ast_nodes import (
    AssignExpression, BinaryExpression, BlockStatement, CallExpression, ExpressionStatement, ForLoop,
    FunctionDeclaration, Identifier, ImportStatement, IndexExpression, NumberLiteral, ReturnStatement,
    StringLiteral, VarDeclaration, WhileLoop, IMPORT_ALIAS, IMPORT_DESTRUCTURED,
)
from errors import LexError
from lexer import Lexer
from parser import Parser


def parse(src):
    parser = Parser(Lexer(src))
    program = parser.parse()
    return program, parser.errors


def parse_ok(src):
    program, errors = parse(src)
    if errors:
        raise AssertionError(f"Unexpected parse errors for {src!r}:\n" + "\n".join(str(e) for e in errors))
    return program


def value_of(src):
    # initializer of a single `var` statement
    program = parse_ok(src)
    stmt = program.statements[0]
    assert isinstance(stmt, VarDeclaration)
    return stmt.value


def test_multiplication_binds_tighter_than_addition():
    expr = value_of("var x = 1 + 2 * 3;")
    assert isinstance(expr, BinaryExpression)
    assert expr.op == "+"
    assert isinstance(expr.left, NumberLiteral) and expr.left.value == "1"
    assert isinstance(expr.right, BinaryExpression) and expr.right.op == "*"


def test_subtraction_is_left_associative():
    expr = value_of("var y = 10 - 3 - 2;")
    assert expr.op == "-"
    assert isinstance(expr.left, BinaryExpression) and expr.left.op == "-"
    assert expr.left.left.value == "10"
    assert expr.left.right.value == "3"
    assert expr.right.value == "2"


def test_comparison_below_arithmetic_and_equality_lowest():
    expr = value_of("var z = a == b < c + 1;")
    assert expr.op == "=="
    assert expr.right.op == "<"
    assert expr.right.right.op == "+"


def test_parentheses_group():
    expr = value_of("var w = (1 + 2) * 3;")
    assert expr.op == "*"
    assert expr.left.op == "+"


def test_chained_assignment_is_right_associative():
    program = parse_ok("a = b = 3;")
    expr = program.statements[0].expression
    assert isinstance(expr, AssignExpression)
    assert expr.target.name == "a"
    assert isinstance(expr.value, AssignExpression)
    assert expr.value.target.name == "b"
    assert expr.value.value.value == "3"


def test_call_with_index_argument():
    program = parse_ok('print(a[1], 2, "s");')
    call = program.statements[0].expression
    assert isinstance(call, CallExpression)
    assert call.function.name == "print"
    assert len(call.arguments) == 3
    assert isinstance(call.arguments[0], IndexExpression)
    assert call.arguments[0].array.name == "a"
    assert isinstance(call.arguments[2], StringLiteral)


def test_index_assignment():
    program = parse_ok("arr[i] = 5;")
    expr = program.statements[0].expression
    assert isinstance(expr, AssignExpression)
    assert isinstance(expr.target, IndexExpression)
    assert expr.target.index.name == "i"


def test_array_declarations():
    program = parse_ok("var buf[4] = 0; var open[] = 1;")
    sized, unsized = program.statements
    assert sized.is_array and sized.size.value == "4"
    assert unsized.is_array and unsized.size is None
    assert unsized.value.value == "1"


def test_semicolons_are_optional():
    program = parse_ok("var x = 1 var y = 2\nx = y")
    assert len(program.statements) == 3


def test_function_declaration():
    program = parse_ok("func add(a, b) { return a + b; }")
    func = program.statements[0]
    assert isinstance(func, FunctionDeclaration)
    assert func.name == "add"
    assert [p.name for p in func.params] == ["a", "b"]
    assert all(isinstance(p, Identifier) for p in func.params)
    ret = func.body.statements[0]
    assert isinstance(ret, ReturnStatement)
    assert ret.value.op == "+"


def test_bare_return():
    program = parse_ok("func f() { return; } func g() { return }")
    assert program.statements[0].body.statements[0].value is None
    assert program.statements[1].body.statements[0].value is None


def test_while_loop():
    program = parse_ok("while (i < 10) { i = i + 1; }")
    loop = program.statements[0]
    assert isinstance(loop, WhileLoop)
    assert loop.condition.op == "<"
    assert isinstance(loop.body, BlockStatement)
    assert len(loop.body.statements) == 1


def test_for_loop():
    program = parse_ok("for (i = 0, i < 3, i = i + 1) { x = x + i; }")
    loop = program.statements[0]
    assert isinstance(loop, ForLoop)
    assert isinstance(loop.init, AssignExpression)
    assert loop.condition.op == "<"
    assert isinstance(loop.increment, AssignExpression)
    assert isinstance(loop.body.statements[0], ExpressionStatement)


def test_nested_block():
    program = parse_ok("{ var a = 1; { a = 2; } }")
    outer = program.statements[0]
    assert isinstance(outer, BlockStatement)
    assert isinstance(outer.statements[1], BlockStatement)


def test_imports():
    program = parse_ok('import "std/io" as io;\nimport { read, write } from "std/fs";')
    alias, destructured = program.statements
    assert isinstance(alias, ImportStatement)
    assert alias.kind == IMPORT_ALIAS
    assert (alias.path, alias.alias) == ("std/io", "io")
    assert destructured.kind == IMPORT_DESTRUCTURED
    assert destructured.path == "std/fs"
    assert [n.name for n in destructured.names] == ["read", "write"]


def test_lines_are_recorded():
    program = parse_ok("var a = 1;\n\nwhile (a) {\n  a = 0;\n}")
    assert program.statements[0].line == 1
    assert program.statements[1].line == 3
    assert program.statements[1].body.statements[0].line == 4


def test_recovers_after_bad_token():
    program, errors = parse("var x = 5; ) var y = 6;")
    assert len(errors) == 1
    assert [s.name for s in program.statements] == ["x", "y"]


def test_error_position_and_message():
    _, errors = parse("var = 5;")
    err = errors[0]
    assert "identifier after 'var'" in str(err)
    assert (err.line, err.column) == (1, 4)


def test_missing_closing_brace():
    program, errors = parse("func f() { var x = 1;")
    assert len(errors) == 1
    assert "end of input" in str(errors[0])
    assert program.statements == []


def test_recovery_inside_block_keeps_block():
    program, errors = parse("while (1) { ) x = 1; }")
    assert len(errors) == 1
    loop = program.statements[0]
    assert isinstance(loop, WhileLoop)
    assert len(loop.body.statements) == 1


def test_errors_are_logged(caplog):
    with caplog.at_level(logging.ERROR, logger="manu.parser"):
        parse("var x = ;")
    messages = [r.getMessage() for r in caplog.records if r.name == "manu.parser"]
    assert messages
    assert "Unexpected token in expression" in messages[0]


def test_lex_errors_propagate():
    with pytest.raises(LexError):
        parse('var s = "never closed')
