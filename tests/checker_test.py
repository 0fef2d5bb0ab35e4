import pytest

from checker import check_listing, stack_effect
from compiler import Compiler
from errors import ListingError
from lexer import Lexer
from listing import AssemblyListing, db_operands
from parser import Parser


def build(src, annotate=True):
    parser = Parser(Lexer(src))
    program = parser.parse()
    assert not parser.errors
    return Compiler(annotate=annotate).compile(program).render()


def listing(*body):
    return "\n".join(["section .text", "global _start", "_start:"] + list(body)) + "\n"


EXIT = ["    mov rax, 60", "    xor rdi, rdi", "    syscall"]


def expect_error(text, fragment):
    with pytest.raises(ListingError) as excinfo:
        check_listing(text)
    if fragment not in str(excinfo.value):
        raise AssertionError(f"Expected {fragment!r} in {excinfo.value}\nLISTING:\n{text}")


def test_stack_effect():
    assert stack_effect("push 1") == 1
    assert stack_effect("    push qword [rel x]    ; load x") == 1
    assert stack_effect("pop rax") == -1
    assert stack_effect("add rsp, 8") == -1
    assert stack_effect("add rsp, 16") == -2
    assert stack_effect("sub rsp, 8") == 1
    assert stack_effect("mov rax, [rsp]") == 0
    assert stack_effect("    ; push 1") == 0
    assert stack_effect("") == 0


@pytest.mark.parametrize("src", [
    "",
    "var x = 5; func f() { return x + 1; }",
    "for (i = 0, i < 3, i = i + 1) { x = x + i; }",
    "func fact(n) { var r = 1; while (n > 1) { r = r * n; n = n - 1; } return r; } printf(\"%d\", fact(5));",
    "func g() { while (1) { return 2; } } g();",
    "var buf[8] = 0; for (i = 0, i < 8, i = i + 1) { buf[i] = i * 65a; }",
    'import "x" as y; import { a } from "z"; { { } }',
])
def test_compiled_programs_pass(src):
    check_listing(build(src))
    check_listing(build(src, annotate=False))


def test_empty_listing_renders_and_passes():
    text = AssemblyListing().render()
    assert text.startswith("; Transpiled Assembly Code\n")
    assert "section .data" not in text
    assert "global _start" in text
    check_listing(text)


def test_undefined_jump_target():
    expect_error(listing("    jmp nowhere"), "undefined label: nowhere")


def test_undefined_call_target():
    expect_error(listing("    call missing", *EXIT), "undefined function: missing")


def test_duplicate_label():
    expect_error(listing("again:", "again:", *EXIT), "more than once: again")


def test_duplicate_data():
    text = "section .data\nx: dq 0\nx: dq 0\n\n" + listing(*EXIT)
    expect_error(text, "more than once: x")


def test_extern_also_defined():
    text = "section .data\nputs: dq 0\n\nsection .text\nextern puts\nglobal _start\n_start:\n" + "\n".join(EXIT)
    expect_error(text, "External symbol is also defined here: puts")


def test_global_without_label():
    expect_error("section .text\nglobal _start\nglobal f\n_start:\n" + "\n".join(EXIT), "no label: f")


def test_content_outside_section():
    expect_error("mov rax, 1\n" + listing(*EXIT), "outside of any section")


def test_unbalanced_exit():
    expect_error(listing("    push 1", *EXIT), "exits with 1 slot(s)")


def test_underflow():
    expect_error(listing("    pop rax", *EXIT), "underflow")


def test_ret_with_values_left():
    text = listing(*EXIT) + "global f\nf:\n    push 1\n    ret\n"
    expect_error(text, "ret with 1 slot(s)")


def test_depth_mismatch_at_label():
    text = listing("    push 1", "    je done", "    push 2", "done:", "    add rsp, 16", *EXIT)
    expect_error(text, "Stack depth mismatch at done")


def test_frame_restore_without_frame():
    expect_error(listing("    mov rsp, rbp", *EXIT), "without a frame")


def test_db_operands():
    assert db_operands("hello") == '"hello", 0'
    assert db_operands("a\nb") == '"a", 10, "b", 0'
    assert db_operands("") == "0"
    assert db_operands("tab\there") == '"tab", 9, "here", 0'
