import logging

from ast_nodes import (
    Program, VarDeclaration, FunctionDeclaration, ReturnStatement, ExpressionStatement, BlockStatement,
    Identifier, NumberLiteral, AsciiLiteral, StringLiteral,
    AssignExpression, CallExpression, ForLoop, WhileLoop, ImportStatement, BinaryExpression, IndexExpression,
    IMPORT_ALIAS,
)
from errors import CompileError, InternalCompilerError
from listing import AssemblyListing, CELL_SIZE, INDENT, REGISTERS, function_symbol, variable_symbol

log = logging.getLogger("manu.compiler")

# System V argument registers, used for calls to functions defined elsewhere.
ARG_REGISTERS = ("rdi", "rsi", "rdx", "rcx", "r8", "r9")

# Operand layout on entry: left in rax, right in rbx. Result is left in rax.
BINARY_INSTRUCTIONS = {
    "+": ["add rax, rbx"],
    "-": ["sub rax, rbx"],
    "*": ["imul rax, rbx"],
    "/": ["cqo", "idiv rbx"],
    "%": ["cqo", "idiv rbx", "mov rax, rdx"],
    "==": ["cmp rax, rbx", "sete al", "movzx rax, al"],
    "!=": ["cmp rax, rbx", "setne al", "movzx rax, al"],
    "<": ["cmp rax, rbx", "setl al", "movzx rax, al"],
    ">": ["cmp rax, rbx", "setg al", "movzx rax, al"],
    "<=": ["cmp rax, rbx", "setle al", "movzx rax, al"],
    ">=": ["cmp rax, rbx", "setge al", "movzx rax, al"],
}

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


class Compiler:
    def __init__(self, annotate: bool = True):
        self.listing = AssemblyListing()
        self.annotate = annotate
        self.label_count = 0
        self.functions = {}       # name -> FunctionDeclaration
        self.used_names = []      # identifiers read or written without a declaration seen yet
        self.in_function = 0
        self.labels = set()       # generated jump and string labels
        self.out = self.listing.entry.lines

    # -------- emission --------
    def emit(self, instruction, comment=None):
        if comment and self.annotate:
            self.out.append(f"{INDENT}{instruction:24}; {comment}")
        else:
            self.out.append(f"{INDENT}{instruction}")

    def note(self, text):
        if self.annotate:
            self.out.append(f"{INDENT}; {text}")

    def label(self, name):
        self.out.append(f"{name}:")

    def new_label(self, prefix):
        name = f"{prefix}{self.label_count}"
        self.label_count += 1
        self.labels.add(name)
        return name

    def compile(self, node):
        # entry point
        if not isinstance(node, Program):
            raise InternalCompilerError("Compiler expects a Program node at the top")

        # Pass 1: collect every function so calls may precede the declaration.
        self.collect_functions(node.statements)

        # Pass 2: top-level statements run in order inside _start; function
        # bodies are hoisted into their own routines as they are met.
        for stmt in node.statements:
            self.compile_stmt(stmt)

        self.note("exit(0)")
        self.emit("mov rax, 60", "syscall number for exit")
        self.emit("xor rdi, rdi", "exit code 0")
        self.emit("syscall")

        self.allocate_implicit_storage()
        return self.listing

    def collect_functions(self, statements):
        for stmt in statements:
            if isinstance(stmt, FunctionDeclaration):
                if stmt.name in self.functions:
                    raise CompileError(f"Function already defined: {stmt.name}", stmt.line)
                self.functions[stmt.name] = stmt
                self.collect_functions(stmt.body.statements)
            elif isinstance(stmt, BlockStatement):
                self.collect_functions(stmt.statements)
            elif isinstance(stmt, (WhileLoop, ForLoop)) and stmt.body is not None:
                self.collect_functions(stmt.body.statements)

    # -------- storage --------
    def define_variable(self, name, cells, node):
        if name in self.functions:
            raise CompileError(f"'{name}' is declared as both a function and a variable", node.line)
        self.listing.define_storage(variable_symbol(name), cells)

    def use_name(self, name):
        if name not in self.used_names:
            self.used_names.append(name)

    def allocate_implicit_storage(self):
        # No semantic analysis: an undeclared identifier is still a process-wide cell.
        for name in self.used_names:
            symbol = variable_symbol(name)
            if symbol not in self.listing.storage and name not in self.functions:
                self.listing.define_storage(symbol)

        # external symbols keep their own names, so they must not shadow ours
        taken = self.listing.symbols() | self.labels
        for name in self.listing.externs:
            if name in taken:
                raise CompileError(f"External function '{name}' clashes with a generated symbol")

    def array_cells(self, node):
        size = node.size
        if size is None:
            return 1
        if isinstance(size, NumberLiteral):
            cells = self.number_value(size)
        elif isinstance(size, AsciiLiteral):
            cells = self.ascii_value(size)
        else:
            raise CompileError(f"Array size of '{node.name}' must be a number literal", node.line)
        if cells < 1:
            raise CompileError(f"Array size of '{node.name}' must be at least 1", node.line)
        return cells

    # -------- statements --------
    def compile_stmt(self, node):
        if isinstance(node, VarDeclaration):
            self.note(f"var {node.name}")
            cells = self.array_cells(node) if node.is_array else 1
            self.define_variable(node.name, cells, node)
            if node.value is not None:
                self.compile_expr(node.value)
                self.emit("pop rax")
                self.emit(f"mov [rel {variable_symbol(node.name)}], rax", f"store {node.name}")
            return

        if isinstance(node, FunctionDeclaration):
            self.compile_function(node)
            return

        if isinstance(node, ReturnStatement):
            self.compile_return(node)
            return

        if isinstance(node, ExpressionStatement):
            self.note("expression statement")
            self.compile_expr(node.expression)
            self.emit("add rsp, 8", "discard expression value")
            return

        if isinstance(node, BlockStatement):
            self.compile_block(node)
            return

        if isinstance(node, ForLoop):
            self.compile_for(node)
            return

        if isinstance(node, WhileLoop):
            self.compile_while(node)
            return

        if isinstance(node, ImportStatement):
            # compile-time only; nothing is linked
            if node.kind == IMPORT_ALIAS:
                self.note(f'import "{node.path}" as {node.alias}')
            else:
                names = ", ".join(ident.name for ident in node.names)
                self.note(f'import {{ {names} }} from "{node.path}"')
            return

        raise InternalCompilerError(f"Unknown statement node: {node.__class__.__name__}")

    def compile_block(self, block):
        for stmt in block.statements:
            self.compile_stmt(stmt)

    def compile_function(self, node):
        log.debug("compiling function %s", node.name)
        if self.functions.setdefault(node.name, node) is not node:
            raise CompileError(f"Function already defined: {node.name}", node.line)

        for param in node.params:
            self.define_variable(param.name, 1, param)

        label = function_symbol(node.name)
        routine = self.listing.new_routine(label)
        self.listing.declare_global(label)

        saved_out = self.out
        self.out = routine.lines
        self.in_function += 1
        try:
            self.emit("push rbp", "save frame pointer")
            self.emit("mov rbp, rsp", "set new frame pointer")
            self.compile_block(node.body)

            statements = node.body.statements
            if not statements or not isinstance(statements[-1], ReturnStatement):
                self.emit("xor rax, rax", "implicit return value")
                self.emit_epilogue()
        finally:
            self.in_function -= 1
            self.out = saved_out

    def emit_epilogue(self):
        self.emit("mov rsp, rbp", "restore stack pointer")
        self.emit("pop rbp", "restore frame pointer")
        self.emit("ret")

    def compile_return(self, node):
        if self.in_function == 0:
            raise CompileError("return used outside of a function", node.line)

        self.note("return")
        if node.value is not None:
            self.compile_expr(node.value)
            self.emit("pop rax", "return value")
        else:
            self.emit("xor rax, rax", "return value")
        self.emit_epilogue()

    def compile_while(self, node):
        self.note("while loop")
        loop_label = self.new_label("_while_loop_")
        end_label = self.new_label("_while_end_")
        log.debug("while loop labels %s, %s", loop_label, end_label)

        self.label(loop_label)
        self.compile_condition(node.condition, end_label)

        if node.body is not None:
            self.compile_block(node.body)

        self.emit(f"jmp {loop_label}")
        self.label(end_label)

    def compile_for(self, node):
        self.note("for loop")
        loop_label = self.new_label("_for_loop_")
        end_label = self.new_label("_for_end_")
        log.debug("for loop labels %s, %s", loop_label, end_label)

        if node.init is not None:
            self.compile_expr(node.init)
            self.emit("add rsp, 8", "discard initializer value")

        self.label(loop_label)
        self.compile_condition(node.condition, end_label)

        if node.body is not None:
            self.compile_block(node.body)

        if node.increment is not None:
            self.compile_expr(node.increment)
            self.emit("add rsp, 8", "discard increment value")

        self.emit(f"jmp {loop_label}")
        self.label(end_label)

    def compile_condition(self, condition, end_label):
        # no condition means loop forever
        if condition is None:
            return
        self.compile_expr(condition)
        self.emit("pop rax")
        self.emit("cmp rax, 0", "compare with false")
        self.emit(f"je {end_label}")

    # -------- expressions --------
    def compile_expr(self, node):
        if isinstance(node, NumberLiteral):
            self.push_immediate(self.number_value(node))
            return

        if isinstance(node, AsciiLiteral):
            self.push_immediate(self.ascii_value(node))
            return

        if isinstance(node, StringLiteral):
            label = self.new_label("str_")
            self.listing.define_bytes(label, node.value)
            self.emit(f"lea rax, [rel {label}]")
            self.emit("push rax")
            return

        if isinstance(node, Identifier):
            if node.name in self.functions:
                self.emit(f"lea rax, [rel {function_symbol(node.name)}]", f"address of {node.name}")
                self.emit("push rax")
                return
            self.use_name(node.name)
            self.emit(f"push qword [rel {variable_symbol(node.name)}]")
            return

        if isinstance(node, IndexExpression):
            base = self.array_name(node.array, node)
            self.compile_expr(node.index)
            self.emit("pop rbx", "index")
            self.emit(f"lea rcx, [rel {base}]")
            self.emit(f"push qword [rcx + rbx*{CELL_SIZE}]")
            return

        if isinstance(node, AssignExpression):
            self.compile_assign(node)
            return

        if isinstance(node, BinaryExpression):
            if node.op not in BINARY_INSTRUCTIONS:
                raise InternalCompilerError(f"Unknown binary operator: {node.op}")
            self.compile_expr(node.left)
            self.compile_expr(node.right)
            self.emit("pop rbx", "right operand")
            self.emit("pop rax", "left operand")
            for instruction in BINARY_INSTRUCTIONS[node.op]:
                self.emit(instruction)
            self.emit("push rax")
            return

        if isinstance(node, CallExpression):
            self.compile_call(node)
            return

        raise InternalCompilerError(f"Unknown expression node: {node.__class__.__name__}")

    def push_immediate(self, value):
        # push only takes a sign-extended 32-bit immediate
        if INT32_MIN <= value <= INT32_MAX:
            self.emit(f"push {value}")
        else:
            self.emit(f"mov rax, {value}")
            self.emit("push rax")

    def number_value(self, node):
        text = node.value or ""
        if not (text.isascii() and text.isdigit()):
            raise CompileError(f"Invalid number literal: {text!r}", node.line)
        return int(text)

    def ascii_value(self, node):
        text = node.value or ""
        digits = text[:-1]
        if not text.endswith("a") or not (digits.isascii() and digits.isdigit()):
            raise CompileError(f"Invalid character code literal: {text!r}", node.line)
        return int(digits)

    def array_name(self, array, node):
        if not isinstance(array, Identifier):
            raise CompileError("Only named arrays can be indexed", node.line)
        if array.name in self.functions:
            raise CompileError(f"Cannot index function '{array.name}'", node.line)
        self.use_name(array.name)
        return variable_symbol(array.name)

    def compile_assign(self, node):
        # The assigned value stays on the stack as the expression's result.
        target = node.target

        if isinstance(target, Identifier):
            if target.name in self.functions:
                raise CompileError(f"Cannot assign to function '{target.name}'", node.line)
            self.use_name(target.name)
            self.compile_expr(node.value)
            self.emit("mov rax, [rsp]", "assigned value")
            self.emit(f"mov [rel {variable_symbol(target.name)}], rax", f"store {target.name}")
            return

        if isinstance(target, IndexExpression):
            base = self.array_name(target.array, target)
            self.compile_expr(node.value)
            self.compile_expr(target.index)
            self.emit("pop rbx", "index")
            self.emit("mov rax, [rsp]", "assigned value")
            self.emit(f"lea rcx, [rel {base}]")
            self.emit(f"mov [rcx + rbx*{CELL_SIZE}], rax", f"store {base}[]")
            return

        raise CompileError("Invalid assignment target", node.line)

    def compile_call(self, node):
        callee = node.function
        if not isinstance(callee, Identifier):
            raise CompileError("Only named functions can be called", node.line)

        name = callee.name
        target = self.functions.get(name)

        if target is not None:
            if len(node.arguments) != len(target.params):
                raise CompileError(
                    f"{name}() takes {len(target.params)} argument(s), {len(node.arguments)} given",
                    node.line,
                )
            # compile args first (each pushes a value), then fill the parameter cells
            for arg in node.arguments:
                self.compile_expr(arg)
            for param in reversed(target.params):
                self.emit("pop rax")
                self.emit(f"mov [rel {variable_symbol(param.name)}], rax", f"argument {param.name}")
            self.emit(f"call {function_symbol(name)}")
            self.emit("push rax", "return value")
            return

        # defined elsewhere: System V registers, 16-byte aligned stack
        if len(node.arguments) > len(ARG_REGISTERS):
            raise CompileError(
                f"External function {name}() takes at most {len(ARG_REGISTERS)} arguments",
                node.line,
            )
        if name.lower() in REGISTERS:
            raise CompileError(f"External function name '{name}' is a register name", node.line)
        self.listing.declare_extern(name)
        for arg in node.arguments:
            self.compile_expr(arg)
        for register in reversed(ARG_REGISTERS[:len(node.arguments)]):
            self.emit(f"pop {register}")
        self.emit("mov rbx, rsp", "save stack pointer")
        self.emit("and rsp, -16", "align stack for external call")
        self.emit(f"call {name}")
        self.emit("mov rsp, rbx", "restore stack pointer")
        self.emit("push rax", "return value")
