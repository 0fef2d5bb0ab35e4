import logging

from ast_nodes import (
    Program, VarDeclaration, FunctionDeclaration, ReturnStatement, ExpressionStatement, BlockStatement,
    Identifier, NumberLiteral, AsciiLiteral, StringLiteral,
    AssignExpression, CallExpression, ForLoop, WhileLoop, ImportStatement, BinaryExpression, IndexExpression,
    IMPORT_ALIAS, IMPORT_DESTRUCTURED,
)
from errors import ParseError

log = logging.getLogger("manu.parser")

# Binding power per token type. Calls, indexing and assignment sit above every
# binary operator and are folded by the postfix branch of expr().
PRECEDENCES = {
    "EQEQ": 1,
    "NOTEQ": 1,
    "LT": 2,
    "GT": 2,
    "LTE": 2,
    "GTE": 2,
    "PLUS": 3,
    "MINUS": 3,
    "STAR": 4,
    "SLASH": 4,
    "PERCENT": 4,
    "LPAREN": 5,
    "LBRACKET": 5,
    "ASSIGN": 5,
}

EXPRESSION_TERMINATORS = ("EOF", "SEMICOLON")


class Parser:
    def __init__(self, lexer):
        self.lexer = lexer
        self.current_token = self.lexer.get_next_token()
        self.next_token = self.lexer.get_next_token()
        self.errors = []

    def advance(self):
        self.current_token = self.next_token
        self.next_token = self.lexer.get_next_token()

    # move to next token, but only if it matches what we expect
    def eat(self, token_type, what=None):
        tok = self.current_token
        if tok.type != token_type:
            expected = what or token_type
            self.error_here(f"Expected {expected}, got {self.describe(tok)}")
        self.advance()
        return tok

    def skip_semicolon(self):
        if self.current_token.type == "SEMICOLON":
            self.advance()

    def error_here(self, message):
        tok = self.current_token
        raise ParseError(message, tok.line, tok.column)

    def describe(self, tok):
        if tok.type == "EOF":
            return "end of input"
        return f"{tok.type} '{tok.value}'"

    def report(self, err):
        self.errors.append(err)
        log.error("%s", err)

    # ---------- TOP LEVEL ----------
    def parse(self):
        statements = []

        while self.current_token.type != "EOF":
            stmt = self.parse_or_recover()
            if stmt is not None:
                statements.append(stmt)

        return Program(statements)

    def parse_or_recover(self):
        # A failed statement is reported once and the offending token skipped.
        try:
            return self.statement()
        except ParseError as err:
            self.report(err)
            self.advance()
            return None

    # ---------- STATEMENTS ----------
    def statement(self):
        token_type = self.current_token.type

        if token_type == "VAR":
            return self.var_declaration()

        if token_type == "IDENT":
            return self.expression_statement()

        if token_type == "RETURN":
            return self.return_statement()

        if token_type == "WHILE":
            return self.while_loop()

        if token_type == "FOR":
            return self.for_loop()

        if token_type == "IMPORT":
            return self.import_statement()

        if token_type == "LBRACE":
            return self.block()

        if token_type == "FUNC":
            return self.func_declaration()

        self.error_here(f"Unexpected token at start of statement: {self.describe(self.current_token)}")

    def var_declaration(self):
        tok = self.eat("VAR")
        name = self.eat("IDENT", "identifier after 'var'").value

        size = None
        is_array = False
        if self.current_token.type == "LBRACKET":
            self.eat("LBRACKET")
            is_array = True
            if self.current_token.type != "RBRACKET":
                size = self.expr()
            self.eat("RBRACKET", "']' after array size")

        self.eat("ASSIGN", "'=' in variable declaration")
        value = self.expr()
        self.skip_semicolon()

        node = VarDeclaration(name, size, value, is_array=is_array)
        node.line = tok.line
        return node

    def expression_statement(self):
        tok = self.current_token
        expression = self.expr()
        self.skip_semicolon()
        node = ExpressionStatement(expression)
        node.line = tok.line
        return node

    def return_statement(self):
        tok = self.eat("RETURN")
        value = None
        if self.current_token.type not in ("SEMICOLON", "RBRACE", "EOF"):
            value = self.expr()
        self.skip_semicolon()
        node = ReturnStatement(value)
        node.line = tok.line
        return node

    def while_loop(self):
        tok = self.eat("WHILE")
        self.eat("LPAREN", "'(' after 'while'")
        condition = self.expr()
        self.eat("RPAREN", "')' after while condition")
        body = self.block()
        node = WhileLoop(condition, body)
        node.line = tok.line
        return node

    def for_loop(self):
        tok = self.eat("FOR")
        self.eat("LPAREN", "'(' after 'for'")
        init = self.expr()
        self.eat("COMMA", "',' after for loop initializer")
        condition = self.expr()
        self.eat("COMMA", "',' after for loop condition")
        increment = self.expr()
        self.eat("RPAREN", "')' after for loop increment")
        body = self.block()
        node = ForLoop(init, condition, increment, body)
        node.line = tok.line
        return node

    def import_statement(self):
        tok = self.eat("IMPORT")

        # import "path" as name
        if self.current_token.type == "STRING":
            path = self.eat("STRING").value
            self.eat("AS", "'as' after import path")
            alias = self.eat("IDENT", "identifier for import alias").value
            self.skip_semicolon()
            node = ImportStatement(IMPORT_ALIAS, path, alias=alias)
            node.line = tok.line
            return node

        # import { a, b } from "path"
        if self.current_token.type == "LBRACE":
            self.eat("LBRACE")
            names = [self.identifier("identifier in destructured import")]
            while self.current_token.type == "COMMA":
                self.eat("COMMA")
                names.append(self.identifier("identifier in destructured import"))
            self.eat("RBRACE", "'}' after destructured imports")
            self.eat("FROM", "'from' after destructured imports")
            path = self.eat("STRING", "string literal for import path").value
            self.skip_semicolon()
            node = ImportStatement(IMPORT_DESTRUCTURED, path, names=names)
            node.line = tok.line
            return node

        self.error_here("import expects a string path or '{'")

    def block(self):
        tok = self.eat("LBRACE", "'{'")

        statements = []
        while self.current_token.type not in ("RBRACE", "EOF"):
            stmt = self.parse_or_recover()
            if stmt is not None:
                statements.append(stmt)

        self.eat("RBRACE", "'}' after block statement")
        node = BlockStatement(statements)
        node.line = tok.line
        return node

    def func_declaration(self):
        tok = self.eat("FUNC")
        name = self.eat("IDENT", "function name after 'func'").value
        self.eat("LPAREN", "'(' after function name")

        params = []
        if self.current_token.type != "RPAREN":
            params.append(self.identifier("parameter name"))
            while self.current_token.type == "COMMA":
                self.eat("COMMA")
                params.append(self.identifier("parameter name"))

        self.eat("RPAREN", "')' after function parameters")
        body = self.block()

        node = FunctionDeclaration(name, params, body)
        node.line = tok.line
        return node

    def identifier(self, what):
        tok = self.eat("IDENT", what)
        node = Identifier(tok.value)
        node.line = tok.line
        return node

    # ---------- EXPRESSIONS (precedence climbing) ----------
    def expr(self, precedence=0):
        left = self.prefix()

        while (
            self.current_token.type not in EXPRESSION_TERMINATORS
            and precedence < PRECEDENCES.get(self.current_token.type, 0)
        ):
            token_type = self.current_token.type
            if token_type == "LPAREN":
                left = self.finish_call(left)
            elif token_type == "LBRACKET":
                left = self.finish_index(left)
            elif token_type == "ASSIGN":
                left = self.finish_assign(left)
            else:
                left = self.infix(left)

        return left

    def prefix(self):
        tok = self.current_token

        if tok.type == "IDENT":
            self.advance()
            node = Identifier(tok.value)
        elif tok.type == "NUMBER":
            self.advance()
            node = NumberLiteral(tok.value)
        elif tok.type == "ASCII":
            self.advance()
            node = AsciiLiteral(tok.value)
        elif tok.type == "STRING":
            self.advance()
            node = StringLiteral(tok.value)
        elif tok.type == "LPAREN":
            self.advance()
            node = self.expr()
            self.eat("RPAREN", "')'")
            return node
        else:
            self.error_here(f"Unexpected token in expression: {self.describe(tok)}")

        node.line = tok.line
        return node

    def infix(self, left):
        op_token = self.current_token
        precedence = PRECEDENCES[op_token.type]
        self.advance()
        right = self.expr(precedence)
        node = BinaryExpression(left, op_token.value, right)
        node.line = op_token.line
        return node

    def finish_call(self, function):
        tok = self.eat("LPAREN")

        args = []
        if self.current_token.type != "RPAREN":
            args.append(self.expr())
            while self.current_token.type == "COMMA":
                self.eat("COMMA")
                args.append(self.expr())

        self.eat("RPAREN", "')' after call arguments")
        node = CallExpression(function, args)
        node.line = tok.line
        return node

    def finish_index(self, array):
        tok = self.eat("LBRACKET")
        index = self.expr()
        self.eat("RBRACKET", "']' after index")
        node = IndexExpression(array, index)
        node.line = tok.line
        return node

    def finish_assign(self, target):
        tok = self.eat("ASSIGN")
        value = self.expr()
        node = AssignExpression(target, value)
        node.line = tok.line
        return node
