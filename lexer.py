from errors import LexError


KEYWORDS = {
    "var": "VAR",
    "return": "RETURN",
    "for": "FOR",
    "while": "WHILE",
    "import": "IMPORT",
    "as": "AS",
    "from": "FROM",
    "func": "FUNC",
}

TWO_CHAR_TOKENS = {
    "==": "EQEQ",
    "!=": "NOTEQ",
    "<=": "LTE",
    ">=": "GTE",
}

SINGLE_CHAR_TOKENS = {
    "=": "ASSIGN",
    "<": "LT",
    ">": "GT",
    "(": "LPAREN",
    ")": "RPAREN",
    "{": "LBRACE",
    "}": "RBRACE",
    "[": "LBRACKET",
    "]": "RBRACKET",
    ",": "COMMA",
    ";": "SEMICOLON",
    ".": "DOT",
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "%": "PERCENT",
}


# Source text is ASCII; other letters and digits are rejected as unexpected characters.
def is_digit(ch):
    return ch is not None and "0" <= ch <= "9"


def is_ident_start(ch):
    return ch is not None and (ch == "_" or "a" <= ch <= "z" or "A" <= ch <= "Z")


def is_ident_char(ch):
    return is_ident_start(ch) or is_digit(ch)


class Token:
    def __init__(self, type, value="", line=1, column=0):
        self.type = type
        self.value = value
        self.line = line
        self.column = column

    def __repr__(self):
        if self.value:
            return f"{self.type}({self.value})"
        return f"{self.type}"


class Lexer:
    def __init__(self, text):
        self.text = text
        self.pos = 0
        self.current_char = text[0] if text else None
        self.line = 1
        self.column = 0

    def advance(self):
        # track line/column based on current_char before moving
        if self.current_char == "\n":
            self.line += 1
            self.column = 0
        else:
            self.column += 1
        self.pos += 1
        if self.pos >= len(self.text):
            self.current_char = None
        else:
            self.current_char = self.text[self.pos]

    def peek(self):
        nxt = self.pos + 1
        if nxt >= len(self.text):
            return None
        return self.text[nxt]

    def skip_whitespace(self):
        while self.current_char and self.current_char.isspace():
            self.advance()

    def skip_comment(self):
        while self.current_char and self.current_char != "\n":
            self.advance()

    def read_identifier(self):
        start_line, start_col = self.line, self.column
        result = ""
        while is_ident_char(self.current_char):
            result += self.current_char
            self.advance()

        token_type = KEYWORDS.get(result, "IDENT")
        return Token(token_type, result, line=start_line, column=start_col)

    def read_number(self):
        start_line, start_col = self.line, self.column
        result = ""
        while is_digit(self.current_char):
            result += self.current_char
            self.advance()

        # character code literal: 65a
        nxt = self.peek()
        if self.current_char == "a" and not is_ident_char(nxt):
            result += "a"
            self.advance()
            return Token("ASCII", result, line=start_line, column=start_col)

        return Token("NUMBER", result, line=start_line, column=start_col)

    def read_string(self):
        start_line, start_col = self.line, self.column
        self.advance()  # skip opening quote
        result = ""

        while self.current_char is not None and self.current_char != '"':
            result += self.current_char
            self.advance()

        if self.current_char is None:
            raise LexError("Unterminated string literal", start_line, start_col)

        self.advance()  # skip closing quote
        return Token("STRING", result, line=start_line, column=start_col)

    def get_next_token(self):
        while self.current_char:

            if self.current_char.isspace():
                self.skip_whitespace()
                continue

            # comments
            if self.current_char == "/" and self.peek() == "/":
                self.skip_comment()
                continue

            # identifiers / keywords
            if is_ident_start(self.current_char):
                return self.read_identifier()

            if is_digit(self.current_char):
                return self.read_number()

            if self.current_char == '"':
                return self.read_string()

            start_line, start_col = self.line, self.column

            pair = self.current_char + (self.peek() or "")
            if pair in TWO_CHAR_TOKENS:
                self.advance()
                self.advance()
                return Token(TWO_CHAR_TOKENS[pair], pair, line=start_line, column=start_col)

            if self.current_char in SINGLE_CHAR_TOKENS:
                ch = self.current_char
                self.advance()
                return Token(SINGLE_CHAR_TOKENS[ch], ch, line=start_line, column=start_col)

            raise LexError(f"Unexpected character '{self.current_char}'", self.line, self.column)

        return Token("EOF", "", line=self.line, column=self.column)

    def tokens(self):
        # every token up to and including EOF
        out = []
        while True:
            tok = self.get_next_token()
            out.append(tok)
            if tok.type == "EOF":
                return out
