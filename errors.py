class ManuError(Exception):
    pass


class PositionedError(ManuError):
    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        if self.column is None:
            return f"{self.message} at line {self.line}"
        return f"{self.message} at line {self.line}, col {self.column}"


class LexError(PositionedError):
    pass


class ParseError(PositionedError):
    pass


class CompileError(PositionedError):
    # Source that parses but cannot be lowered (bad assignment target, bad array size, ...)
    def __init__(self, message: str, line: int | None = None):
        super().__init__(message, line)


class InternalCompilerError(ManuError):
    # The tree handed to the compiler breaks the parser's contract.
    pass


class ListingError(ManuError):
    def __init__(self, message: str, listing_line: int | None = None):
        super().__init__(message)
        self.message = message
        self.listing_line = listing_line

    def __str__(self) -> str:
        if self.listing_line is None:
            return self.message
        return f"{self.message} (listing line {self.listing_line})"
