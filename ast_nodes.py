BINARY_OPERATORS = ("==", "!=", "<", ">", "<=", ">=", "+", "-", "*", "/", "%")

IMPORT_ALIAS = "alias"
IMPORT_DESTRUCTURED = "destructured"


class ASTNode:
    # Optional source line (1-based). Parser may set this.
    line: int | None = None


class Program(ASTNode):
    def __init__(self, statements):
        self.statements = statements


class VarDeclaration(ASTNode):
    def __init__(self, name, size=None, value=None, is_array=False):
        self.name = name          # variable name
        self.size = size          # expr | None (array length)
        self.value = value        # initializer expr | None
        self.is_array = is_array or size is not None


class FunctionDeclaration(ASTNode):
    def __init__(self, name, params, body):
        self.name = name
        self.params = params      # list[Identifier]
        self.body = body          # BlockStatement


class ReturnStatement(ASTNode):
    def __init__(self, value=None):
        self.value = value


class ExpressionStatement(ASTNode):
    def __init__(self, expression):
        self.expression = expression


class BlockStatement(ASTNode):
    def __init__(self, statements):
        self.statements = statements


class Identifier(ASTNode):
    def __init__(self, name):
        self.name = name


class NumberLiteral(ASTNode):
    def __init__(self, value):
        self.value = value        # digits as written


class AsciiLiteral(ASTNode):
    def __init__(self, value):
        self.value = value        # digits plus trailing marker, e.g. "65a"


class StringLiteral(ASTNode):
    def __init__(self, value):
        self.value = value


class AssignExpression(ASTNode):
    def __init__(self, target, value):
        self.target = target      # Identifier | IndexExpression
        self.value = value


class CallExpression(ASTNode):
    def __init__(self, function, arguments):
        self.function = function
        self.arguments = arguments


class ForLoop(ASTNode):
    def __init__(self, init, condition, increment, body):
        self.init = init
        self.condition = condition
        self.increment = increment
        self.body = body


class WhileLoop(ASTNode):
    def __init__(self, condition, body):
        self.condition = condition
        self.body = body


class ImportStatement(ASTNode):
    def __init__(self, kind, path, alias=None, names=None):
        self.kind = kind          # IMPORT_ALIAS | IMPORT_DESTRUCTURED
        self.path = path
        self.alias = alias
        self.names = names or []  # list[Identifier], destructured form only


class BinaryExpression(ASTNode):
    def __init__(self, left, op, right):
        self.left = left
        self.op = op
        self.right = right


class IndexExpression(ASTNode):
    def __init__(self, array, index):
        self.array = array
        self.index = index
