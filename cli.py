import logging
import sys
import traceback

from checker import check_listing
from compiler import Compiler
from errors import CompileError, InternalCompilerError, LexError, ListingError
from lexer import Lexer
from parser import Parser

log = logging.getLogger("manu.cli")

OUTPUT_PATH = "output.asm"


# Outline printer for the parse command
def ast_to_dict(node):
    if node is None:
        return None

    t = node.__class__.__name__
    d = {"type": t}

    if t in ("Program", "BlockStatement"):
        d["statements"] = [ast_to_dict(s) for s in node.statements]
    elif t == "VarDeclaration":
        d["name"] = node.name
        if node.is_array:
            d["size"] = ast_to_dict(node.size)
        d["value"] = ast_to_dict(node.value)
    elif t == "FunctionDeclaration":
        d["name"] = node.name
        d["params"] = [p.name for p in node.params]
        d["body"] = ast_to_dict(node.body)
    elif t == "ReturnStatement":
        d["value"] = ast_to_dict(node.value)
    elif t == "ExpressionStatement":
        d["expression"] = ast_to_dict(node.expression)
    elif t == "Identifier":
        d["name"] = node.name
    elif t in ("NumberLiteral", "AsciiLiteral", "StringLiteral"):
        d["value"] = node.value
    elif t == "AssignExpression":
        d["target"] = ast_to_dict(node.target)
        d["value"] = ast_to_dict(node.value)
    elif t == "CallExpression":
        d["function"] = ast_to_dict(node.function)
        d["arguments"] = [ast_to_dict(a) for a in node.arguments]
    elif t == "ForLoop":
        d["init"] = ast_to_dict(node.init)
        d["condition"] = ast_to_dict(node.condition)
        d["increment"] = ast_to_dict(node.increment)
        d["body"] = ast_to_dict(node.body)
    elif t == "WhileLoop":
        d["condition"] = ast_to_dict(node.condition)
        d["body"] = ast_to_dict(node.body)
    elif t == "ImportStatement":
        d["kind"] = node.kind
        d["path"] = node.path
        if node.alias is not None:
            d["alias"] = node.alias
        if node.names:
            d["names"] = [n.name for n in node.names]
    elif t == "BinaryExpression":
        d["op"] = node.op
        d["left"] = ast_to_dict(node.left)
        d["right"] = ast_to_dict(node.right)
    elif t == "IndexExpression":
        d["array"] = ast_to_dict(node.array)
        d["index"] = ast_to_dict(node.index)
    else:
        d["raw"] = str(node)

    return d


def pretty(obj, indent=0):
    sp = "  " * indent
    if isinstance(obj, dict):
        lines = []
        for k, v in obj.items():
            if isinstance(v, (dict, list)) and v:
                lines.append(f"{sp}{k}:")
                lines.append(pretty(v, indent + 1))
            else:
                lines.append(f"{sp}{k}: {v}")
        return "\n".join(lines)
    if isinstance(obj, list):
        lines = []
        for item in obj:
            if isinstance(item, (dict, list)):
                lines.append(f"{sp}-")
                lines.append(pretty(item, indent + 1))
            else:
                # names and params are plain strings
                lines.append(f"{sp}- {item}")
        return "\n".join(lines)
    return f"{sp}{obj}"


def read_source(path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except OSError as e:
        print(f"Error opening input file: {e.strerror}", file=sys.stderr)
        sys.exit(1)
    except UnicodeDecodeError as e:
        print(f"Error reading input file: not valid UTF-8 at byte {e.start}", file=sys.stderr)
        sys.exit(1)


def parse_source(code):
    parser = Parser(Lexer(code))
    program = parser.parse()
    return program, parser.errors


def transpile(code, annotate=True):
    """Source text to a checked listing. Raises ManuError subclasses on failure."""
    program, errors = parse_source(code)
    if errors:
        raise CompileError(f"{len(errors)} parse error(s)")

    listing = Compiler(annotate=annotate).compile(program)
    text = listing.render()
    check_listing(text)
    return text


def cmd_parse(path, debug=False):
    code = read_source(path)
    try:
        program, errors = parse_source(code)
    except LexError as e:
        if debug:
            traceback.print_exc()
        print(f"Parse error: {e}", file=sys.stderr)
        sys.exit(1)

    print(pretty(ast_to_dict(program)))
    if errors:
        print(f"Parse error: {len(errors)} error(s) reported", file=sys.stderr)
        sys.exit(1)


def cmd_build(path, output_path=OUTPUT_PATH, annotate=True, debug=False):
    code = read_source(path)
    try:
        text = transpile(code, annotate=annotate)
    except (InternalCompilerError, ListingError) as e:
        if debug:
            traceback.print_exc()
        print(f"Internal compiler error: {e}", file=sys.stderr)
        sys.exit(2)
    except (LexError, CompileError) as e:
        if debug:
            traceback.print_exc()
        print(f"Build error: {e}", file=sys.stderr)
        sys.exit(1)

    # Only a complete, checked listing reaches the disk.
    try:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
    except OSError as e:
        print(f"Error opening output file: {e.strerror}", file=sys.stderr)
        sys.exit(1)

    log.debug("wrote %d bytes to %s", len(text), output_path)
    print(f"Transpilation successful! Assembly code written to {output_path}")


def print_usage():
    print("Usage:")
    print("  python cli.py build <file.manu> [-o output.asm] [--no-comments]")
    print("  python cli.py parse <file.manu>")
    print("  python cli.py <file.manu>          (same as build)")
    print("  (optional) --debug to show Python traceback")


def main():
    args = sys.argv[1:]

    debug = False
    if "--debug" in args:
        debug = True
        args.remove("--debug")

    annotate = True
    if "--no-comments" in args:
        annotate = False
        args.remove("--no-comments")

    output_path = OUTPUT_PATH
    if "-o" in args:
        i = args.index("-o")
        if i + 1 >= len(args):
            print_usage()
            sys.exit(1)
        output_path = args[i + 1]
        del args[i:i + 2]

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if not args:
        print_usage()
        sys.exit(1)

    cmd = args[0]
    if cmd in ("parse", "build"):
        if len(args) != 2:
            print_usage()
            sys.exit(1)
        path = args[1]
    else:
        if len(args) != 1:
            print_usage()
            sys.exit(1)
        cmd, path = "build", args[0]

    if cmd == "parse":
        cmd_parse(path, debug=debug)
    else:
        cmd_build(path, output_path=output_path, annotate=annotate, debug=debug)


if __name__ == "__main__":
    main()
