CELL_SIZE = 8
ENTRY_LABEL = "_start"
INDENT = "    "

# Source names are prefixed so they never meet generated labels or register names.
VARIABLE_PREFIX = "v_"
FUNCTION_PREFIX = "f_"

# x86-64 register names NASM will not accept as plain symbols.
REGISTERS = frozenset(
    [f"r{n}" for n in ("ax", "bx", "cx", "dx", "si", "di", "sp", "bp")]
    + [f"e{n}" for n in ("ax", "bx", "cx", "dx", "si", "di", "sp", "bp")]
    + ["ax", "bx", "cx", "dx", "si", "di", "sp", "bp"]
    + ["al", "bl", "cl", "dl", "ah", "bh", "ch", "dh", "sil", "dil", "spl", "bpl"]
    + [f"r{n}{s}" for n in range(8, 16) for s in ("", "d", "w", "b")]
    + ["rip", "cs", "ds", "es", "fs", "gs", "ss"]
)


def variable_symbol(name):
    return VARIABLE_PREFIX + name


def function_symbol(name):
    return FUNCTION_PREFIX + name


def db_operands(text):
    # NASM db operand list: printable runs quoted, everything else as byte values, NUL-terminated.
    parts = []
    run = ""
    for byte in text.encode("utf-8"):
        if 0x20 <= byte < 0x7F and byte != ord('"'):
            run += chr(byte)
            continue
        if run:
            parts.append(f'"{run}"')
            run = ""
        parts.append(str(byte))
    if run:
        parts.append(f'"{run}"')
    parts.append("0")
    return ", ".join(parts)


class Routine:
    def __init__(self, label):
        self.label = label
        self.lines = []


class AssemblyListing:
    def __init__(self):
        self.storage = {}        # name -> cell count (8-byte cells, zero-initialized)
        self.strings = {}        # label -> text
        self.externs = []        # symbols provided by other objects
        self.globals = [ENTRY_LABEL]
        self.entry = Routine(ENTRY_LABEL)
        self.routines = []       # hoisted function bodies, in declaration order

    def define_storage(self, name, cells=1):
        # one definition per name; a later, larger array declaration widens it
        self.storage[name] = max(cells, self.storage.get(name, 0))

    def define_bytes(self, label, text):
        if label in self.strings:
            raise ValueError(f"string label already defined: {label}")
        self.strings[label] = text

    def declare_extern(self, name):
        if name not in self.externs:
            self.externs.append(name)

    def declare_global(self, name):
        if name not in self.globals:
            self.globals.append(name)

    def new_routine(self, label):
        routine = Routine(label)
        self.routines.append(routine)
        return routine

    def symbols(self):
        # every name this listing defines itself
        names = set(self.storage) | set(self.strings)
        names.update(routine.label for routine in [self.entry] + self.routines)
        return names

    def data_lines(self):
        lines = []
        for name, cells in self.storage.items():
            if cells == 1:
                lines.append(f"{name}: dq 0")
            else:
                lines.append(f"{name}: times {cells} dq 0")
        for label, text in self.strings.items():
            lines.append(f"{label}: db {db_operands(text)}")
        return lines

    def render(self):
        out = ["; Transpiled Assembly Code"]

        data = self.data_lines()
        if data:
            out.append("section .data")
            out.extend(data)
            out.append("")

        out.append("section .text")
        for name in self.externs:
            out.append(f"extern {name}")
        for name in self.globals:
            out.append(f"global {name}")

        for routine in [self.entry] + self.routines:
            out.append("")
            out.append(f"{routine.label}:")
            out.extend(routine.lines)

        return "\n".join(out) + "\n"
