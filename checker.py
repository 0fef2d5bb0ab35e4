"""Static self-consistency check for a rendered listing.

The checker walks the text section in order and, without executing anything,
tracks how many 8-byte slots each instruction pushes or pops. Structured
output from the compiler only ever branches forward to a loop end or backward
to a loop top, so a single pass that remembers the depth seen at every label is enough.
"""

import re

from errors import ListingError
from listing import CELL_SIZE

JUMPS = ("jmp", "je", "jne", "jz", "jnz", "jl", "jle", "jg", "jge")

_LABEL_RE = re.compile(r"^([A-Za-z_.][A-Za-z0-9_.]*):$")
_DATA_RE = re.compile(r"^([A-Za-z_.][A-Za-z0-9_.]*):\s+(dq|db|times)\b")
_RSP_ADJUST_RE = re.compile(r"^(add|sub)\s+rsp,\s*(\d+)$")


def stack_effect(instruction):
    """Net number of stack slots an instruction adds (negative when it removes)."""
    text = instruction.split(";", 1)[0].strip()
    if not text:
        return 0

    mnemonic = text.split(None, 1)[0]
    if mnemonic == "push":
        return 1
    if mnemonic == "pop":
        return -1

    m = _RSP_ADJUST_RE.match(text)
    if m:
        slots = int(m.group(2)) // CELL_SIZE
        return -slots if m.group(1) == "add" else slots

    return 0


def split_sections(text):
    data = []
    code = []
    current = None
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith(";"):
            continue
        if line.startswith("section "):
            current = line.split(None, 1)[1]
            continue
        if current == ".data":
            data.append((lineno, line))
        elif current == ".text":
            code.append((lineno, line.split(";", 1)[0].strip()))
        else:
            raise ListingError("Content outside of any section", lineno)
    return data, code


class ListingChecker:
    def __init__(self, text):
        self.data, self.code = split_sections(text)
        self.symbols = {}       # name -> listing line of its definition
        self.externs = set()
        self.globals = set()
        self.labels = set()

    def run(self):
        self.collect_symbols()
        self.check_targets()
        self.simulate_stack()

    def define(self, name, lineno):
        if name in self.symbols:
            raise ListingError(f"Symbol defined more than once: {name}", lineno)
        self.symbols[name] = lineno

    def collect_symbols(self):
        for lineno, line in self.data:
            m = _DATA_RE.match(line)
            if not m:
                raise ListingError(f"Unrecognised data definition: {line}", lineno)
            self.define(m.group(1), lineno)

        for lineno, line in self.code:
            if line.startswith("extern "):
                self.externs.add(line.split(None, 1)[1])
                continue
            if line.startswith("global "):
                self.globals.add(line.split(None, 1)[1])
                continue
            m = _LABEL_RE.match(line)
            if m:
                self.define(m.group(1), lineno)
                self.labels.add(m.group(1))

        for name in self.externs:
            if name in self.symbols:
                raise ListingError(f"External symbol is also defined here: {name}", self.symbols[name])
        for name in self.globals:
            if name not in self.labels:
                raise ListingError(f"Global symbol has no label: {name}")

    def check_targets(self):
        for lineno, line in self.code:
            parts = line.split(None, 1)
            if len(parts) != 2:
                continue
            mnemonic, operand = parts
            if mnemonic in JUMPS and operand not in self.labels:
                raise ListingError(f"Jump to undefined label: {operand}", lineno)
            if mnemonic == "call" and operand not in self.labels and operand not in self.externs:
                raise ListingError(f"Call to undefined function: {operand}", lineno)

    def simulate_stack(self):
        depth = None            # None: not reachable by falling through
        frame = None            # depth saved by "mov rbp, rsp"
        expected = {}           # label -> depth every path must arrive with

        def arrive(label, at, lineno):
            known = expected.get(label)
            if known is not None and known != at:
                raise ListingError(
                    f"Stack depth mismatch at {label}: {at} here, {known} elsewhere", lineno
                )
            expected[label] = at

        for i, (lineno, line) in enumerate(self.code):
            if line.startswith(("extern ", "global ")):
                continue

            m = _LABEL_RE.match(line)
            if m:
                name = m.group(1)
                if name in self.globals:
                    # routine entry: the caller's return address is not counted
                    depth, frame = 0, None
                elif depth is not None:
                    arrive(name, depth, lineno)
                else:
                    depth = expected.get(name)
                continue

            if depth is None:
                continue

            parts = line.split(None, 1)
            mnemonic = parts[0]
            operand = parts[1] if len(parts) == 2 else ""

            if mnemonic in JUMPS:
                arrive(operand, depth, lineno)
                if mnemonic == "jmp":
                    depth = None
            elif line == "mov rbp, rsp":
                frame = depth
            elif line == "mov rsp, rbp":
                if frame is None:
                    raise ListingError("Frame pointer restored without a frame", lineno)
                depth = frame
            elif mnemonic == "ret":
                if depth != 0:
                    raise ListingError(f"ret with {depth} slot(s) left on the stack", lineno)
                depth = None
            elif mnemonic == "syscall" and i >= 2 and self.code[i - 2][1] == "mov rax, 60":
                # exit sequence: mov rax, 60 / xor rdi, rdi / syscall
                if depth != 0:
                    raise ListingError(f"Process exits with {depth} slot(s) left on the stack", lineno)
                depth = None
            else:
                depth += stack_effect(line)
                if depth < 0:
                    raise ListingError("Stack underflow", lineno)


def check_listing(text):
    ListingChecker(text).run()
