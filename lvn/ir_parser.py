"""
Textual IR Reader

Parses the subset of LLVM textual IR that clang emits for simple functions
into lvn.ir objects. Memory and arithmetic instructions are decoded into
operands; every other instruction is kept verbatim, but its result name is
still bound so later uses refer to the same object.

Each integer literal occurrence becomes its own ConstantInt object. Constant
expressions such as `getelementptr inbounds (...)` are module-level constants:
every spelling of the same expression is one shared Constant.
"""

import re
from pathlib import Path
from typing import Optional

from .ir import (
    Argument, GlobalVariable, ConstantInt, Constant, Instruction, Opcode, Value,
    BasicBlock, Function, Module, BINARY_OPS, opcode_from_name,
)


class IRParseError(ValueError):
    """Malformed IR text."""

    def __init__(self, message: str, line_no: Optional[int] = None):
        self.line_no = line_no
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)


_NAME = r'[-\w.$]+'
_DEFINE_RE = re.compile(rf'^define\s+(?P<head>[^@]*)@(?P<name>{_NAME})\((?P<params>.*)\)(?P<tail>[^{{]*)\{{$')
_DECLARE_RE = re.compile(rf'^declare\s+(?P<head>[^@]*)@(?P<name>{_NAME})\((?P<params>.*)\)')
_GLOBAL_RE = re.compile(rf'^@(?P<name>{_NAME})\s*=\s*(?P<rest>.*)$')
_LABEL_RE = re.compile(rf'^(?P<label>{_NAME}):$')
_INST_RE = re.compile(rf'^(?:%(?P<name>{_NAME})\s*=\s*)?(?P<opcode>[a-z_]\w*)\s*(?P<rest>.*)$')
_SKIP_RE = re.compile(rf'^(target\b|source_filename\b|attributes\b|module\b|uselistorder\b|!|\$|%{_NAME}\s*=\s*type\b)')
_INT_RE = re.compile(r'^-?\d+$')
_ALIGN_RE = re.compile(r'^align\s+(\d+)$')
_METADATA_RE = re.compile(r',\s*!.*$')

_BINARY_FLAGS = {
    "nuw", "nsw", "exact", "disjoint",
    # fast-math flags on floating-point operations
    "fast", "nnan", "ninf", "nsz", "arcp", "contract", "afn", "reassoc",
}


def _strip_comment(line: str) -> str:
    """Drop a trailing `; comment` that is not inside a string literal."""
    in_string = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_string = not in_string
        elif ch == ';' and not in_string:
            return line[:i]
    return line


def _is_constant_expr(text: str) -> bool:
    """`getelementptr (...)`, `ptrtoint (... to i64)` and friends."""
    text = text.strip()
    return "(" in text and text.endswith(")")


def _split_top_level(text: str) -> list[str]:
    """Split on commas that are not nested in (), [], {} or <>."""
    parts, depth, start = [], 0, 0
    for i, ch in enumerate(text):
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        elif ch == ',' and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
    tail = text[start:].strip()
    if tail:
        parts.append(tail)
    return parts


class _FunctionScope:
    """Name bindings for one function body, with forward references."""

    def __init__(self, fn: Function):
        self.fn = fn
        self.values: dict[str, Value] = {}
        # name -> line of first use, for values used before their definition
        self.pending: dict[str, int] = {}
        self.slot = 0

    def next_slot(self) -> str:
        slot = str(self.slot)
        self.slot += 1
        return slot

    def lookup(self, name: str, line_no: int) -> Value:
        value = self.values.get(name)
        if value is None:
            value = Instruction(Opcode.OTHER, name=name)
            self.values[name] = value
            self.pending[name] = line_no
        return value

    def define(self, name: str, line_no: int) -> Instruction:
        """Return the object a result named `name` should be built into."""
        if name in self.pending:
            del self.pending[name]
            return self.values[name]
        if name in self.values:
            raise IRParseError(f"redefinition of value %{name}", line_no)
        inst = Instruction(Opcode.OTHER, name=name)
        self.values[name] = inst
        return inst


class IRParser:
    """Line-oriented reader for a single module."""

    def __init__(self, name: str = "<stdin>"):
        self.module = Module(name)
        self._scope: Optional[_FunctionScope] = None
        self._block: Optional[BasicBlock] = None
        self._define_line = 0
        self._constant_exprs: dict[str, Constant] = {}

    def parse(self, text: str) -> Module:
        for line_no, raw in enumerate(text.splitlines(), 1):
            line = _strip_comment(raw).strip()
            if not line:
                continue
            if self._scope is None:
                self._parse_top_level(line, line_no)
            else:
                self._parse_body_line(line, line_no)

        if self._scope is not None:
            raise IRParseError(
                f"unterminated function @{self._scope.fn.name}", self._define_line
            )
        return self.module

    # === Top level ===

    def _parse_top_level(self, line: str, line_no: int):
        if _SKIP_RE.match(line):
            return

        m = _DEFINE_RE.match(line)
        if m:
            self._begin_function(m, line_no)
            return
        if line.startswith("define"):
            raise IRParseError("malformed function definition", line_no)

        m = _DECLARE_RE.match(line)
        if m:
            self.module.functions.append(Function(
                m.group("name"), self._return_type(m.group("head")),
                params_text=m.group("params").strip(),
            ))
            return
        if line.startswith("declare"):
            raise IRParseError("malformed function declaration", line_no)

        m = _GLOBAL_RE.match(line)
        if m:
            gv = self._global(m.group("name"))
            gv.initializer = m.group("rest")
            return

        raise IRParseError("instruction outside of a function", line_no)

    @staticmethod
    def _return_type(head: str) -> str:
        tokens = head.split()
        return tokens[-1] if tokens else "void"

    def _begin_function(self, m: re.Match, line_no: int):
        fn = Function(m.group("name"), self._return_type(m.group("head")))
        scope = _FunctionScope(fn)
        for param in _split_top_level(m.group("params")):
            if param == "...":
                continue
            tokens = param.split()
            if tokens[-1].startswith("%"):
                name = tokens[-1][1:]
                if name.isdigit():
                    scope.slot = int(name) + 1
            else:
                name = scope.next_slot()
            if name in scope.values:
                raise IRParseError(f"redefinition of argument %{name}", line_no)
            arg = Argument(name, tokens[0])
            fn.arguments.append(arg)
            scope.values[name] = arg

        self.module.functions.append(fn)
        self._scope = scope
        self._block = None
        self._define_line = line_no

    def _end_function(self):
        scope = self._scope
        if scope.pending:
            name, use_line = next(iter(scope.pending.items()))
            raise IRParseError(f"use of undefined value %{name}", use_line)
        self._scope = None
        self._block = None

    # === Function bodies ===

    def _parse_body_line(self, line: str, line_no: int):
        if line == "}":
            self._end_function()
            return

        m = _LABEL_RE.match(line)
        if m:
            self._block = BasicBlock(m.group("label"))
            self._scope.fn.blocks.append(self._block)
            return

        m = _INST_RE.match(line)
        if m is None or line.startswith("define"):
            raise IRParseError(f"cannot parse instruction: {line}", line_no)

        if self._block is None:
            # Unlabelled entry block takes the next numeric slot
            self._block = BasicBlock(self._scope.next_slot())
            self._scope.fn.blocks.append(self._block)

        self._block.instructions.append(self._parse_instruction(m, line, line_no))

    def _parse_instruction(self, m: re.Match, line: str, line_no: int) -> Instruction:
        name = m.group("name")
        opcode = opcode_from_name(m.group("opcode"))
        if name is not None:
            inst = self._scope.define(name, line_no)
        else:
            inst = Instruction(opcode)
        inst.opcode = opcode
        inst.text = line

        rest = _METADATA_RE.sub("", m.group("rest"))
        if opcode == Opcode.STORE:
            self._parse_store(inst, rest, line_no)
        elif opcode == Opcode.LOAD:
            self._parse_load(inst, rest, line_no)
        elif opcode == Opcode.ALLOCA:
            parts = _split_top_level(rest)
            inst.type = "ptr"
            inst.allocated_type = parts[0] if parts else None
            inst.align = self._align(parts[1:])
        elif opcode in BINARY_OPS:
            self._parse_binary(inst, rest, line_no)
        return inst

    def _parse_store(self, inst: Instruction, rest: str, line_no: int):
        parts = _split_top_level(rest)
        if len(parts) < 2:
            raise IRParseError("store expects a value and a pointer operand", line_no)
        value = self._typed_operand(parts[0], line_no)
        pointer = self._typed_operand(parts[1], line_no)
        inst.operands = [value, pointer]
        inst.align = self._align(parts[2:])

    def _parse_load(self, inst: Instruction, rest: str, line_no: int):
        parts = _split_top_level(rest)
        if len(parts) < 2:
            raise IRParseError("load expects a type and a pointer operand", line_no)
        inst.type = parts[0].removeprefix("volatile").strip()
        inst.operands = [self._typed_operand(parts[1], line_no)]
        inst.align = self._align(parts[2:])

    def _parse_binary(self, inst: Instruction, rest: str, line_no: int):
        parts = _split_top_level(rest)
        if len(parts) != 2:
            raise IRParseError(f"{inst.opcode.value} expects two operands", line_no)
        tokens = parts[0].split()
        flags = []
        while tokens and tokens[0] in _BINARY_FLAGS:
            flags.append(tokens.pop(0))
        if len(tokens) < 2:
            raise IRParseError(f"{inst.opcode.value} expects a type and two operands", line_no)
        inst.flags = tuple(flags)
        if _is_constant_expr(parts[0]):
            inst.type, lhs = tokens[0], " ".join(tokens[1:])
        else:
            inst.type, lhs = " ".join(tokens[:-1]), tokens[-1]
        inst.operands = [
            self._operand(lhs, inst.type, line_no),
            self._operand(parts[1], inst.type, line_no),
        ]

    @staticmethod
    def _align(parts: list[str]) -> Optional[int]:
        for part in parts:
            m = _ALIGN_RE.match(part)
            if m:
                return int(m.group(1))
        return None

    # === Operands ===

    def _typed_operand(self, text: str, line_no: int) -> Value:
        tokens = text.split()
        if tokens and tokens[0] == "volatile":
            tokens = tokens[1:]
        if len(tokens) < 2:
            raise IRParseError(f"expected '<type> <value>', got '{text}'", line_no)
        if _is_constant_expr(text):
            return self._operand(" ".join(tokens[1:]), tokens[0], line_no)
        return self._operand(tokens[-1], " ".join(tokens[:-1]), line_no)

    def _operand(self, token: str, type: str, line_no: int) -> Value:
        if token.startswith("%"):
            return self._scope.lookup(token[1:], line_no)
        if token.startswith("@"):
            return self._global(token[1:])
        if _INT_RE.match(token):
            return ConstantInt(int(token), type)
        if token in ("true", "false"):
            return ConstantInt(1 if token == "true" else 0, "i1")
        if _is_constant_expr(token):
            return self._constant_expr(token, type)
        return Constant(token, type)

    def _constant_expr(self, text: str, type: str) -> Constant:
        key = " ".join(text.split())
        expr = self._constant_exprs.get(key)
        if expr is None:
            expr = Constant(key, type)
            self._constant_exprs[key] = expr
        return expr

    def _global(self, name: str) -> GlobalVariable:
        gv = self.module.globals.get(name)
        if gv is None:
            gv = GlobalVariable(name)
            self.module.globals[name] = gv
        return gv


def parse_module(text: str, name: str = "<stdin>") -> Module:
    """Parse IR text into a Module."""
    return IRParser(name).parse(text)


def parse_file(path) -> Module:
    """Parse an IR file into a Module named after the file."""
    path = Path(path)
    return parse_module(path.read_text(), name=path.name)
