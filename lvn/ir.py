"""
IR - SSA Form with Basic Blocks

A small LLVM-flavoured intermediate representation: a module holds functions,
a function holds an ordered list of basic blocks, and a block holds an ordered
list of instructions. This is the input to the analysis passes.

Every value class uses identity equality (``eq=False``) so values can key
dictionaries by reference: two syntactically identical instructions are still
two different values.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class Opcode(Enum):
    """Instruction opcodes."""
    # Binary arithmetic / bitwise
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    UDIV = "udiv"
    SDIV = "sdiv"
    UREM = "urem"
    SREM = "srem"
    SHL = "shl"
    LSHR = "lshr"
    ASHR = "ashr"
    AND = "and"
    OR = "or"
    XOR = "xor"
    FADD = "fadd"
    FSUB = "fsub"
    FMUL = "fmul"
    FDIV = "fdiv"
    FREM = "frem"

    # Memory
    LOAD = "load"
    STORE = "store"
    ALLOCA = "alloca"

    # Everything the analysis does not model
    RET = "ret"
    BR = "br"
    ICMP = "icmp"
    CALL = "call"
    GETELEMENTPTR = "getelementptr"
    PHI = "phi"
    SELECT = "select"
    OTHER = "other"


BINARY_OPS = frozenset({
    Opcode.ADD, Opcode.SUB, Opcode.MUL, Opcode.UDIV, Opcode.SDIV,
    Opcode.UREM, Opcode.SREM, Opcode.SHL, Opcode.LSHR, Opcode.ASHR,
    Opcode.AND, Opcode.OR, Opcode.XOR,
    Opcode.FADD, Opcode.FSUB, Opcode.FMUL, Opcode.FDIV, Opcode.FREM,
})

# Operand order is irrelevant for these (a op b == b op a)
COMMUTATIVE_OPS = frozenset({Opcode.ADD, Opcode.MUL, Opcode.FADD, Opcode.FMUL})

_OPCODES_BY_NAME = {op.value: op for op in Opcode}


def opcode_from_name(name: str) -> Opcode:
    """Map an instruction mnemonic to its Opcode (OTHER when unknown)."""
    return _OPCODES_BY_NAME.get(name, Opcode.OTHER)


@dataclass(eq=False)
class Argument:
    """A function parameter."""
    name: str
    type: str = "i32"

    def __str__(self):
        return f"%{self.name}"

    def __repr__(self):
        return f"Argument({self.type} %{self.name})"


@dataclass(eq=False)
class GlobalVariable:
    """A module-level global; always a pointer."""
    name: str
    type: str = "ptr"
    initializer: Optional[str] = None

    def __str__(self):
        return f"@{self.name}"

    def __repr__(self):
        return f"GlobalVariable(@{self.name})"


@dataclass(eq=False)
class ConstantInt:
    """An integer literal. Each occurrence in the IR is its own object."""
    value: int
    type: str = "i32"

    def __str__(self):
        if self.type == "i1":
            return "true" if self.value else "false"
        return str(self.value)

    def __repr__(self):
        return f"#{self.value}"


@dataclass(eq=False)
class Constant:
    """A non-integer literal (null, undef, poison, float, ...)."""
    text: str
    type: str = "ptr"

    def __str__(self):
        return self.text

    def __repr__(self):
        return f"Constant({self.text})"


@dataclass(eq=False)
class Instruction:
    """
    Single SSA instruction: [%name =] opcode operands

    Operand layout by opcode:
      store:  [value, pointer]
      load:   [pointer]            (type is the loaded type)
      binary: [lhs, rhs]           (type is the operand/result type)
      alloca: []                   (allocated_type holds the element type)

    Instructions read from text keep their original rendering in ``text``.
    """
    opcode: Opcode
    operands: list = field(default_factory=list)
    type: str = "void"
    name: Optional[str] = None
    flags: tuple[str, ...] = ()
    align: Optional[int] = None
    allocated_type: Optional[str] = None
    text: Optional[str] = None

    @property
    def is_binary(self) -> bool:
        return self.opcode in BINARY_OPS

    @property
    def value_operand(self) -> "Value":
        """Stored value of a store instruction."""
        return self.operands[0]

    @property
    def pointer_operand(self) -> "Value":
        """Address of a load or store instruction."""
        return self.operands[-1]

    def __str__(self):
        if self.text is not None:
            return self.text
        return self._render()

    def __repr__(self):
        return f"Instruction({self})"

    def _render(self) -> str:
        align = f", align {self.align}" if self.align is not None else ""
        if self.opcode == Opcode.STORE:
            val, ptr = self.operands
            return f"store {val.type} {operand_ref(val)}, {ptr.type} {operand_ref(ptr)}{align}"

        prefix = f"%{self.name} = " if self.name is not None else ""
        if self.opcode == Opcode.LOAD:
            ptr = self.operands[0]
            return f"{prefix}load {self.type}, {ptr.type} {operand_ref(ptr)}{align}"
        if self.opcode == Opcode.ALLOCA:
            return f"{prefix}alloca {self.allocated_type or 'i32'}{align}"
        if self.is_binary:
            lhs, rhs = self.operands
            flags = "".join(f" {f}" for f in self.flags)
            return f"{prefix}{self.opcode.value}{flags} {self.type} {operand_ref(lhs)}, {operand_ref(rhs)}"
        if self.opcode == Opcode.RET:
            if not self.operands:
                return "ret void"
            val = self.operands[0]
            return f"ret {val.type} {operand_ref(val)}"

        ops_str = ", ".join(f"{o.type} {operand_ref(o)}" for o in self.operands)
        return f"{prefix}{self.opcode.value} {ops_str}".rstrip()


# Type alias for anything usable as an operand
Value = Union[Argument, GlobalVariable, ConstantInt, Constant, Instruction]


def operand_ref(value: Value) -> str:
    """How a value is spelled when used as an operand (%x, @g, 5)."""
    if isinstance(value, Instruction):
        return f"%{value.name}"
    return str(value)


@dataclass
class BasicBlock:
    """A basic block: straight-line instruction list."""
    name: str
    instructions: list[Instruction] = field(default_factory=list)

    def __iter__(self):
        return iter(self.instructions)

    def __repr__(self):
        return f"BasicBlock({self.name}, {len(self.instructions)} insts)"


@dataclass
class Function:
    """A function: arguments plus an ordered list of basic blocks."""
    name: str
    return_type: str = "void"
    arguments: list[Argument] = field(default_factory=list)
    blocks: list[BasicBlock] = field(default_factory=list)
    # Parameter list as written on a `declare` line (types only, may hold `...`)
    params_text: Optional[str] = None

    @property
    def is_declaration(self) -> bool:
        """True for external declarations (no body)."""
        return not self.blocks

    def instructions(self):
        """Iterate every instruction in block order."""
        for block in self.blocks:
            yield from block.instructions

    def __repr__(self):
        return f"Function(@{self.name}, {len(self.blocks)} blocks)"


@dataclass
class Module:
    """A compilation unit."""
    name: str = "<module>"
    functions: list[Function] = field(default_factory=list)
    globals: dict[str, GlobalVariable] = field(default_factory=dict)

    def get_function(self, name: str) -> Optional[Function]:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None


def count_instructions(fn: Function) -> int:
    """Count total instructions in a function."""
    return sum(len(block.instructions) for block in fn.blocks)
