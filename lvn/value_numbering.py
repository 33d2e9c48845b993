"""
Local Value Numbering

Assigns every distinct value an integer value number while walking the
instructions of a function in program order, and reports binary operations
whose (opcode, operand numbers) key was already computed earlier in the walk.

The analysis is read-only: it never touches the instructions it visits.
Numbering state lives in a NumberingStore created per function run, so two
runs over the same function produce identical numbers.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from .ir import COMMUTATIVE_OPS, ConstantInt, Function, Instruction, Opcode, Value
from .printing import format_binary, format_load, format_store


@dataclass
class NumberingStore:
    """Value numbers for values, pointers and integer literals.

    All three maps are keyed per function run. Values and pointers are keyed
    by object identity; literals by their integer value.
    """

    intern_constants: bool = True
    next_number: int = 1

    # Maps value (by identity) -> value number
    value_numbers: dict[object, int] = field(default_factory=dict)

    # Maps pointer (by identity) -> number of the value last stored through it
    pointer_numbers: dict[object, int] = field(default_factory=dict)

    # Maps integer literal -> value number
    constant_numbers: dict[int, int] = field(default_factory=dict)

    def _allocate(self) -> int:
        number = self.next_number
        self.next_number += 1
        return number

    def number_of(self, value: Value) -> int:
        """Return the value's number, allocating one on first sight."""
        number = self.value_numbers.get(value)
        if number is None:
            number = self._allocate()
            self.value_numbers[value] = number
        return number

    def number_of_constant(self, literal: int) -> int:
        """Return the number for an integer literal; equal literals share one."""
        number = self.constant_numbers.get(literal)
        if number is None:
            number = self._allocate()
            self.constant_numbers[literal] = number
        return number

    def resolve(self, operand: Value) -> int:
        """Number an operand, interning integer literals when enabled."""
        if self.intern_constants and isinstance(operand, ConstantInt):
            return self.number_of_constant(operand.value)
        return self.number_of(operand)

    def assign(self, value: Value, number: int):
        """Bind an instruction result to an already known number."""
        self.value_numbers[value] = number

    def fresh(self, value: Value) -> int:
        """Bind an instruction result to a newly allocated number."""
        number = self._allocate()
        self.value_numbers[value] = number
        return number

    def record_pointer_number(self, pointer: Value, number: int):
        """Last write wins: the pointer now holds the given value number."""
        self.pointer_numbers[pointer] = number

    def pointer_number(self, pointer: Value) -> Optional[int]:
        return self.pointer_numbers.get(pointer)


@dataclass(frozen=True, order=True)
class Expression:
    """Canonical (opcode, lhs, rhs) key for a binary operation."""
    opcode: str
    lhs: int
    rhs: int

    @classmethod
    def canonical(cls, opcode: Opcode, lhs: int, rhs: int) -> "Expression":
        """Build the key; commutative opcodes put the smaller number first."""
        if opcode in COMMUTATIVE_OPS and lhs > rhs:
            lhs, rhs = rhs, lhs
        return cls(opcode.value, lhs, rhs)


@dataclass
class NumberedInstruction:
    """What the walker decided for one handled instruction."""
    instruction: Instruction
    number: int                      # destination number (pointer's for stores)
    operands: tuple[Optional[int], ...]
    redundant: bool = False
    line: str = ""


@dataclass
class ValueNumbering:
    """Result of numbering one function."""
    function: Function
    store: NumberingStore
    table: dict[Expression, int] = field(default_factory=dict)
    records: list[NumberedInstruction] = field(default_factory=list)

    def number(self, value: Value) -> Optional[int]:
        """Value number of an instruction result or operand, if any."""
        return self.store.value_numbers.get(value)

    @property
    def redundant(self) -> list[NumberedInstruction]:
        return [r for r in self.records if r.redundant]

    @property
    def lines(self) -> list[str]:
        return [r.line for r in self.records]


def number_function(
    fn: Function,
    emit: Optional[Callable[[str], None]] = None,
    intern_constants: bool = True,
    column_width: int = 40,
) -> ValueNumbering:
    """
    Run local value numbering over every block of a function.

    Args:
        fn: The function to analyse (not modified)
        emit: Called with each diagnostic line as soon as it is produced
        intern_constants: Give equal integer literals the same number
        column_width: Column the instruction text is padded to

    Returns:
        ValueNumbering with the store, redundancy table and per-instruction records
    """
    store = NumberingStore(intern_constants=intern_constants)
    result = ValueNumbering(fn, store)

    for block in fn.blocks:
        for inst in block.instructions:
            if inst.opcode == Opcode.STORE:
                record = _number_store(inst, store, column_width)
            elif inst.opcode == Opcode.LOAD:
                record = _number_load(inst, store, column_width)
            elif inst.is_binary:
                record = _number_binary(inst, store, result.table, column_width)
            else:
                continue

            result.records.append(record)
            if emit is not None:
                emit(record.line)

    return result


def _number_store(inst: Instruction, store: NumberingStore, width: int) -> NumberedInstruction:
    value_number = store.resolve(inst.value_operand)
    store.record_pointer_number(inst.pointer_operand, value_number)
    return NumberedInstruction(
        inst, value_number, (value_number,),
        line=format_store(inst, value_number, value_number, width),
    )


def _number_load(inst: Instruction, store: NumberingStore, width: int) -> NumberedInstruction:
    ptr_number = store.pointer_number(inst.pointer_operand)
    if ptr_number is not None:
        store.assign(inst, ptr_number)
        number = ptr_number
    else:
        # Address not written yet: an opaque incoming value
        number = store.fresh(inst)
    return NumberedInstruction(
        inst, number, (ptr_number,),
        line=format_load(inst, number, ptr_number, width),
    )


def _number_binary(
    inst: Instruction,
    store: NumberingStore,
    table: dict[Expression, int],
    width: int,
) -> NumberedInstruction:
    lhs_op, rhs_op = inst.operands
    lhs = store.resolve(lhs_op)
    rhs = store.resolve(rhs_op)
    expr = Expression.canonical(inst.opcode, lhs, rhs)

    existing = table.get(expr)
    if existing is not None:
        store.assign(inst, existing)
        number, redundant = existing, True
    else:
        number, redundant = store.fresh(inst), False
        table[expr] = number

    return NumberedInstruction(
        inst, number, (lhs, rhs), redundant,
        line=format_binary(inst, number, lhs, rhs, redundant, width),
    )
