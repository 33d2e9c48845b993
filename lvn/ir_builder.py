"""
IR Builder - Functional SSA API

Provides a builder API for constructing functions block by block.
"""

from typing import Optional

from .ir import (
    Argument, GlobalVariable, ConstantInt, Instruction, Opcode, Value,
    BasicBlock, Function,
)


class IRBuilder:
    """Builder for constructing a Function in SSA form."""

    def __init__(self, name: str = "f", return_type: str = "void"):
        self._name = name
        self._return_type = return_type
        self._slot_counter = 0
        self._arguments: list[Argument] = []
        self._blocks: list[BasicBlock] = [BasicBlock("entry")]

    def _new_name(self, name: Optional[str]) -> str:
        """Use the given name or take the next numeric slot."""
        if name is not None:
            return name
        slot = str(self._slot_counter)
        self._slot_counter += 1
        return slot

    def _emit(self, inst: Instruction) -> Instruction:
        """Append an instruction to the current block."""
        self._blocks[-1].instructions.append(inst)
        return inst

    # === Values ===

    def arg(self, name: str, type: str = "i32") -> Argument:
        """Declare a function parameter."""
        a = Argument(name, type)
        self._arguments.append(a)
        return a

    def global_var(self, name: str) -> GlobalVariable:
        return GlobalVariable(name)

    def const(self, value: int, type: str = "i32") -> ConstantInt:
        """Create a fresh integer literal (a new object every call)."""
        return ConstantInt(value, type)

    # === Blocks ===

    def block(self, name: str) -> BasicBlock:
        """Start a new basic block; later instructions go there."""
        if not self._blocks[-1].instructions:
            self._blocks[-1].name = name
        else:
            self._blocks.append(BasicBlock(name))
        return self._blocks[-1]

    # === Memory operations ===

    def alloca(self, name: Optional[str] = None, allocated_type: str = "i32") -> Instruction:
        """Reserve a stack slot."""
        return self._emit(Instruction(
            Opcode.ALLOCA, [], "ptr", self._new_name(name),
            allocated_type=allocated_type, align=4,
        ))

    def store(self, value: Value, ptr: Value) -> Instruction:
        """Store value to memory at ptr."""
        return self._emit(Instruction(Opcode.STORE, [value, ptr], align=4))

    def load(self, ptr: Value, name: Optional[str] = None, type: str = "i32") -> Instruction:
        """Load from memory at ptr."""
        return self._emit(Instruction(Opcode.LOAD, [ptr], type, self._new_name(name), align=4))

    # === Binary operations ===

    def binop(self, opcode: Opcode, a: Value, b: Value, name: Optional[str] = None,
              type: str = "i32") -> Instruction:
        """Emit a binary operation."""
        return self._emit(Instruction(opcode, [a, b], type, self._new_name(name)))

    def add(self, a: Value, b: Value, name: Optional[str] = None) -> Instruction:
        return self.binop(Opcode.ADD, a, b, name)

    def sub(self, a: Value, b: Value, name: Optional[str] = None) -> Instruction:
        return self.binop(Opcode.SUB, a, b, name)

    def mul(self, a: Value, b: Value, name: Optional[str] = None) -> Instruction:
        return self.binop(Opcode.MUL, a, b, name)

    def udiv(self, a: Value, b: Value, name: Optional[str] = None) -> Instruction:
        return self.binop(Opcode.UDIV, a, b, name)

    def sdiv(self, a: Value, b: Value, name: Optional[str] = None) -> Instruction:
        return self.binop(Opcode.SDIV, a, b, name)

    def xor(self, a: Value, b: Value, name: Optional[str] = None) -> Instruction:
        return self.binop(Opcode.XOR, a, b, name)

    # === Other ===

    def ret(self, value: Optional[Value] = None) -> Instruction:
        return self._emit(Instruction(Opcode.RET, [value] if value is not None else []))

    def other(self, text: str, name: Optional[str] = None, opcode: Opcode = Opcode.OTHER) -> Instruction:
        """Emit an instruction the analysis does not model, kept verbatim."""
        return self._emit(Instruction(opcode, [], "i32", name, text=text))

    def build(self) -> Function:
        """Finalize the function."""
        return Function(
            name=self._name,
            return_type=self._return_type,
            arguments=list(self._arguments),
            blocks=[b for b in self._blocks if b.instructions],
        )
