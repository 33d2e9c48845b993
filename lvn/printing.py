"""
IR Printing Utilities

Pretty-printing for modules and functions, and the one-line diagnostics
emitted by value numbering.
"""

from typing import Optional

from .ir import Function, Instruction, Module, Opcode

_OPCODE_NAMES = {
    Opcode.ADD: "add",
    Opcode.SUB: "sub",
    Opcode.MUL: "mul",
    Opcode.UDIV: "div",
    Opcode.SDIV: "div",
}


def opcode_name(opcode: Opcode) -> str:
    """Short operator name used in diagnostics."""
    return _OPCODE_NAMES.get(opcode, opcode.value)


def _pad(inst: Instruction, width: int) -> str:
    return str(inst).ljust(width)


def format_store(inst: Instruction, ptr_number: int, value_number: int, width: int = 40) -> str:
    """`store V, P` line: pointer number = stored value number."""
    return f"{_pad(inst, width)} {ptr_number} = {value_number}"


def format_load(inst: Instruction, number: int, ptr_number: Optional[int], width: int = 40) -> str:
    """`R = load P` line; a pointer with no recorded number prints as 0."""
    ptr_str = ptr_number if ptr_number is not None else 0
    return f"{_pad(inst, width)} {number} = {ptr_str}"


def format_binary(inst: Instruction, number: int, lhs: int, rhs: int,
                  redundant: bool = False, width: int = 40) -> str:
    """`R = LHS op RHS` line, marked when the expression was already seen."""
    line = f"{_pad(inst, width)} {number} = {lhs} {opcode_name(inst.opcode)} {rhs}"
    if redundant:
        line += " (redundant)"
    return line


def print_function(fn: Function):
    """Pretty-print a function."""
    params = ", ".join(f"{a.type} %{a.name}" for a in fn.arguments)
    if fn.is_declaration:
        if fn.params_text is not None:
            params = fn.params_text
        print(f"declare {fn.return_type} @{fn.name}({params})")
        return
    print(f"define {fn.return_type} @{fn.name}({params}) {{")
    for i, block in enumerate(fn.blocks):
        if i > 0:
            print()
        print(f"{block.name}:")
        for inst in block.instructions:
            print(f"  {inst}")
    print("}")


def print_module(module: Module):
    """Pretty-print a module."""
    print(f"; ModuleID = '{module.name}'")
    for gv in module.globals.values():
        init = gv.initializer if gv.initializer is not None else "external global i32"
        print(f"@{gv.name} = {init}")
    for fn in module.functions:
        print()
        print_function(fn)
