"""
Local Value Numbering for an SSA IR

- IR: modules, functions, basic blocks and typed instructions
- Reader: LLVM-style textual IR -> IR objects
- Analysis: local value numbering that reports redundant computations
- Pass infrastructure: configurable function passes run over a module
"""

# IR types
from .ir import (
    Opcode,
    BINARY_OPS,
    COMMUTATIVE_OPS,
    Argument,
    GlobalVariable,
    ConstantInt,
    Constant,
    Instruction,
    Value,
    BasicBlock,
    Function,
    Module,
    count_instructions,
)

# IR builder
from .ir_builder import IRBuilder

# Textual IR
from .ir_parser import IRParseError, parse_module, parse_file

# Value numbering
from .value_numbering import (
    NumberingStore,
    Expression,
    NumberedInstruction,
    ValueNumbering,
    number_function,
)

# Pass infrastructure
from .pass_manager import (
    PassConfig,
    PassMetrics,
    PreservedAnalyses,
    FunctionPass,
    PassManager,
)

# Printing utilities
from .printing import print_function, print_module

# Passes
from .passes import ValueNumberingPass, PASSES


__all__ = [
    # IR
    'Opcode', 'BINARY_OPS', 'COMMUTATIVE_OPS', 'Argument', 'GlobalVariable',
    'ConstantInt', 'Constant', 'Instruction', 'Value', 'BasicBlock', 'Function',
    'Module', 'count_instructions',
    # Builder
    'IRBuilder',
    # Textual IR
    'IRParseError', 'parse_module', 'parse_file',
    # Value numbering
    'NumberingStore', 'Expression', 'NumberedInstruction', 'ValueNumbering',
    'number_function',
    # Pass infrastructure
    'PassConfig', 'PassMetrics', 'PreservedAnalyses', 'FunctionPass', 'PassManager',
    # Printing
    'print_function', 'print_module',
    # Passes
    'ValueNumberingPass', 'PASSES',
]
