"""
Analysis Passes

Function passes runnable through the PassManager, registered by the names
accepted on the command line (`-passes=value-numbering`).
"""

from .value_numbering import ValueNumberingPass

# Pipeline name -> pass factory; aliases must match the pass's `aliases`
PASSES = {
    "value-numbering": ValueNumberingPass,
    "lvn": ValueNumberingPass,
}

__all__ = [
    'ValueNumberingPass',
    'PASSES',
]
