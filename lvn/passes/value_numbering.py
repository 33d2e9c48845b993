"""
Local Value Numbering Pass

Reports redundant binary operations within each function. Pure analysis:
the IR is never modified.
"""

import sys
from typing import Optional, TextIO

from ..ir import Function, Opcode
from ..pass_manager import FunctionPass, PassConfig, PreservedAnalyses
from ..value_numbering import ValueNumbering, number_function


class ValueNumberingPass(FunctionPass):
    """
    Local value numbering over each function's blocks, in program order.

    Prints a `ValueNumbering: <function>` header followed by one line per
    store, load and binary operation to the diagnostic stream.

    Options:
        intern_constants: Equal integer literals share one value number
                          (default True).
        column_width:     Column the instruction text is padded to (default 40).
    """

    def __init__(self, stream: Optional[TextIO] = None):
        super().__init__()
        self._stream = stream
        self.last_result: Optional[ValueNumbering] = None

    @property
    def name(self) -> str:
        return "value-numbering"

    @property
    def aliases(self) -> tuple[str, ...]:
        return ("lvn",)

    def _emit(self, line: str):
        # Resolved per call so redirected stderr is honoured
        stream = self._stream if self._stream is not None else sys.stderr
        print(line, file=stream, flush=True)

    def run(self, fn: Function, config: PassConfig) -> PreservedAnalyses:
        if self._metrics is None:
            self._init_metrics()

        if not config.enabled:
            return PreservedAnalyses.all()

        intern_constants = bool(config.options.get("intern_constants", True))
        column_width = int(config.options.get("column_width", 40))

        self._emit(f"ValueNumbering: {fn.name}")
        result = number_function(
            fn,
            emit=self._emit,
            intern_constants=intern_constants,
            column_width=column_width,
        )
        self.last_result = result

        self._record_metrics(fn, result)
        return PreservedAnalyses.all()

    def _record_metrics(self, fn: Function, result: ValueNumbering):
        custom = self._metrics.custom
        for key in ("instructions_numbered", "stores", "loads", "binary_ops",
                    "redundant", "values_numbered"):
            custom.setdefault(key, 0)

        custom["instructions_numbered"] += len(result.records)
        for record in result.records:
            inst = record.instruction
            if inst.is_binary:
                custom["binary_ops"] += 1
            elif inst.opcode == Opcode.LOAD:
                custom["loads"] += 1
            else:
                custom["stores"] += 1
        custom["redundant"] += len(result.redundant)
        custom["values_numbered"] += result.store.next_number - 1

        for record in result.redundant:
            self._add_metric_message(
                f"@{fn.name}: '{record.instruction}' recomputes value {record.number}"
            )
