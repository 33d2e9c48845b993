"""
Command-line driver.

    lvn-opt -passes=value-numbering input.ll
    python -m lvn --print-metrics - < input.ll

Diagnostics go to stderr; IR dumps and metrics go to stdout.
"""

import argparse
import sys
from typing import Optional

from .ir_parser import IRParseError, parse_file, parse_module
from .pass_manager import PassManager
from .printing import print_module


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lvn-opt",
        description="Run local value numbering over LLVM-style textual IR",
    )
    parser.add_argument("input",
                        help="IR file to analyse ('-' reads stdin)")
    parser.add_argument("-passes", "--passes", default="value-numbering",
                        help="Comma-separated pass pipeline (default: value-numbering)")
    parser.add_argument("--pass-config", type=str, default=None,
                        help="Path to JSON config file for pass options")
    parser.add_argument("--print-metrics", action="store_true",
                        help="Print pass metrics and diagnostics")
    parser.add_argument("--print-ir", action="store_true",
                        help="Print the parsed IR before running passes")
    parser.add_argument("--no-intern-constants", action="store_true",
                        help="Number every literal occurrence separately")
    parser.add_argument("--column-width", type=int, default=None,
                        help="Column the instruction text is padded to (default: 40)")
    return parser


def _apply_flag_options(pm: PassManager, args: argparse.Namespace):
    """Command-line flags override options from --pass-config."""
    overrides = {}
    if args.no_intern_constants:
        overrides["intern_constants"] = False
    if args.column_width is not None:
        overrides["column_width"] = args.column_width
    if not overrides:
        return
    for p in pm.passes:
        cfg = pm.config_for(p)
        cfg.options.update(overrides)
        pm.config[cfg.name] = cfg


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        pm = PassManager.from_pipeline(args.passes, print_metrics=args.print_metrics)
        if args.pass_config:
            pm.load_config(args.pass_config)
        _apply_flag_options(pm, args)

        if args.input == "-":
            module = parse_module(sys.stdin.read())
        else:
            module = parse_file(args.input)
    except (IRParseError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if args.print_ir:
        print_module(module)

    pm.run(module)
    return 0


if __name__ == "__main__":
    sys.exit(main())
