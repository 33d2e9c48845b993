"""Shared fixtures and helpers for lvn tests."""

import io
import os
import sys

# Add the repository root to the path so tests run from a plain checkout
_this_dir = os.path.dirname(os.path.abspath(__file__))
_repo_root = os.path.dirname(os.path.dirname(_this_dir))
sys.path.insert(0, _repo_root)

PROGRAMS_DIR = os.path.join(_repo_root, "programs")

from lvn import (
    IRBuilder,
    Function,
    Instruction,
    PassConfig,
    number_function,
)


def program_path(name: str) -> str:
    """Path of a sample program under programs/."""
    return os.path.join(PROGRAMS_DIR, name)


def _cfg(name, **opts):
    """Helper to create PassConfig."""
    return PassConfig(name=name, enabled=True, options=opts)


def line(text: str, rhs: str, width: int = 40) -> str:
    """Expected diagnostic line for the instruction spelled `text`."""
    return f"{text.ljust(width)} {rhs}"


def build_scenario() -> tuple[Function, dict[str, Instruction]]:
    """store 5 -> a; %1 = load a; %2 = add %1, %1; %3 = add %1, %1"""
    b = IRBuilder("scenario")
    a = b.alloca("a")
    st = b.store(b.const(5), a)
    v1 = b.load(a, "1")
    v2 = b.add(v1, v1, "2")
    v3 = b.add(v1, v1, "3")
    return b.build(), {"a": a, "store": st, "1": v1, "2": v2, "3": v3}


def collect_lines(fn: Function, **kwargs) -> list[str]:
    """Run value numbering and return the emitted lines."""
    out: list[str] = []
    number_function(fn, emit=out.append, **kwargs)
    return out


def new_stream() -> io.StringIO:
    return io.StringIO()
