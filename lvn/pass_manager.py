"""
Pass Manager Infrastructure

Provides the framework for running function passes over every function of a
module, with per-pass configuration loaded from JSON.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
import json

from .ir import Function, Module, count_instructions


@dataclass
class PassConfig:
    """Configuration for a single pass."""
    name: str
    enabled: bool = True
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class PassMetrics:
    """Metrics collected by a pass during execution."""
    functions: int = 0
    instructions: int = 0
    custom: dict[str, Any] = field(default_factory=dict)
    messages: list[str] = field(default_factory=list)


class PreservedAnalyses:
    """Which cached analyses a pass left valid.

    Analysis passes never touch the IR and return PreservedAnalyses.all();
    the host may then keep everything it knows about the function.
    """

    def __init__(self, all_preserved: bool):
        self._all = all_preserved

    @classmethod
    def all(cls) -> "PreservedAnalyses":
        return cls(True)

    @classmethod
    def none(cls) -> "PreservedAnalyses":
        return cls(False)

    def are_all_preserved(self) -> bool:
        return self._all

    def intersect(self, other: "PreservedAnalyses") -> "PreservedAnalyses":
        return PreservedAnalyses(self._all and other._all)

    def __eq__(self, other):
        return isinstance(other, PreservedAnalyses) and self._all == other._all

    def __repr__(self):
        return "PreservedAnalyses.all()" if self._all else "PreservedAnalyses.none()"


class FunctionPass(ABC):
    """Base class for passes that run once per function."""

    def __init__(self):
        self._metrics: Optional[PassMetrics] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the pass name for config matching."""
        pass

    @property
    def aliases(self) -> tuple[str, ...]:
        """Other names the pass answers to in pipelines and configs."""
        return ()

    @abstractmethod
    def run(self, fn: Function, config: PassConfig) -> PreservedAnalyses:
        """Process one function."""
        pass

    def get_metrics(self) -> Optional[PassMetrics]:
        """Return metrics accumulated since the last reset."""
        return self._metrics

    def _init_metrics(self):
        """Initialize metrics for a new module run."""
        self._metrics = PassMetrics()

    def _add_metric_message(self, msg: str):
        """Add a diagnostic message to metrics."""
        if self._metrics:
            self._metrics.messages.append(msg)


def _parse_config(data: dict) -> dict[str, PassConfig]:
    configs = {}
    for pass_name, opts in data.get("passes", {}).items():
        configs[pass_name] = PassConfig(
            name=pass_name,
            enabled=opts.get("enabled", True),
            options=opts.get("options", {})
        )
    return configs


@dataclass
class PassManager:
    """Runs function passes, in order, over each defined function."""
    passes: list[FunctionPass] = field(default_factory=list)
    config: dict[str, PassConfig] = field(default_factory=dict)
    print_metrics: bool = False

    def add_pass(self, p: FunctionPass) -> None:
        """Register a pass."""
        self.passes.append(p)

    @classmethod
    def from_pipeline(cls, pipeline: str,
                      registry: Optional[dict[str, Callable[[], FunctionPass]]] = None,
                      **kwargs) -> "PassManager":
        """Build a manager from a comma-separated list of pass names."""
        if registry is None:
            from .passes import PASSES
            registry = PASSES

        pm = cls(**kwargs)
        for pass_name in (n.strip() for n in pipeline.split(",")):
            if not pass_name:
                continue
            factory = registry.get(pass_name)
            if factory is None:
                known = ", ".join(sorted(registry))
                raise ValueError(f"unknown pass '{pass_name}' (known passes: {known})")
            pm.add_pass(factory())
        return pm

    def load_config(self, config_path: str) -> None:
        """Load pass configs from JSON file."""
        with open(config_path) as f:
            data = json.load(f)
        self.set_config(data)

    def set_config(self, data: dict) -> None:
        """Merge pass configs from an already loaded JSON document."""
        self.config.update(_parse_config(data))

    def config_for(self, p: FunctionPass) -> PassConfig:
        """Config for a pass, looked up by its name and then its aliases."""
        for key in (p.name, *p.aliases):
            if key in self.config:
                return self.config[key]
        return PassConfig(name=p.name)

    def _print_pass_metrics(self, p: FunctionPass, cfg: PassConfig):
        """Print metrics for a pass execution."""
        print(f"\n=== Pass: {p.name} ===")
        print(f"Config: {', '.join(f'{k}={v}' for k, v in cfg.options.items()) or '(default)'}")

        metrics = p.get_metrics()
        if metrics:
            print(f"Functions: {metrics.functions}, instructions: {metrics.instructions}")
            if metrics.custom:
                print(f"Custom metrics: {metrics.custom}")
            if metrics.messages:
                print("Diagnostics:")
                for msg in metrics.messages:
                    print(f"  - {msg}")

    def run_on_function(self, fn: Function) -> PreservedAnalyses:
        """Run all enabled passes on one function."""
        preserved = PreservedAnalyses.all()
        for p in self.passes:
            cfg = self.config_for(p)
            if not cfg.enabled:
                continue
            preserved = preserved.intersect(p.run(fn, cfg))
        return preserved

    def run(self, module: Module) -> PreservedAnalyses:
        """Run all enabled passes over every function with a body."""
        for p in self.passes:
            p._init_metrics()

        preserved = PreservedAnalyses.all()
        for fn in module.functions:
            if fn.is_declaration:
                continue
            preserved = preserved.intersect(self.run_on_function(fn))
            for p in self.passes:
                metrics = p.get_metrics()
                if metrics is not None and self.config_for(p).enabled:
                    metrics.functions += 1
                    metrics.instructions += count_instructions(fn)

        if self.print_metrics:
            for p in self.passes:
                cfg = self.config_for(p)
                if not cfg.enabled:
                    print(f"\n=== Pass: {p.name} === (SKIPPED - disabled)")
                    continue
                self._print_pass_metrics(p, cfg)

        return preserved
