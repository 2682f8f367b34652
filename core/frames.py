# core/frames.py

"""
Data model shared by the parser, the aggregator and the reporter.

Frames and slots are frozen once built; the aggregator only reads frames.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StackEntry:
    """One level of a captured call stack."""
    function: str
    execution_space: str  # module path or kernel marker, e.g. "([kernel.kallsyms])"


@dataclass(frozen=True)
class SampleFrame:
    """
    One profiler sample. `stack` runs leaf first: stack[0] is the function
    that was executing when the sample was taken.
    """
    timestamp: float
    process_name: str
    pid: int
    stack: tuple[StackEntry, ...] = ()
    cpu: int | None = None
    event: str | None = None

    @property
    def leaf(self) -> StackEntry | None:
        return self.stack[0] if self.stack else None


@dataclass(frozen=True)
class FunctionCount:
    function: str = ""
    count: int = 0
    percentage: float = 0.0

    @property
    def is_empty(self) -> bool:
        return self.count == 0 and not self.function


@dataclass(frozen=True)
class TimeSlot:
    """All frames whose timestamp falls in the same bucket, with the top-N leaf functions."""
    bucket_second: int
    sample_count: int
    top_functions: tuple[FunctionCount, ...] = field(default_factory=tuple)
