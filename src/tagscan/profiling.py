"""tagscan ScanAccumulator: opt-in profiling for tag scans.

This module provides accumulated metrics during scanning:
- Total scan time
- Tokens consumed
- Entities created
- Tokens skipped under the "skip" error policy

Zero overhead when disabled (get_scan_accumulator() returns None).

Example:
    from tagscan import scan
    from tagscan.profiling import profiled_scan

    with profiled_scan() as metrics:
        result = scan("module Foo\\nend\\n")

    print(metrics.summary())
    # {"total_ms": 0.4, "token_count": 3, "entity_count": 2, ...}

"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from threading import Lock
from time import perf_counter
from typing import Any


@dataclass
class ScanAccumulator:
    """Accumulated metrics during scanning.

    Attributes:
        start_time: Profiling start timestamp.
        token_count: Tokens consumed across all scans.
        entity_count: Entities created across all scans.
        skipped_tokens: Tokens skipped after an illegal transition.
        scan_calls: Number of scans recorded.

    """

    start_time: float = field(default_factory=perf_counter)
    token_count: int = 0
    entity_count: int = 0
    skipped_tokens: int = 0
    scan_calls: int = 0
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def record_scan(
        self, token_count: int, entity_count: int, skipped_tokens: int = 0
    ) -> None:
        """Record a completed scan (safe to call from worker threads)."""
        with self._lock:
            self.scan_calls += 1
            self.token_count += token_count
            self.entity_count += entity_count
            self.skipped_tokens += skipped_tokens

    @property
    def total_duration_ms(self) -> float:
        """Total profiling duration in milliseconds."""
        return (perf_counter() - self.start_time) * 1000

    def summary(self) -> dict[str, Any]:
        """Get summary of scan metrics.

        Returns:
            Dict with total_ms, token_count, entity_count, skipped_tokens,
            scan_calls.

        """
        return {
            "total_ms": round(self.total_duration_ms, 2),
            "token_count": self.token_count,
            "entity_count": self.entity_count,
            "skipped_tokens": self.skipped_tokens,
            "scan_calls": self.scan_calls,
        }


# Module-level ContextVar
_accumulator: ContextVar[ScanAccumulator | None] = ContextVar(
    "scan_accumulator",
    default=None,
)


def get_scan_accumulator() -> ScanAccumulator | None:
    """Get current accumulator (None if profiling disabled)."""
    return _accumulator.get()


@contextmanager
def profiled_scan() -> Iterator[ScanAccumulator]:
    """Context manager for profiled scanning.

    Creates a ScanAccumulator and makes it available via
    get_scan_accumulator() for the duration of the with block.

    Yields:
        ScanAccumulator that will be populated during scans.

    """
    acc = ScanAccumulator()
    token: Token[ScanAccumulator | None] = _accumulator.set(acc)
    try:
        yield acc
    finally:
        _accumulator.reset(token)
