"""Run configuration for the machine driver."""

from dataclasses import dataclass
from typing import Optional

MEMORY_SIZE = 256
DATA_REGION_SIZE = 8

# Instructions start right after the data region
ENTRY_POINT = DATA_REGION_SIZE


@dataclass
class VMConfig:
    """Configuration for a single run."""
    entry_point: int = ENTRY_POINT        # Initial program counter
    data_region_size: int = DATA_REGION_SIZE  # Bytes shown in the final report
    max_cycles: Optional[int] = None      # None = run until HALT or a fault
    trace: bool = False                   # Record a TraceEntry per cycle

    def __post_init__(self):
        if not (0 <= self.entry_point < MEMORY_SIZE):
            raise ValueError(
                f"entry_point must be 0-{MEMORY_SIZE - 1}, got {self.entry_point}"
            )
        if not (0 <= self.data_region_size <= MEMORY_SIZE):
            raise ValueError(
                f"data_region_size must be 0-{MEMORY_SIZE}, got {self.data_region_size}"
            )
        if self.max_cycles is not None and self.max_cycles <= 0:
            raise ValueError(f"max_cycles must be positive, got {self.max_cycles}")


DEFAULT_CONFIG = VMConfig()
