"""Fuzzing and enumeration framework for TinyVM."""

from .harness import (
    ExecutionResult, Halted, Faulted, Crash,
    FuzzingStatistics,
    execute_image, check_properties, run_fuzzer,
)

from .generators import (
    GENERATORS,
    generate_random_image,
    generate_structured_image,
    generate_mixed_image,
)
