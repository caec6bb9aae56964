"""
Property fuzzer for TinyVM.

Runs generated images through the machine and checks, per image:
- determinism: two independent runs agree on the outcome, final memory
  and register trajectory
- fixed width: every cycle starts where the previous one left the
  program counter, non-HALT instructions that do not write the pc slot
  advance it by exactly 3, and HALT does not advance it
- no crash: the only exceptions escaping the machine are TinyVM faults
"""

from dataclasses import dataclass, field
import logging
import random
from typing import Dict, List, Optional, Tuple

from tinyvm.config import VMConfig
from tinyvm.errors import TinyVMException
from tinyvm.isa import (
    REG_PC, OPERAND_INSTRUCTION_LENGTH, Load, Add, Sub, Halt,
)
from tinyvm.machine import Machine, TraceEntry
from .generators import GENERATORS, generate_random_image

logger = logging.getLogger(__name__)

# A LOAD into the pc slot can loop forever
DEFAULT_MAX_CYCLES = 1000


# =============================================================================
# Execution Results
# =============================================================================

@dataclass(frozen=True)
class ExecutionResult:
    """Base class for execution results - used as a union type."""


@dataclass(frozen=True)
class Halted(ExecutionResult):
    memory: bytes
    registers: Tuple[int, int, int]
    cycles: int


@dataclass(frozen=True)
class Faulted(ExecutionResult):
    kind: str
    reason: str


@dataclass(frozen=True)
class Crash(ExecutionResult):
    reason: str


def execute_image(image: bytes, max_cycles: int = DEFAULT_MAX_CYCLES,
                  config: Optional[VMConfig] = None) -> Tuple[ExecutionResult, List[TraceEntry]]:
    """Run an image with tracing on and classify the outcome."""
    config = config or VMConfig(max_cycles=max_cycles, trace=True)
    machine = Machine(image, config)
    try:
        result = machine.run()
    except TinyVMException as e:
        return Faulted(type(e).__name__, str(e)), machine.trace
    except Exception as e:
        return Crash(f"machine raised exception: {e!r}"), machine.trace
    return Halted(result.memory.to_bytes(), result.state.registers, result.cycles), machine.trace


# =============================================================================
# Property Checks
# =============================================================================

def writes_pc(instr) -> bool:
    match instr:
        case Load(register=reg):
            return reg == REG_PC
        case Add(dest=dest) | Sub(dest=dest):
            return dest == REG_PC
        case _:
            return False


def check_fixed_width(trace: List[TraceEntry]) -> List[str]:
    """Check program counter progression along a trace."""
    violations = []
    for prev, entry in zip(trace, trace[1:]):
        if entry.pc != prev.registers[REG_PC]:
            violations.append(
                f"cycle {entry.cycle} fetched at {entry.pc}, pc was {prev.registers[REG_PC]}"
            )
    for entry in trace:
        pc_after = entry.registers[REG_PC]
        if isinstance(entry.instruction, Halt):
            if pc_after != entry.pc:
                violations.append(f"HALT at {entry.pc} advanced pc to {pc_after}")
        elif not writes_pc(entry.instruction) and pc_after != entry.pc + OPERAND_INSTRUCTION_LENGTH:
            violations.append(
                f"{entry.instruction} at {entry.pc} moved pc to {pc_after}"
            )
    return violations


def check_properties(image: bytes, max_cycles: int = DEFAULT_MAX_CYCLES) -> Tuple[ExecutionResult, List[str]]:
    """
    Run an image twice and check the machine's invariants.

    Returns:
        Tuple of (result of the first run, list of violation descriptions)
    """
    first, first_trace = execute_image(image, max_cycles)
    second, second_trace = execute_image(image, max_cycles)

    violations = []
    if first != second:
        violations.append(f"non-deterministic outcome: {first} vs {second}")
    if first_trace != second_trace:
        violations.append("non-deterministic register trajectory")
    if isinstance(first, Crash):
        violations.append(first.reason)
    violations.extend(check_fixed_width(first_trace))
    return first, violations


# =============================================================================
# Statistics Tracking
# =============================================================================

@dataclass
class FuzzingStatistics:
    """Tracks fuzzing run statistics."""
    total_tests: int = 0
    halted: int = 0
    crashes: int = 0
    violations: int = 0
    faults: Dict[str, int] = field(default_factory=dict)

    @property
    def faulted(self) -> int:
        return sum(self.faults.values())

    @property
    def violation_rate(self) -> float:
        return (self.violations / self.total_tests * 100) if self.total_tests > 0 else 0.0

    def record_test(self, result: ExecutionResult, violations: List[str]) -> None:
        """Record results of a single test."""
        self.total_tests += 1

        if isinstance(result, Halted):
            self.halted += 1
        elif isinstance(result, Faulted):
            self.faults[result.kind] = self.faults.get(result.kind, 0) + 1
        elif isinstance(result, Crash):
            self.crashes += 1

        if violations:
            self.violations += 1

    def print_summary(self) -> None:
        """Print formatted summary of results."""
        print("\n" + "=" * 60)
        print("Fuzzer Summary")
        print("-" * 40)
        print(f"Total tests run:           {self.total_tests}")
        print(f"Halted:                    {self.halted}")
        print(f"Faulted:                   {self.faulted}")
        for kind, count in sorted(self.faults.items()):
            print(f"  {kind + ':':<24}{count}")
        print(f"Crashes:                   {self.crashes}")
        print(f"Property violations:       {self.violations}")

        if self.violations > 0:
            print(f"Violation rate:         {self.violation_rate:.1f}%")
        else:
            print("\nAll properties held!")


# =============================================================================
# Reporting
# =============================================================================

def report_violation(test_num: int, image: bytes, result: ExecutionResult, violations: List[str]) -> None:
    """Print detailed violation report."""
    print(f"\nTest {test_num}: Property violated")
    print(f"  Image:  {image.rstrip(bytes(1)).hex()}")
    print(f"  Result: {result}")
    for violation in violations:
        print(f"    - {violation}")


def print_header(num_tests: int, generator: str) -> None:
    """Print fuzzer run header."""
    print(f"TinyVM Fuzzer - Running {num_tests} tests")
    print(f"Generator: {generator}")
    print("=" * 60)


# =============================================================================
# Fuzzer Main Logic
# =============================================================================

def run_fuzzer(
    num_tests: int = 1000,
    seed: Optional[int] = None,
    generator: str = "mixed",
    max_cycles: int = DEFAULT_MAX_CYCLES,
) -> FuzzingStatistics:
    """
    Run the fuzzer for a specified number of tests.

    Args:
        num_tests: Number of images to generate
        seed: Random seed for reproducibility
        generator: Generator type: "random", "structured" or "mixed"
        max_cycles: Cycle budget per run

    Returns:
        FuzzingStatistics object with results
    """
    if seed is not None:
        random.seed(seed)

    generator_func = GENERATORS.get(generator, generate_random_image)
    stats = FuzzingStatistics()

    print_header(num_tests, generator)
    logger.debug("fuzzing %d images with %s generator, seed=%s", num_tests, generator, seed)

    for i in range(num_tests):
        image = generator_func()
        result, violations = check_properties(image, max_cycles)
        stats.record_test(result, violations)

        if violations:
            report_violation(i + 1, image, result, violations)

    stats.print_summary()
    return stats
