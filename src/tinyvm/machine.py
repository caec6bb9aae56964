"""Fetch, execute and the run loop that drives them."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple, Union

from .config import VMConfig, DEFAULT_CONFIG
from .errors import (
    CycleLimitExceeded, FetchOutOfBounds, MachineHalted,
    UnknownInstruction, UnknownOpcode,
)
from .isa import (
    UINT8_MAX, OPERAND_OPCODES, OPERAND_INSTRUCTION_LENGTH, HALT_LENGTH,
    RawInstruction, Instruction, Load, Store, Add, Sub, Halt, decode,
)
from .state import Memory, MachineState

logger = logging.getLogger(__name__)

# =============================================================================
# Fetch
# =============================================================================

def fetch(state: MachineState, memory: Memory) -> RawInstruction:
    """
    Read the opcode at the program counter plus its operand bytes.

    Operands are only read for LOAD, STORE, ADD and SUB. HALT and opcodes
    outside the instruction set come back with zero operands; rejecting
    unknown opcodes is left to decode.

    Raises:
        FetchOutOfBounds: If the opcode or an operand address is past the end of memory
    """
    pc = state.program_counter
    if not memory.in_bounds(pc):
        raise FetchOutOfBounds(pc)

    opcode = memory[pc]
    if opcode not in OPERAND_OPCODES:
        return RawInstruction(opcode)

    for address in (pc + 1, pc + 2):
        if not memory.in_bounds(address):
            raise FetchOutOfBounds(address)
    return RawInstruction(opcode, memory[pc + 1], memory[pc + 2])

# =============================================================================
# Execute
# =============================================================================

def execute(state: MachineState, instruction: Instruction, memory: Memory) -> int:
    """
    Apply one instruction to the registers and memory.

    The program counter is left alone; the caller advances it by the
    returned instruction length. Register operands are raw indices into
    (pc, r1, r2), so index 0 reads and writes the program counter.

    Returns:
        Encoded length of the instruction in bytes
    """
    match instruction:
        case Load(register=reg, address=addr):
            state.set_register(reg, memory[addr])
            return OPERAND_INSTRUCTION_LENGTH

        case Store(register=reg, address=addr):
            memory[addr] = state.get_register(reg)
            return OPERAND_INSTRUCTION_LENGTH

        case Add(dest=dest, src=src):
            total = state.get_register(dest) + state.get_register(src)
            state.set_register(dest, total & UINT8_MAX)
            return OPERAND_INSTRUCTION_LENGTH

        case Sub(dest=dest, src=src):
            diff = state.get_register(dest) - state.get_register(src)
            state.set_register(dest, diff & UINT8_MAX)
            return OPERAND_INSTRUCTION_LENGTH

        case Halt():
            return HALT_LENGTH

        case _:
            raise UnknownInstruction(instruction)

# =============================================================================
# Driver
# =============================================================================

class Status(Enum):
    RUNNING = "running"
    HALTED = "halted"


@dataclass(frozen=True)
class TraceEntry:
    """One executed cycle: where it ran, what ran, registers afterwards."""
    cycle: int
    pc: int
    instruction: Instruction
    registers: Tuple[int, int, int]


@dataclass
class RunResult:
    state: MachineState
    memory: Memory
    cycles: int
    trace: List[TraceEntry] = field(default_factory=list)

    @property
    def data_region(self) -> bytes:
        return self.memory.data_region()


class Machine:
    """
    A single processor running a single program.

    The machine starts RUNNING with the program counter at the configured
    entry point and both registers zeroed, whatever the image holds.
    Each `step` runs one fetch/decode/execute cycle; executing HALT moves
    the machine to HALTED, which is terminal.
    """

    def __init__(self, image: Union[Memory, Iterable[int]], config: Optional[VMConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self.memory = image if isinstance(image, Memory) else Memory(image)
        self.state = MachineState(program_counter=self.config.entry_point)
        self.status = Status.RUNNING
        self.cycles = 0
        self.trace: List[TraceEntry] = []

    @property
    def halted(self) -> bool:
        return self.status is Status.HALTED

    def step(self) -> Instruction:
        """Run one cycle and return the instruction that was executed."""
        if self.halted:
            raise MachineHalted("machine is halted")

        pc = self.state.program_counter
        raw = fetch(self.state, self.memory)
        try:
            instruction = decode(raw)
        except UnknownOpcode:
            raise UnknownOpcode(raw.opcode, pc) from None

        length = execute(self.state, instruction, self.memory)
        self.cycles += 1
        logger.debug("cycle %d pc=%d %s", self.cycles, pc, instruction)

        if isinstance(instruction, Halt):
            self.status = Status.HALTED
        else:
            self.state.program_counter += length

        if self.config.trace:
            self.trace.append(
                TraceEntry(self.cycles, pc, instruction, self.state.registers)
            )
        return instruction

    def run(self) -> RunResult:
        """Step until HALT. Any fault propagates to the caller."""
        limit = self.config.max_cycles
        while not self.halted:
            if limit is not None and self.cycles >= limit:
                raise CycleLimitExceeded(limit)
            self.step()

        logger.info(
            "halted at pc=%d after %d cycles", self.state.program_counter, self.cycles
        )
        return RunResult(self.state, self.memory, self.cycles, self.trace)


def run_image(image: Union[Memory, Iterable[int]], config: Optional[VMConfig] = None) -> RunResult:
    """Convenience function to run a 256-byte image to completion."""
    return Machine(image, config).run()
