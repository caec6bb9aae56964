"""
Program image generators for property fuzzing.

Three strategies:
- random: completely random data and code bytes
- structured: well formed instructions that mostly halt, with a small
  chance of invalid opcodes, missing HALT or out-of-range registers
- mixed: picks one of the above per image
"""

from dataclasses import dataclass
from enum import Enum
import random
from typing import Callable

from tinyvm.config import DATA_REGION_SIZE, ENTRY_POINT, MEMORY_SIZE
from tinyvm.images import build_image
from tinyvm.isa import (
    KNOWN_OPCODES, REG_PC, REG_R1, REG_R2,
    Load, Store, Add, Sub, Halt, serialize_instruction,
)


# =============================================================================
# Configuration Constants
# =============================================================================

# Structure-aware generation probabilities
PROB_LOAD = 0.25
PROB_STORE = 0.22
PROB_ADD = 0.24
PROB_SUB = 0.24
PROB_INVALID_OPCODE = 0.05

PROB_MISSING_HALT = 0.05
PROB_PC_REGISTER = 0.03
PROB_BAD_REGISTER = 0.02
PROB_CODE_ADDRESS = 0.05

# Mixed strategy probabilities
PROB_RANDOM_STRATEGY = 0.3


@dataclass
class GeneratorConfig:
    """Configuration for image generators."""
    max_code_length: int = 40         # For random generator
    max_instructions: int = 12        # For structured generator


DEFAULT_CONFIG = GeneratorConfig()

INVALID_OPCODES = [op for op in range(0x100) if op not in KNOWN_OPCODES]


# =============================================================================
# Instruction Selection
# =============================================================================

class InstructionChoice(Enum):
    """Enum for instruction types in structure-aware generation."""
    LOAD = "load"
    STORE = "store"
    ADD = "add"
    SUB = "sub"
    INVALID = "invalid"


def choose_instruction() -> InstructionChoice:
    """Choose instruction type based on configured probabilities."""
    weights = [
        (InstructionChoice.LOAD, int(PROB_LOAD * 100)),
        (InstructionChoice.STORE, int(PROB_STORE * 100)),
        (InstructionChoice.ADD, int(PROB_ADD * 100)),
        (InstructionChoice.SUB, int(PROB_SUB * 100)),
        (InstructionChoice.INVALID, int(PROB_INVALID_OPCODE * 100)),
    ]
    choices, probs = zip(*weights)
    return random.choices(choices, weights=probs)[0]


def choose_register() -> int:
    roll = random.random()
    if roll < PROB_BAD_REGISTER:
        return random.randint(3, 0xFF)
    if roll < PROB_BAD_REGISTER + PROB_PC_REGISTER:
        return REG_PC
    return random.choice([REG_R1, REG_R2])


def choose_address() -> int:
    if random.random() < PROB_CODE_ADDRESS:
        return random.randint(DATA_REGION_SIZE, MEMORY_SIZE - 1)
    return random.randint(0, DATA_REGION_SIZE - 1)


def random_data() -> bytes:
    return bytes(random.randint(0, 255) for _ in range(DATA_REGION_SIZE))


# =============================================================================
# Image Generators
# =============================================================================

def generate_random_image(max_code_length: int = DEFAULT_CONFIG.max_code_length) -> bytes:
    """Random data region and random code bytes - no structure consideration."""
    length = random.randint(1, max_code_length)
    code = bytes(random.randint(0, 255) for _ in range(length))
    return build_image(random_data(), code)


def generate_structured_image(max_instructions: int = DEFAULT_CONFIG.max_instructions) -> bytes:
    """
    Generate a structure-aware image with optional fuzzing.

    Creates a valid instruction sequence terminated by HALT, but can still
    produce an invalid opcode, drop the HALT, or name a register that does
    not exist, to exercise the fault paths.
    """
    code = []
    num_instructions = random.randint(1, max_instructions)

    for _ in range(num_instructions):
        instruction_type = choose_instruction()

        if instruction_type == InstructionChoice.LOAD:
            code.append(serialize_instruction(Load(choose_register(), choose_address())))

        elif instruction_type == InstructionChoice.STORE:
            code.append(serialize_instruction(Store(choose_register(), choose_address())))

        elif instruction_type == InstructionChoice.ADD:
            code.append(serialize_instruction(Add(choose_register(), choose_register())))

        elif instruction_type == InstructionChoice.SUB:
            code.append(serialize_instruction(Sub(choose_register(), choose_register())))

        elif instruction_type == InstructionChoice.INVALID:
            code.append(bytes([random.choice(INVALID_OPCODES)]))
            break  # Stop after invalid opcode

    if random.random() >= PROB_MISSING_HALT:
        code.append(serialize_instruction(Halt()))

    return build_image(random_data(), b''.join(code)[:MEMORY_SIZE - ENTRY_POINT])


def generate_mixed_image(max_instructions: int = DEFAULT_CONFIG.max_instructions) -> bytes:
    """Randomly pick between the random and structured strategies."""
    if random.random() < PROB_RANDOM_STRATEGY:
        return generate_random_image()
    return generate_structured_image(max_instructions=max_instructions)


# Generator registry for dispatch
GENERATORS: dict[str, Callable[[], bytes]] = {
    "random": generate_random_image,
    "structured": generate_structured_image,
    "mixed": generate_mixed_image,
}
