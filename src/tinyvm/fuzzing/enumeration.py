"""
Enumeration-based test generation for TinyVM.

Unlike random fuzzing, these generators walk a small input space
exhaustively and deterministically:
- every possible opcode byte at the entry point
- ADD and SUB over pairs of boundary values, with the wrapped result
- programs with no HALT that walk off the end of memory, one per
  alignment of the final instruction against the memory size
"""

from typing import Iterator, List, Tuple

from tinyvm.config import ENTRY_POINT, MEMORY_SIZE, VMConfig
from tinyvm.images import build_image
from tinyvm.isa import (
    UINT8_MAX, KNOWN_OPCODES, OPERAND_OPCODES, OPERAND_INSTRUCTION_LENGTH,
    REG_R1, REG_R2, Instruction, Load, Store, Add, Sub, Halt,
    serialize_instruction, serialize_program,
)


# Values around the 8-bit wrap points
BOUNDARY_VALUES: List[int] = [0, 1, 2, 127, 128, 129, 254, 255]

# Where arithmetic tests put their operands and result
LEFT_ADDR = 0
RIGHT_ADDR = 1
RESULT_ADDR = 2


# ============================================================
# Opcode Space
# ============================================================

def enumerate_opcode_tests() -> Iterator[Tuple[int, bytes, bool]]:
    """
    Enumerate one image per opcode byte, placed at the entry point.

    Operand opcodes get operands r1 and address 0 and are followed by
    HALT. Every other byte stands alone.

    Yields:
        Tuples of (opcode, image, should_halt)
    """
    halt = serialize_instruction(Halt())
    for opcode in range(UINT8_MAX + 1):
        if opcode in OPERAND_OPCODES:
            code = bytes([opcode, REG_R1, 0]) + halt
        else:
            code = bytes([opcode])
        yield opcode, build_image(code=code), opcode in KNOWN_OPCODES


# ============================================================
# Arithmetic Wraparound
# ============================================================

def arithmetic_program(op: type, left: int, right: int) -> bytes:
    """mem[RESULT_ADDR] = left <op> right, computed in r1 and r2."""
    program: List[Instruction] = [
        Load(REG_R1, LEFT_ADDR),
        Load(REG_R2, RIGHT_ADDR),
        op(REG_R1, REG_R2),
        Store(REG_R1, RESULT_ADDR),
        Halt(),
    ]
    return build_image(data=bytes([left, right]), code=serialize_program(program))


def enumerate_arithmetic_tests(values: List[int] = BOUNDARY_VALUES) -> Iterator[Tuple[bytes, int]]:
    """
    Enumerate ADD and SUB over all pairs of values.

    Yields:
        Tuples of (image, expected value at RESULT_ADDR)
    """
    for left in values:
        for right in values:
            yield arithmetic_program(Add, left, right), (left + right) % 256
            yield arithmetic_program(Sub, left, right), (left - right) % 256


# ============================================================
# Runaway Programs
# ============================================================

RUNAWAY_BODY: List[Instruction] = [
    Load(REG_R1, 0),
    Add(REG_R1, REG_R2),
    Store(REG_R1, 1),
    Sub(REG_R2, REG_R1),
]


def enumerate_runaway_tests() -> Iterator[Tuple[bytes, VMConfig]]:
    """
    Enumerate programs with no HALT that fill memory up to the end.

    Entry points ENTRY_POINT, +1 and +2 cover the three ways the last
    instruction can line up with the end of memory: exactly at the end,
    one byte short and two bytes short. All of them must fail with
    FetchOutOfBounds at address MEMORY_SIZE.

    Yields:
        Tuples of (image, config with the entry point to run from)
    """
    for shift in range(OPERAND_INSTRUCTION_LENGTH):
        entry = ENTRY_POINT + shift
        space = MEMORY_SIZE - entry
        body = serialize_program(RUNAWAY_BODY * (space // 3 // len(RUNAWAY_BODY) + 1))
        yield build_image(code=body[:space], entry_point=entry), VMConfig(entry_point=entry)


# ============================================================
# Comprehensive Test Suite
# ============================================================

def generate_comprehensive_suite() -> Iterator[bytes]:
    """
    All enumerated images that run from the default entry point, deduplicated.
    """
    seen = set()

    for _, image, _ in enumerate_opcode_tests():
        if image not in seen:
            seen.add(image)
            yield image

    for image, _ in enumerate_arithmetic_tests():
        if image not in seen:
            seen.add(image)
            yield image

    for image, config in enumerate_runaway_tests():
        if config.entry_point == ENTRY_POINT and image not in seen:
            seen.add(image)
            yield image
