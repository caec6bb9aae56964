from dataclasses import dataclass, fields
from typing import Union, List, Tuple

from .errors import FetchOutOfBounds, UnknownOpcode

# =============================================================================
# Constants
# =============================================================================

UINT8_MAX = 0xFF

# Opcodes
OP_NIL   = 0x00
OP_LOAD  = 0x01
OP_STORE = 0x02
OP_ADD   = 0x03
OP_SUB   = 0x04
OP_HALT  = 0xFF

# Register slots
REG_PC = 0x00
REG_R1 = 0x01
REG_R2 = 0x02

OPERAND_OPCODES = frozenset({OP_LOAD, OP_STORE, OP_ADD, OP_SUB})
KNOWN_OPCODES = OPERAND_OPCODES | {OP_HALT}

# Encoded lengths in bytes
OPERAND_INSTRUCTION_LENGTH = 3
HALT_LENGTH = 1

# =============================================================================
# Raw Instruction
# =============================================================================

@dataclass(frozen=True)
class RawInstruction:
    """Opcode and operand bytes as fetched from memory, not yet interpreted."""
    opcode: int
    operand_0: int = 0
    operand_1: int = 0

# =============================================================================
# Instruction ADT
# =============================================================================

class _ByteFields:
    """Mixin validating that every dataclass field is an unsigned byte."""

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not (0 <= value <= UINT8_MAX):
                raise ValueError(
                    f"{type(self).__name__}.{f.name} must be 0-255, got {value}"
                )


@dataclass(frozen=True)
class Load(_ByteFields):
    """Copy the memory cell at `address` into register `register`."""
    register: int
    address: int


@dataclass(frozen=True)
class Store(_ByteFields):
    """Copy register `register` into the memory cell at `address`."""
    register: int
    address: int


@dataclass(frozen=True)
class Add(_ByteFields):
    """Set dest = dest + src (mod 256)."""
    dest: int
    src: int


@dataclass(frozen=True)
class Sub(_ByteFields):
    """Set dest = dest - src (mod 256)."""
    dest: int
    src: int


@dataclass(frozen=True)
class Halt:
    """Stop the machine."""
    pass


Instruction = Union[Load, Store, Add, Sub, Halt]


def instruction_length(instr: Instruction) -> int:
    """Number of bytes the instruction occupies in the instruction stream."""
    match instr:
        case Halt():
            return HALT_LENGTH
        case Load() | Store() | Add() | Sub():
            return OPERAND_INSTRUCTION_LENGTH
        case _:
            raise ValueError(f"Unknown instruction: {instr}")

# =============================================================================
# Serialization (Instructions -> Bytes)
# =============================================================================

def serialize_instruction(instr: Instruction) -> bytes:
    """
    Serialize a single instruction to bytes.

    Format:
        LOAD:  [0x01] [register] [address]  (3 bytes)
        STORE: [0x02] [register] [address]  (3 bytes)
        ADD:   [0x03] [dest] [src]          (3 bytes)
        SUB:   [0x04] [dest] [src]          (3 bytes)
        HALT:  [0xFF]                       (1 byte)
    """
    match instr:
        case Load(register=reg, address=addr):
            return bytes([OP_LOAD, reg, addr])
        case Store(register=reg, address=addr):
            return bytes([OP_STORE, reg, addr])
        case Add(dest=dest, src=src):
            return bytes([OP_ADD, dest, src])
        case Sub(dest=dest, src=src):
            return bytes([OP_SUB, dest, src])
        case Halt():
            return bytes([OP_HALT])
        case _:
            raise ValueError(f"Unknown instruction: {instr}")


def serialize_program(instructions: List[Instruction]) -> bytes:
    """Serialize a list of instructions to bytecode."""
    return b''.join(serialize_instruction(instr) for instr in instructions)

# =============================================================================
# Deserialization (Bytes -> Instructions)
# =============================================================================

def decode(raw: RawInstruction) -> Instruction:
    """
    Turn a raw instruction into its typed variant.

    Pure: reads nothing but `raw` and returns a fresh value.

    Raises:
        UnknownOpcode: If the opcode is not LOAD, STORE, ADD, SUB or HALT
    """
    match raw.opcode:
        case _ if raw.opcode == OP_LOAD:
            return Load(register=raw.operand_0, address=raw.operand_1)
        case _ if raw.opcode == OP_STORE:
            return Store(register=raw.operand_0, address=raw.operand_1)
        case _ if raw.opcode == OP_ADD:
            return Add(dest=raw.operand_0, src=raw.operand_1)
        case _ if raw.opcode == OP_SUB:
            return Sub(dest=raw.operand_0, src=raw.operand_1)
        case _ if raw.opcode == OP_HALT:
            return Halt()
        case _:
            raise UnknownOpcode(raw.opcode)


def deserialize_instruction(data: bytes, offset: int = 0) -> Tuple[Instruction, int]:
    """
    Deserialize a single instruction from bytes.

    Args:
        data: Bytecode buffer
        offset: Starting position in buffer

    Returns:
        Tuple of (instruction, new_offset)

    Raises:
        FetchOutOfBounds: If the opcode or one of its operands lies past the buffer
        UnknownOpcode: If the opcode byte is not part of the instruction set
    """
    if offset >= len(data):
        raise FetchOutOfBounds(offset)

    opcode = data[offset]
    if opcode in OPERAND_OPCODES:
        if offset + OPERAND_INSTRUCTION_LENGTH > len(data):
            raise FetchOutOfBounds(len(data))
        raw = RawInstruction(opcode, data[offset + 1], data[offset + 2])
    else:
        raw = RawInstruction(opcode)

    try:
        instr = decode(raw)
    except UnknownOpcode:
        raise UnknownOpcode(opcode, offset) from None
    return instr, offset + instruction_length(instr)


def deserialize_program(data: bytes, stop_at_halt: bool = True) -> List[Instruction]:
    """
    Deserialize bytecode into a list of instructions.

    Args:
        data: Bytecode buffer
        stop_at_halt: Stop after the first HALT instead of decoding the
            rest of the buffer (which is usually zero padding)

    Returns:
        List of instructions
    """
    instructions = []
    offset = 0

    while offset < len(data):
        instr, offset = deserialize_instruction(data, offset)
        instructions.append(instr)
        if stop_at_halt and isinstance(instr, Halt):
            break

    return instructions
