"""
Text assembler and disassembler.

Source syntax, one statement per line:

    .data 0 3 5        # bytes for the data region (may repeat)
    load  r1 1         # r1 = mem[1]
    load  r2 2
    add   r1 r2        # r1 = r1 + r2
    store r1 0         # mem[0] = r1
    halt

Registers are `pc`, `r1`, `r2`, or `rN` for a raw register index.
Numbers are decimal or `0x` hex; an address may be written `[addr]`.
`#` and `;` start comments, commas between operands are optional.
"""

from typing import List, Tuple, Union

from .config import ENTRY_POINT
from .errors import AssemblyError
from .images import build_image
from .isa import (
    UINT8_MAX, REG_PC,
    Instruction, Load, Store, Add, Sub, Halt,
    serialize_program, deserialize_instruction, instruction_length,
)
from .state import Memory

MNEMONICS = {
    'load': Load,
    'store': Store,
    'add': Add,
    'sub': Sub,
    'halt': Halt,
}


def _strip_comment(line: str) -> str:
    for marker in ('#', ';'):
        line = line.split(marker, 1)[0]
    return line.strip()


def _parse_byte(token: str, line_no: int, what: str) -> int:
    try:
        value = int(token, 0)
    except ValueError:
        raise AssemblyError(line_no, f"expected {what}, got {token!r}") from None
    if not (0 <= value <= UINT8_MAX):
        raise AssemblyError(line_no, f"{what} out of range 0-255: {token!r}")
    return value


def _parse_register(token: str, line_no: int) -> int:
    token = token.lower()
    if token == 'pc':
        return REG_PC
    if not token.startswith('r'):
        raise AssemblyError(line_no, f"expected register, got {token!r}")
    return _parse_byte(token[1:], line_no, "register index")


def _parse_address(token: str, line_no: int) -> int:
    if token.startswith('[') and token.endswith(']'):
        token = token[1:-1]
    return _parse_byte(token, line_no, "address")


def parse_line(line: str, line_no: int) -> Instruction:
    """Parse a single instruction statement."""
    mnemonic, *operands = line.replace(',', ' ').split()
    kind = MNEMONICS.get(mnemonic.lower())
    if kind is None:
        raise AssemblyError(line_no, f"unknown mnemonic {mnemonic!r}")

    expected = 0 if kind is Halt else 2
    if len(operands) != expected:
        raise AssemblyError(
            line_no, f"{mnemonic} takes {expected} operands, got {len(operands)}"
        )

    if kind is Halt:
        return Halt()
    if kind in (Load, Store):
        return kind(_parse_register(operands[0], line_no), _parse_address(operands[1], line_no))
    return kind(_parse_register(operands[0], line_no), _parse_register(operands[1], line_no))


def assemble_program(source: str) -> Tuple[bytes, List[Instruction]]:
    """Assemble source into its data bytes and instruction list."""
    data = bytearray()
    instructions: List[Instruction] = []

    for line_no, raw_line in enumerate(source.splitlines(), start=1):
        line = _strip_comment(raw_line)
        if not line:
            continue
        if line.startswith('.data'):
            for token in line[len('.data'):].replace(',', ' ').split():
                data.append(_parse_byte(token, line_no, "data byte"))
            continue
        instructions.append(parse_line(line, line_no))

    return bytes(data), instructions


def assemble(source: str, entry_point: int = ENTRY_POINT) -> bytes:
    """Assemble source text into a full 256-byte image."""
    data, instructions = assemble_program(source)
    return build_image(data, serialize_program(instructions), entry_point)

# =============================================================================
# Disassembly
# =============================================================================

def register_name(index: int) -> str:
    return 'pc' if index == REG_PC else f'r{index}'


def format_instruction(instr: Instruction) -> str:
    """Render an instruction in assembler syntax."""
    match instr:
        case Load(register=reg, address=addr):
            return f"load {register_name(reg)} {addr}"
        case Store(register=reg, address=addr):
            return f"store {register_name(reg)} {addr}"
        case Add(dest=dest, src=src):
            return f"add {register_name(dest)} {register_name(src)}"
        case Sub(dest=dest, src=src):
            return f"sub {register_name(dest)} {register_name(src)}"
        case Halt():
            return "halt"
        case _:
            raise ValueError(f"Unknown instruction: {instr}")


def disassemble(image: Union[Memory, bytes], start: int = ENTRY_POINT) -> List[Tuple[int, Instruction]]:
    """
    Decode the instruction stream from `start` up to and including HALT.

    Raises:
        UnknownOpcode: On a byte outside the instruction set
        FetchOutOfBounds: If the stream runs off the end of memory
    """
    data = image.to_bytes() if isinstance(image, Memory) else bytes(image)
    listing = []
    offset = start
    while True:
        instr, next_offset = deserialize_instruction(data, offset)
        listing.append((offset, instr))
        if isinstance(instr, Halt):
            return listing
        offset = next_offset


def format_listing(image: Union[Memory, bytes], start: int = ENTRY_POINT) -> List[str]:
    """Disassembly with addresses and raw bytes, one line per instruction."""
    data = image.to_bytes() if isinstance(image, Memory) else bytes(image)
    lines = []
    for address, instr in disassemble(data, start):
        encoded = data[address:address + instruction_length(instr)]
        lines.append(f"{address:3d}  {encoded.hex(' '):<8}  {format_instruction(instr)}")
    return lines
