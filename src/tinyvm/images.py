"""Program images: building, parsing and loading 256-byte memory images."""

import logging
import pathlib
from typing import Union

from .config import ENTRY_POINT, MEMORY_SIZE
from .errors import InvalidImage
from .isa import Load, Store, Add, Sub, Halt, REG_R1, REG_R2, serialize_program

logger = logging.getLogger(__name__)


def build_image(data: bytes = b'', code: bytes = b'', entry_point: int = ENTRY_POINT) -> bytes:
    """
    Lay out a full memory image.

    `data` goes at address 0 and `code` at `entry_point`; everything else
    is zero.

    Raises:
        InvalidImage: If the data overlaps the code or the code runs past memory
    """
    if len(data) > entry_point:
        raise InvalidImage(
            f"data region holds {entry_point} bytes, got {len(data)}"
        )
    if entry_point + len(code) > MEMORY_SIZE:
        raise InvalidImage(
            f"code of {len(code)} bytes does not fit at address {entry_point}"
        )
    image = bytearray(MEMORY_SIZE)
    image[:len(data)] = data
    image[entry_point:entry_point + len(code)] = code
    return bytes(image)


# Adds mem[1] and mem[2] into mem[0]
REFERENCE_PROGRAM = [
    Load(register=REG_R1, address=1),
    Load(register=REG_R2, address=2),
    Add(dest=REG_R1, src=REG_R2),
    Store(register=REG_R1, address=0),
    Halt(),
]

REFERENCE_IMAGE = build_image(
    data=bytes([0x00, 0x03, 0x05, 0x00, 0x00, 0x00, 0x00, 0x00]),
    code=serialize_program(REFERENCE_PROGRAM),
)


def parse_hex_image(text: str) -> bytes:
    """
    Parse whitespace separated hex bytes. `#` starts a comment.

    Example:
        00 03 05 00 00 00 00 00   # data
        01 01 01                  # load r1 1
    """
    values = bytearray()
    for line_no, line in enumerate(text.splitlines(), start=1):
        for token in line.split('#', 1)[0].split():
            try:
                value = int(token, 16)
            except ValueError:
                raise InvalidImage(f"line {line_no}: not a hex byte: {token!r}") from None
            if not (0 <= value <= 0xFF):
                raise InvalidImage(f"line {line_no}: byte out of range: {token!r}")
            values.append(value)
    return bytes(values)


def pad_image(data: bytes) -> bytes:
    """Zero pad an image to the memory size."""
    if len(data) > MEMORY_SIZE:
        raise InvalidImage(f"image is {len(data)} bytes, memory holds {MEMORY_SIZE}")
    if len(data) < MEMORY_SIZE:
        logger.debug("padding %d byte image to %d bytes", len(data), MEMORY_SIZE)
    return data + bytes(MEMORY_SIZE - len(data))


def load_image(path: Union[str, pathlib.Path]) -> bytes:
    """
    Load an image from disk.

    `.hex` files are hex text, `.asm` files are assembly source, anything
    else is read as raw bytes. Short images are zero padded.
    """
    path = pathlib.Path(path)
    suffix = path.suffix.lower()

    if suffix == '.asm':
        from .assembler import assemble
        return assemble(path.read_text())
    if suffix == '.hex':
        data = parse_hex_image(path.read_text())
    else:
        data = path.read_bytes()

    logger.debug("loaded %d bytes from %s", len(data), path)
    return pad_image(data)
