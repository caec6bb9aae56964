"""Machine state holders: the flat memory and the register file."""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .config import ENTRY_POINT, DATA_REGION_SIZE, MEMORY_SIZE
from .errors import InvalidImage, InvalidRegister, MemoryOutOfBounds
from .isa import UINT8_MAX, REG_PC, REG_R1, REG_R2


class Memory:
    """
    256 unsigned byte cells addressed 0..255.

    All reads and writes go through `read`/`write` (or indexing), which
    raise MemoryOutOfBounds for any address outside the array.
    """

    def __init__(self, image: Optional[Iterable[int]] = None):
        if image is None:
            self._cells = bytearray(MEMORY_SIZE)
            return
        try:
            cells = bytearray(image)
        except (TypeError, ValueError) as e:
            raise InvalidImage(f"image must be a sequence of bytes: {e}") from e
        if len(cells) != MEMORY_SIZE:
            raise InvalidImage(
                f"image must be exactly {MEMORY_SIZE} bytes, got {len(cells)}"
            )
        self._cells = cells

    def __len__(self) -> int:
        return MEMORY_SIZE

    def __eq__(self, other) -> bool:
        if not isinstance(other, Memory):
            return NotImplemented
        return self._cells == other._cells

    def __repr__(self) -> str:
        return f"Memory({self._cells.hex()})"

    @staticmethod
    def in_bounds(address: int) -> bool:
        return 0 <= address < MEMORY_SIZE

    def read(self, address: int) -> int:
        if not self.in_bounds(address):
            raise MemoryOutOfBounds(address)
        return self._cells[address]

    def write(self, address: int, value: int) -> None:
        if not self.in_bounds(address):
            raise MemoryOutOfBounds(address)
        if not (0 <= value <= UINT8_MAX):
            raise ValueError(f"memory cell value must be 0-255, got {value}")
        self._cells[address] = value

    __getitem__ = read
    __setitem__ = write

    def data_region(self, size: int = DATA_REGION_SIZE) -> bytes:
        """The first `size` bytes, conventionally program data."""
        return bytes(self._cells[:size])

    def to_bytes(self) -> bytes:
        return bytes(self._cells)

    def copy(self) -> 'Memory':
        return Memory(self._cells)


@dataclass
class MachineState:
    """Program counter and the two general purpose registers.

    Registers are also addressable by index: 0 is the program counter
    slot, 1 and 2 are r1 and r2. Instructions use that index space.
    """
    program_counter: int = ENTRY_POINT
    register_1: int = 0
    register_2: int = 0

    def __post_init__(self):
        if self.program_counter < 0:
            raise ValueError(f"program_counter must be non-negative, got {self.program_counter}")
        for name in ('register_1', 'register_2'):
            value = getattr(self, name)
            if not (0 <= value <= UINT8_MAX):
                raise ValueError(f"{name} must be 0-255, got {value}")

    @property
    def registers(self) -> Tuple[int, int, int]:
        return (self.program_counter, self.register_1, self.register_2)

    def get_register(self, index: int) -> int:
        if index == REG_PC:
            return self.program_counter
        if index == REG_R1:
            return self.register_1
        if index == REG_R2:
            return self.register_2
        raise InvalidRegister(index)

    def set_register(self, index: int, value: int) -> None:
        if not (0 <= value <= UINT8_MAX):
            raise ValueError(f"register value must be 0-255, got {value}")
        if index == REG_PC:
            self.program_counter = value
        elif index == REG_R1:
            self.register_1 = value
        elif index == REG_R2:
            self.register_2 = value
        else:
            raise InvalidRegister(index)

    def copy(self) -> 'MachineState':
        return MachineState(*self.registers)
