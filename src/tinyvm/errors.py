"""Exception hierarchy for TinyVM.

Every fatal machine condition is a subclass of TinyVMException. The core
raises them; only the command line front end turns them into a
diagnostic and a non-zero exit status.
"""

from typing import Any


class TinyVMException(Exception):
    """Base exception for all TinyVM errors."""
    pass


class MemoryOutOfBounds(TinyVMException):
    """Raised when a memory cell outside [0, 256) is read or written."""

    def __init__(self, address: int, message: str | None = None):
        self.address = address
        super().__init__(message or f"address {address} is outside main memory")


class FetchOutOfBounds(MemoryOutOfBounds):
    """Raised when the opcode or an operand byte lies past the end of memory."""

    def __init__(self, address: int):
        super().__init__(
            address, f"tried to fetch address {address}, bigger than main memory"
        )


class UnknownOpcode(TinyVMException):
    """Raised when decode receives an opcode outside the instruction set."""

    def __init__(self, opcode: int, address: int | None = None):
        self.opcode = opcode
        self.address = address
        where = f" at address {address}" if address is not None else ""
        super().__init__(f"failed to decode unknown instruction 0x{opcode:02X}{where}")


class UnknownInstruction(TinyVMException):
    """Raised when execute is handed something that is not an instruction."""

    def __init__(self, instruction: Any):
        self.instruction = instruction
        super().__init__(f"unknown instruction {instruction!r}")


class InvalidRegister(TinyVMException):
    """Raised when an instruction names a register slot that does not exist."""

    def __init__(self, index: int):
        self.index = index
        super().__init__(f"register index {index} does not name pc, r1 or r2")


class InvalidImage(TinyVMException):
    """Raised when a program image cannot be loaded into memory."""
    pass


class MachineHalted(TinyVMException):
    """Raised when a halted machine is asked to step again."""
    pass


class CycleLimitExceeded(TinyVMException):
    """Raised when a run exceeds its configured cycle budget without halting."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"no HALT within {limit} cycles")


class AssemblyError(TinyVMException):
    """Raised when assembly source cannot be translated into an image."""

    def __init__(self, line_no: int, message: str):
        self.line_no = line_no
        super().__init__(f"line {line_no}: {message}")
