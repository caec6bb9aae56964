"""TinyVM: a minimal fetch-decode-execute machine over 256 bytes of memory."""

from .config import (
    # Constants
    MEMORY_SIZE, DATA_REGION_SIZE, ENTRY_POINT,
    # Configuration
    VMConfig,
)

from .isa import (
    # Constants
    UINT8_MAX,
    OP_NIL, OP_LOAD, OP_STORE, OP_ADD, OP_SUB, OP_HALT,
    REG_PC, REG_R1, REG_R2,
    # Instructions
    RawInstruction, Load, Store, Add, Sub, Halt, Instruction,
    instruction_length,
    # Serialization
    serialize_instruction, serialize_program,
    deserialize_instruction, deserialize_program,
    decode,
)

from .errors import (
    TinyVMException, MemoryOutOfBounds, FetchOutOfBounds,
    UnknownOpcode, UnknownInstruction, InvalidRegister,
    InvalidImage, MachineHalted, CycleLimitExceeded, AssemblyError,
)

from .state import Memory, MachineState

from .machine import (
    fetch, execute,
    Status, TraceEntry, RunResult, Machine, run_image,
)

from .images import REFERENCE_PROGRAM, REFERENCE_IMAGE, build_image, load_image

from .assembler import assemble, disassemble, format_instruction

__version__ = "0.1.0"
