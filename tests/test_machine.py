"""
Tests for memory, machine state, fetch, execute and the run loop.

Run with: uv run pytest tests/test_machine.py
"""

import pytest

from tinyvm.config import VMConfig, ENTRY_POINT
from tinyvm.errors import (
    CycleLimitExceeded, FetchOutOfBounds, InvalidImage, InvalidRegister,
    MachineHalted, MemoryOutOfBounds, UnknownInstruction, UnknownOpcode,
)
from tinyvm.images import REFERENCE_IMAGE, build_image
from tinyvm.isa import (
    OP_ADD, OP_HALT, OP_LOAD, REG_PC, REG_R1, REG_R2,
    RawInstruction, Load, Store, Add, Sub, Halt, serialize_program,
)
from tinyvm.machine import Machine, Status, execute, fetch, run_image
from tinyvm.state import Memory, MachineState


# =============================================================================
# Memory & Machine State
# =============================================================================

def test_memory():
    memory = Memory()
    assert len(memory) == 256
    assert memory.to_bytes() == bytes(256)

    memory[255] = 0xAB
    assert memory[255] == 0xAB

    with pytest.raises(MemoryOutOfBounds) as excinfo:
        memory[256]
    assert excinfo.value.address == 256
    with pytest.raises(MemoryOutOfBounds):
        memory[-1] = 0
    with pytest.raises(ValueError):
        memory[0] = 256
    print("✓ Bounds-checked access")

    with pytest.raises(InvalidImage):
        Memory(bytes(255))
    with pytest.raises(InvalidImage):
        Memory([300] * 256)
    print("✓ Image validation")

    copy = memory.copy()
    assert copy == memory
    copy[0] = 1
    assert copy != memory


def test_machine_state():
    state = MachineState()
    assert state.registers == (ENTRY_POINT, 0, 0)

    state.set_register(REG_R1, 7)
    state.set_register(REG_R2, 9)
    state.set_register(REG_PC, 20)
    assert state.registers == (20, 7, 9)
    assert state.get_register(REG_R2) == 9

    with pytest.raises(InvalidRegister):
        state.get_register(3)
    with pytest.raises(InvalidRegister):
        state.set_register(255, 0)
    with pytest.raises(ValueError):
        state.set_register(REG_R1, 256)
    with pytest.raises(ValueError):
        MachineState(register_1=-1)


# =============================================================================
# Fetch
# =============================================================================

def test_fetch():
    memory = Memory(REFERENCE_IMAGE)
    assert fetch(MachineState(), memory) == RawInstruction(OP_LOAD, 1, 1)
    assert fetch(MachineState(program_counter=14), memory) == RawInstruction(OP_ADD, 1, 2)
    assert fetch(MachineState(program_counter=20), memory) == RawInstruction(OP_HALT, 0, 0)
    print("✓ Operand and HALT fetch")

    # Unknown opcodes are fetched without operands; decode rejects them
    memory = Memory(build_image(code=bytes([0x99, 0x07, 0x07])))
    assert fetch(MachineState(), memory) == RawInstruction(0x99, 0, 0)
    print("✓ Unknown opcode fetched as a bare byte")


def test_fetch_out_of_bounds():
    memory = Memory()
    with pytest.raises(FetchOutOfBounds) as excinfo:
        fetch(MachineState(program_counter=256), memory)
    assert excinfo.value.address == 256

    # Operand bytes past the end are bounds-checked too
    memory[254] = OP_ADD
    with pytest.raises(FetchOutOfBounds) as excinfo:
        fetch(MachineState(program_counter=254), memory)
    assert excinfo.value.address == 256

    memory[255] = OP_ADD
    with pytest.raises(FetchOutOfBounds) as excinfo:
        fetch(MachineState(program_counter=255), memory)
    assert excinfo.value.address == 256

    # HALT in the last cell needs no operands
    memory[255] = OP_HALT
    assert fetch(MachineState(program_counter=255), memory) == RawInstruction(OP_HALT)


# =============================================================================
# Execute
# =============================================================================

def test_execute_load_store():
    memory = Memory()
    memory[5] = 42
    state = MachineState()

    assert execute(state, Load(REG_R1, 5), memory) == 3
    assert state.register_1 == 42
    assert state.program_counter == ENTRY_POINT  # Execute never moves the pc

    assert execute(state, Store(REG_R1, 6), memory) == 3
    assert memory[6] == 42
    print("✓ LOAD/STORE")


def test_store_load_round_trip():
    memory = Memory()
    memory[3] = 99
    state = MachineState(register_2=17)
    execute(state, Store(REG_R2, 3), memory)
    execute(state, Load(REG_R2, 3), memory)
    assert state.register_2 == 17
    assert memory[3] == 17


def test_execute_arithmetic_wraps():
    memory = Memory()

    state = MachineState(register_1=250, register_2=10)
    assert execute(state, Add(REG_R1, REG_R2), memory) == 3
    assert state.register_1 == 4
    assert state.register_2 == 10

    state = MachineState(register_1=3, register_2=5)
    execute(state, Sub(REG_R1, REG_R2), memory)
    assert state.register_1 == 254

    state = MachineState(register_1=128)
    execute(state, Add(REG_R1, REG_R1), memory)
    assert state.register_1 == 0
    print("✓ 8-bit wraparound")


def test_execute_halt():
    memory = Memory(REFERENCE_IMAGE)
    state = MachineState(register_1=1, register_2=2)
    assert execute(state, Halt(), memory) == 1
    assert state.registers == (ENTRY_POINT, 1, 2)
    assert memory.to_bytes() == REFERENCE_IMAGE


def test_execute_pc_register():
    """Register index 0 is the program counter slot and may be targeted."""
    memory = Memory()
    memory[0] = 40
    state = MachineState()
    execute(state, Load(REG_PC, 0), memory)
    assert state.program_counter == 40

    execute(state, Store(REG_PC, 1), memory)
    assert memory[1] == 40


def test_execute_errors():
    with pytest.raises(UnknownInstruction):
        execute(MachineState(), RawInstruction(OP_ADD, 1, 2), Memory())
    with pytest.raises(InvalidRegister):
        execute(MachineState(), Add(REG_R1, 3), Memory())
    with pytest.raises(InvalidRegister):
        execute(MachineState(), Load(7, 0), Memory())


# =============================================================================
# Driver
# =============================================================================

def test_reference_program():
    result = run_image(REFERENCE_IMAGE)
    assert result.state.register_1 == 8
    assert result.state.register_2 == 5
    assert result.memory[0] == 8
    assert result.data_region == bytes([8, 3, 5, 0, 0, 0, 0, 0])
    assert result.cycles == 5
    # HALT sits at 20 and the pc is not moved past it
    assert result.state.program_counter == 20
    print("✓ Reference program: mem[0] = 3 + 5")


def test_initial_state_ignores_image():
    image = build_image(data=bytes([9, 9, 9, 9, 9, 9, 9, 9]), code=bytes([OP_HALT]))
    machine = Machine(image)
    assert machine.status is Status.RUNNING
    assert machine.state.registers == (ENTRY_POINT, 0, 0)


def test_fixed_width_progression():
    machine = Machine(REFERENCE_IMAGE, VMConfig(trace=True))
    result = machine.run()
    assert [entry.pc for entry in result.trace] == [8, 11, 14, 17, 20]
    assert [entry.registers for entry in result.trace] == [
        (11, 3, 0),
        (14, 3, 5),
        (17, 8, 5),
        (20, 8, 5),
        (20, 8, 5),
    ]


def test_step_and_halted_state():
    machine = Machine(REFERENCE_IMAGE)
    assert machine.step() == Load(REG_R1, 1)
    assert machine.state.program_counter == 11
    while not machine.halted:
        machine.step()
    assert machine.status is Status.HALTED
    with pytest.raises(MachineHalted):
        machine.step()


def test_unknown_opcode_stops_before_mutation():
    image = build_image(data=bytes([1, 2, 3]), code=bytes([0x99, 0x01, 0x00]))
    machine = Machine(image)
    with pytest.raises(UnknownOpcode) as excinfo:
        machine.run()
    assert excinfo.value.opcode == 0x99
    assert excinfo.value.address == ENTRY_POINT
    assert machine.state.registers == (ENTRY_POINT, 0, 0)
    assert machine.memory.to_bytes() == image
    assert machine.cycles == 0


def test_runaway_program():
    # 82 ADDs end at 254, leaving an ADD whose second operand is past memory
    code = serialize_program([Add(REG_R1, REG_R2)] * 82) + bytes([OP_ADD, REG_R1])
    image = build_image(code=code)
    with pytest.raises(FetchOutOfBounds) as excinfo:
        run_image(image)
    assert excinfo.value.address == 256

    # A jump through the pc slot lands past the end of memory instead of wrapping
    image = build_image(data=bytes([253]), code=serialize_program([Load(REG_PC, 0)]))
    with pytest.raises(FetchOutOfBounds) as excinfo:
        run_image(image)
    assert excinfo.value.address == 256


def test_cycle_limit():
    # pc = mem[0] + 3 = 8: jumps back to itself forever
    image = build_image(data=bytes([5]), code=serialize_program([Load(REG_PC, 0)]))
    machine = Machine(image, VMConfig(max_cycles=10))
    with pytest.raises(CycleLimitExceeded):
        machine.run()
    assert machine.cycles == 10


def test_self_modifying_code():
    # Overwrite the ADD's opcode with HALT before reaching it
    program = [
        Load(REG_R1, 0),
        Store(REG_R1, 14),
        Add(REG_R1, REG_R1),
    ]
    image = build_image(data=bytes([OP_HALT]), code=serialize_program(program))
    result = run_image(image)
    assert result.state.register_1 == OP_HALT
    assert result.state.program_counter == 14


def test_determinism():
    config = VMConfig(trace=True)
    first = Machine(REFERENCE_IMAGE, config).run()
    second = Machine(REFERENCE_IMAGE, config).run()
    assert first.memory == second.memory
    assert first.trace == second.trace


def test_config_validation():
    with pytest.raises(ValueError):
        VMConfig(entry_point=256)
    with pytest.raises(ValueError):
        VMConfig(max_cycles=0)
    with pytest.raises(ValueError):
        VMConfig(data_region_size=257)


if __name__ == "__main__":
    for name, func in list(globals().items()):
        if name.startswith("test_"):
            func()
    print("\nAll tests passed!")
