"""Final data region report, shown after the machine halts."""

from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .config import DATA_REGION_SIZE
from .state import Memory, MachineState


def data_region(memory: Memory, size: int = DATA_REGION_SIZE) -> List[int]:
    return list(memory.data_region(size))


def format_report(memory: Memory, size: int = DATA_REGION_SIZE) -> List[str]:
    """Plain text dump of the data region, one cell per line."""
    lines = ["data segment:"]
    for address, value in enumerate(data_region(memory, size)):
        lines.append(f"mem[{address}]: {value}")
    return lines


def build_report_table(memory: Memory, size: int = DATA_REGION_SIZE,
                       state: Optional[MachineState] = None) -> Table:
    table = Table(title="data segment")
    table.add_column("address", justify="right")
    table.add_column("value", justify="right")
    table.add_column("hex", justify="right")
    for address, value in enumerate(data_region(memory, size)):
        table.add_row(f"mem[{address}]", str(value), f"0x{value:02X}")
    if state is not None:
        pc, r1, r2 = state.registers
        table.caption = f"pc={pc} r1={r1} r2={r2}"
    return table


def print_report(memory: Memory, size: int = DATA_REGION_SIZE,
                 state: Optional[MachineState] = None,
                 console: Optional[Console] = None) -> None:
    """Print the data region as a table."""
    console = console or Console()
    console.print(build_report_table(memory, size, state))
