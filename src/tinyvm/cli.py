"""Command line front end: run, disassemble, assemble and fuzz images."""

import argparse
import logging
import pathlib
import sys
from typing import List, Optional

from rich.console import Console

from .assembler import assemble, format_instruction, format_listing
from .config import ENTRY_POINT, VMConfig
from .errors import TinyVMException
from .fuzzing import run_fuzzer
from .images import REFERENCE_IMAGE, load_image
from .log import setup_logging
from .machine import Machine
from .report import format_report, print_report

logger = logging.getLogger(__name__)


def _load(path: Optional[str]) -> bytes:
    if path is None:
        logger.debug("no image given, using the reference image")
        return REFERENCE_IMAGE
    return load_image(path)


def cmd_run(args: argparse.Namespace, console: Console) -> int:
    config = VMConfig(entry_point=args.entry, max_cycles=args.max_cycles, trace=args.trace)
    machine = Machine(_load(args.image), config)
    result = machine.run()

    for entry in result.trace:
        pc, r1, r2 = entry.registers
        console.print(
            f"{entry.cycle:4d}  {entry.pc:3d}  {format_instruction(entry.instruction):<14}"
            f"pc={pc} r1={r1} r2={r2}",
            highlight=False,
        )

    if args.plain:
        for line in format_report(result.memory, config.data_region_size):
            print(line)
    else:
        print_report(result.memory, config.data_region_size, result.state, console=console)
    return 0


def cmd_disasm(args: argparse.Namespace, console: Console) -> int:
    for line in format_listing(_load(args.image), args.entry):
        console.print(line, highlight=False)
    return 0


def cmd_asm(args: argparse.Namespace, console: Console) -> int:
    image = assemble(pathlib.Path(args.source).read_text(), args.entry)
    pathlib.Path(args.output).write_bytes(image)
    logger.info("wrote %d bytes to %s", len(image), args.output)
    return 0


def cmd_fuzz(args: argparse.Namespace, console: Console) -> int:
    stats = run_fuzzer(
        num_tests=args.num_tests,
        seed=args.seed,
        generator=args.generator,
        max_cycles=args.max_cycles,
    )
    return 0 if stats.violations == 0 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tinyvm",
        description="Minimal fetch-decode-execute machine over 256 bytes of memory",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log every cycle (DEBUG level)"
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only log warnings and errors"
    )
    parser.add_argument(
        "--plain-log",
        action="store_true",
        help="Plain stderr log lines instead of rich formatting"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run an image until HALT")
    run.add_argument("image", nargs="?", help="Image file (.hex, .asm or raw binary); default: reference image")
    run.add_argument("--entry", type=int, default=ENTRY_POINT, help="Initial program counter (default: %(default)s)")
    run.add_argument("--max-cycles", type=int, default=None, help="Abort after this many cycles without HALT")
    run.add_argument("--trace", action="store_true", help="Print every executed cycle")
    run.add_argument("--plain", action="store_true", help="Print the data segment as plain text")
    run.set_defaults(func=cmd_run)

    disasm = sub.add_parser("disasm", help="Disassemble the instruction region")
    disasm.add_argument("image", nargs="?", help="Image file; default: reference image")
    disasm.add_argument("--entry", type=int, default=ENTRY_POINT, help="First instruction address (default: %(default)s)")
    disasm.set_defaults(func=cmd_disasm)

    asm = sub.add_parser("asm", help="Assemble source into a 256-byte image")
    asm.add_argument("source", help="Assembly source file")
    asm.add_argument("-o", "--output", required=True, help="Output image path")
    asm.add_argument("--entry", type=int, default=ENTRY_POINT, help="Code placement address (default: %(default)s)")
    asm.set_defaults(func=cmd_asm)

    fuzz = sub.add_parser("fuzz", help="Check machine invariants on generated images")
    fuzz.add_argument("-n", "--num-tests", type=int, default=1000, help="Number of images (default: %(default)s)")
    fuzz.add_argument("-s", "--seed", type=int, default=None, help="Random seed for reproducibility")
    fuzz.add_argument(
        "-g", "--generator",
        default="mixed",
        choices=["random", "structured", "mixed"],
        help="Image generator (default: %(default)s)"
    )
    fuzz.add_argument("--max-cycles", type=int, default=1000, help="Cycle budget per run (default: %(default)s)")
    fuzz.set_defaults(func=cmd_fuzz)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    else:
        level = logging.INFO
    setup_logging(level, rich_console=not args.plain_log)

    console = Console()
    try:
        return args.func(args, console)
    except (TinyVMException, ValueError, OSError) as e:
        logger.debug("fatal error", exc_info=True)
        print(f"error: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
