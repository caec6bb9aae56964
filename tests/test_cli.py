"""
Tests for the command line front end.

Run with: uv run pytest tests/test_cli.py
"""

from tinyvm.cli import main
from tinyvm.images import REFERENCE_IMAGE, build_image
from tinyvm.isa import Load, REG_PC, serialize_program


def test_run_reference(capsys):
    assert main(["-q", "run", "--plain"]) == 0
    out = capsys.readouterr().out
    assert "data segment:" in out
    assert "mem[0]: 8" in out
    assert "mem[2]: 5" in out


def test_run_table_and_trace(capsys):
    assert main(["-q", "run", "--trace"]) == 0
    out = capsys.readouterr().out
    assert "load r1 1" in out
    assert "halt" in out
    assert "0x08" in out


def test_run_unknown_opcode(tmp_path, capsys):
    path = tmp_path / "bad.hex"
    path.write_text("00 00 00 00 00 00 00 00\n99")
    assert main(["-q", "run", "--plain", str(path)]) == 1
    captured = capsys.readouterr()
    assert "UnknownOpcode" in captured.err
    assert "0x99" in captured.err
    # No report after a fatal error
    assert "data segment" not in captured.out


def test_run_out_of_bounds(tmp_path, capsys):
    path = tmp_path / "jump.bin"
    path.write_bytes(build_image(data=bytes([253]), code=serialize_program([Load(REG_PC, 0)])))
    assert main(["-q", "run", str(path)]) == 1
    assert "FetchOutOfBounds" in capsys.readouterr().err


def test_run_cycle_limit(tmp_path, capsys):
    path = tmp_path / "loop.bin"
    path.write_bytes(build_image(data=bytes([5]), code=serialize_program([Load(REG_PC, 0)])))
    assert main(["-q", "run", "--max-cycles", "50", str(path)]) == 1
    assert "CycleLimitExceeded" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main(["-q", "run", str(tmp_path / "nope.bin")]) == 1
    assert "error:" in capsys.readouterr().err


def test_asm_and_disasm(tmp_path, capsys):
    source = tmp_path / "sum.asm"
    source.write_text(".data 0 3 5\nload r1 1\nload r2 2\nadd r1 r2\nstore r1 0\nhalt\n")
    output = tmp_path / "sum.bin"
    assert main(["-q", "asm", str(source), "-o", str(output)]) == 0
    assert output.read_bytes() == REFERENCE_IMAGE

    assert main(["-q", "disasm", str(output)]) == 0
    out = capsys.readouterr().out
    assert "store r1 0" in out


def test_fuzz(capsys):
    assert main(["-q", "fuzz", "-n", "25", "-s", "7", "-g", "structured"]) == 0
    assert "All properties held!" in capsys.readouterr().out
