"""
Execution engine tests.

Programs are assembled from source where that reads better, and written
as raw words where a test needs an exact bit pattern.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import io
import logging

import pytest
from tims_assembler import assemble
from tims_emulator import (InputTooLong, InvalidInput, Memory, MemoryAccessError,
                           Registers, StopReason, TimsEmulator)
from tims_emulator.emu import DONE_BANNER, EXEC_BANNER

END = 0x4300


def _emu(stdin: str = "", mem: Memory = None):
    out = io.StringIO()
    emu = TimsEmulator(mem or Memory(None, None), stdin=io.StringIO(stdin), stdout=out)
    return emu, out


def _run(source: str, stdin: str = "", base: int = 0):
    emu, out = _emu(stdin)
    emu.load(assemble(source), base)
    reason = emu.run(max_steps=1000)
    return emu, out.getvalue(), reason


class TestRegisters:
    def test_display(self):
        regs = Registers(3)
        regs.instruction_register = 0x4300
        regs.accumulator = -1
        assert regs.display() == (
            "REGISTERS:\n"
            "Instruction Pointer     0x03\n"
            "Instruction Register  0x4300\n"
            "Accumulator           0xffff")

    def test_reset(self):
        regs = Registers(9)
        regs.accumulator = 4
        regs.fetches = 12
        regs.reset(2)
        assert regs.instruction_pointer == 2
        assert regs.accumulator == 0
        assert regs.fetches == 0


class TestHalt:
    def test_single_end(self):
        emu, out = _emu()
        emu.load([END])
        assert emu.run() is StopReason.HALT
        assert emu.regs.fetches == 1
        text = out.getvalue()
        assert text.startswith(EXEC_BANNER)
        assert DONE_BANNER in text
        assert "REGISTERS:" in text

    def test_halt_leaves_ip_on_end(self):
        emu, out = _emu()
        emu.load([0x0505, END], 40)
        emu.run()
        assert emu.regs.instruction_pointer == 41
        assert emu.regs.instruction_register == END
        assert "Instruction Pointer     0x29" in out.getvalue()

    def test_step_returns_none_until_end(self):
        emu, _ = _emu()
        emu.load([0x0505, END])
        assert emu.step() is None
        assert emu.step() is StopReason.HALT

    def test_max_steps(self):
        emu, out = _emu()
        emu.load(assemble("loop: B loop\n"))
        assert emu.run(max_steps=5) is StopReason.TIMEOUT
        assert emu.regs.fetches == 5
        assert DONE_BANNER not in out.getvalue()


class TestBranches:
    def test_branch_next_fetch_at_target(self):
        emu, _ = _emu()
        words = [0x4005, END, END, END, END, 0x1209, END]
        emu.load(words)
        emu.step()
        assert emu.regs.instruction_pointer == 5
        emu.step()
        assert emu.regs.instruction_register == 0x1209

    def test_branch_relocated_with_base(self):
        emu, _ = _emu()
        emu.load([0x4002, END, END], 10)
        emu.step()
        assert emu.regs.instruction_pointer == 12

    def test_bz_taken_when_accumulator_zero(self):
        emu, out, _ = _run(
            "       BZ skip\n"
            "       PRTI 9\n"
            "skip:  END\n")
        assert emu.regs.fetches == 2

    def test_bn_not_taken_when_accumulator_zero(self):
        emu, _, _ = _run(
            "       BN skip\n"
            "       0x0505\n"
            "skip:  END\n")
        assert emu.regs.fetches == 3

    def test_bn_taken_when_accumulator_negative(self):
        emu, _ = _emu()
        emu.load(assemble("BN 2\nBZ 0\nEND\n"))
        emu.regs.accumulator = -3
        emu.run()
        assert emu.regs.fetches == 2

    def test_bz_not_taken_when_accumulator_nonzero(self):
        emu, _ = _emu()
        emu.load(assemble("BZ 2\n0x0505\nEND\n"))
        emu.regs.accumulator = 1
        emu.run()
        assert emu.regs.fetches == 3

    def test_unknown_opcode_is_noop(self):
        emu, _ = _emu()
        emu.load([0x0000, 0x7F7F, END])
        assert emu.run() is StopReason.HALT
        assert emu.regs.fetches == 3

    def test_fetch_outside_store(self):
        emu, _ = _emu()
        emu.load([0x4000 | 100])
        emu.step()
        with pytest.raises(MemoryAccessError):
            emu.step()


class TestIntegerIO:
    def test_read_and_print(self):
        emu, out, reason = _run(
            "       RDI  n\n"
            "       PRTI n\n"
            "       END\n"
            "n:     0\n", stdin="42\n")
        assert reason is StopReason.HALT
        assert "\n42\n" in out
        assert emu.mem.read_word(3) == 42

    def test_negative_input(self):
        emu, out, _ = _run("RDI 5\nPRTI 5\nEND\n", stdin="  -7 \n", base=10)
        assert emu.mem.read_word(15) == -7
        assert "-7\n" in out

    def test_input_wraps_to_word(self):
        emu, _, _ = _run("RDI 5\nEND\n", stdin="65535\n")
        assert emu.mem.read_word(5) == -1

    def test_non_integer_input(self):
        with pytest.raises(InvalidInput, match="not an integer"):
            _run("RDI 5\nEND\n", stdin="abc\n")

    def test_end_of_input(self):
        with pytest.raises(InvalidInput, match="end of input"):
            _run("RDI 5\nEND\n", stdin="")


class TestBufferedInput:
    """RDI reads one integer token; the rest of the line stays buffered."""

    def test_two_integers_on_one_line(self):
        emu, out, reason = _run("RDI 10\nRDI 11\nPRTI 10\nPRTI 11\nEND\n",
                                stdin="12 34\n")
        assert reason is StopReason.HALT
        assert emu.mem.read_word(10) == 12
        assert emu.mem.read_word(11) == 34
        assert "12\n34\n" in out

    def test_blank_lines_skipped(self):
        emu, _, _ = _run("RDI 10\nRDI 11\nEND\n", stdin="\n  \n5\n\n\t-6\n")
        assert emu.mem.read_word(10) == 5
        assert emu.mem.read_word(11) == -6

    def test_string_takes_rest_of_line(self):
        emu, _, _ = _run("RDI 10\nRDS 20\nEND\n", stdin="7 seven days\n")
        assert emu.mem.read_word(10) == 7
        assert emu.mem.read_bytes(40, 11) == b"seven days\x00"

    def test_string_on_next_line_after_integer(self):
        emu, _, _ = _run("RDI 10\nRDS 20\nEND\n", stdin="7\nweek\n")
        assert emu.mem.read_word(10) == 7
        assert emu.mem.read_bytes(40, 4) == b"week"

    def test_bad_second_token(self):
        with pytest.raises(InvalidInput, match="not an integer: 'x'"):
            _run("RDI 10\nRDI 11\nEND\n", stdin="3 x\n")

    def test_input_runs_out_mid_program(self):
        with pytest.raises(InvalidInput, match="end of input"):
            _run("RDI 10\nRDI 11\nEND\n", stdin="3\n")

    def test_reset_drops_buffered_input(self):
        emu, _ = _emu("1 2\n3\n")
        emu.load(assemble("RDI 10\nEND\n"))
        emu.run()
        emu.reset()
        emu.run()
        assert emu.mem.read_word(10) == 3


class TestStringIO:
    def test_read_and_print(self):
        emu, out, _ = _run(
            "       RDS  buf\n"
            "       PRTS buf\n"
            "       END\n"
            "buf:   0\n", stdin="Hello\n")
        assert "Hello\n" in out
        assert emu.mem.read_bytes(6, 5) == b"Hello"

    def test_print_string_literal(self):
        _, out, _ = _run(
            "       PRTS msg\n"
            "       END\n"
            'msg:   "Hi there"\n', base=20)
        assert "Hi there\n" in out

    def test_no_terminator_written(self):
        emu, _ = _emu("ab\n")
        emu.mem.write_bytes(40, b"xyz")
        emu.load(assemble("RDS 20\nEND\n"))
        emu.run()
        assert emu.mem.read_bytes(40, 3) == b"abz"

    def test_input_bounded_by_store_end(self):
        emu, _ = _emu("x" * 11 + "\n")
        emu.load(assemble("RDS 95\nEND\n"))
        with pytest.raises(InputTooLong, match="do not fit in 10 bytes"):
            emu.run()

    def test_input_exactly_fills_store_end(self):
        emu, _ = _emu("x" * 10 + "\n")
        emu.load(assemble("RDS 95\nEND\n"))
        assert emu.run() is StopReason.HALT
        assert emu.mem.read_bytes(190, 10) == b"x" * 10

    def test_input_bounded_by_buffer_size(self):
        emu, _ = _emu("y" * 151 + "\n")
        emu.load(assemble("RDS 3\nEND\n"), 1)
        with pytest.raises(InputTooLong, match="150 bytes"):
            emu.run()

    def test_print_stops_at_nul(self):
        emu, out = _emu()
        emu.mem.write_bytes(100, b"abc\x00def")
        emu.load(assemble("PRTS 50\nEND\n"))
        emu.run()
        assert "abc\n" in out.getvalue()
        assert "def" not in out.getvalue()


class TestMirror:
    def test_mirror_in_sync_after_run(self, tmp_path):
        mem = Memory(tmp_path / "memory.dat", tmp_path / "memory_f.dat")
        mem.clear()
        emu, _ = _emu("123\ntext\n", mem)
        emu.load(assemble("RDI 10\nRDS 11\nEND\n"), 0)
        emu.run()
        assert mem.read_word(10) == 123
        assert mem.read_bytes(22, 4) == b"text"
        assert (tmp_path / "memory_f.dat").read_text() == mem.format_table()


class TestTrace:
    def test_trace_records_each_step(self):
        emu, _ = _emu()
        emu.enable_trace()
        emu.load([0x0505, END])
        emu.run()
        lines = emu.get_trace().split("\n")
        assert len(lines) == 2
        assert lines[0].startswith("00: .WORD 0x0505")
        assert lines[1].startswith("01: END")

    def test_no_disassembly_when_untraced(self, monkeypatch, caplog):
        import tims_emulator.emu as emu_module
        calls = []
        monkeypatch.setattr(emu_module, "disassemble", lambda w: calls.append(w) or "")
        caplog.set_level(logging.INFO, logger="tims_emulator.emu")
        emu, _ = _emu()
        emu.load([0x0505, END])
        emu.run()
        assert calls == []

    def test_debug_log_names_each_fetch(self, caplog):
        caplog.set_level(logging.DEBUG, logger="tims_emulator.emu")
        emu, _ = _emu()
        emu.load([0x0505, END])
        emu.run()
        assert "fetch 01: END" in caplog.text

    def test_trace_off_by_default(self):
        emu, _ = _emu()
        emu.load([END])
        emu.run()
        assert emu.get_trace() == ""

    def test_clear_and_reset(self):
        emu, _ = _emu()
        emu.enable_trace()
        emu.load([END])
        emu.run()
        emu.reset(5)
        assert emu.get_trace() == ""
        assert emu.regs.instruction_pointer == 5
        assert emu.regs.fetches == 0
