"""
TIMS Emulator: Main Emulator Class

Integrates:
  - CPU registers (cpu/regs.py)
  - Memory store (mem/memory.py)
  - Opcode decoder (cpu/decoder.py)

Execution model:
  1. Fetch the word at IP into IR
  2. Decode opcode (high byte) and operand (low byte)
  3. Execute: I/O against the store and the terminal, or branch
  4. Advance IP by one; branches set IP = target - 1 to compensate

Termination reasons:
  - HALT:     END fetched (normal completion; registers are dumped)
  - TIMEOUT:  caller-supplied max_steps exhausted

There is no built-in step budget: a program that never reaches END runs
until the caller's max_steps (if any) or forever. Store failures and bad
terminal input are fatal and propagate as exceptions.
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional, TextIO, Union

from .config import STRING_BUFFER_SIZE, MEMORY_BYTES, WORD_BYTES
from .cpu.regs import Registers
from .cpu.decoder import decode_opcode, disassemble
from .mem.memory import Memory, MemoryAccessError
from .loader import load_program, load_file

__all__ = ['TimsEmulator', 'StopReason', 'EmulatorInputError',
           'InputTooLong', 'InvalidInput']

log = logging.getLogger(__name__)

EXEC_BANNER = "\n_____Executing TIMS Program_____\n\n"
DONE_BANNER = "\n_____TIMS Execution Complete_____\n\n"


class StopReason(Enum):
    HALT = 'HALT'
    TIMEOUT = 'TIMEOUT'


class EmulatorInputError(Exception):
    """Terminal input that cannot be stored."""


class InputTooLong(EmulatorInputError):
    """RDS line longer than the destination can hold."""


class InvalidInput(EmulatorInputError):
    """RDI token that is not an integer, or input ended."""


class TimsEmulator:
    """TIMS fetch-decode-execute engine.

    Usage:
        emu = TimsEmulator(Memory())
        emu.load(words, base_addr=10)    # also sets IP to 10
        emu.run()
    """

    def __init__(self, memory: Memory, stdin: Optional[TextIO] = None,
                 stdout: Optional[TextIO] = None):
        self.mem = memory
        self.regs = Registers()
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout

        self._trace = False
        self._trace_output: List[str] = []
        self._pending = ''       # unread rest of the current input line

        self._dispatch = self._build_dispatch()

    # ══════════════════════════════════════════════
    # Loading
    # ══════════════════════════════════════════════

    def load(self, words: List[int], base_addr: int = 0) -> int:
        """Load assembled words at base_addr and point IP at the first one."""
        count = load_program(self.mem, words, base_addr)
        self.regs.instruction_pointer = base_addr
        return count

    def load_file(self, path: Union[str, Path], base_addr: int = 0) -> int:
        """Load an assembled word file at base_addr and point IP at it."""
        count = load_file(self.mem, path, base_addr)
        self.regs.instruction_pointer = base_addr
        return count

    # ══════════════════════════════════════════════
    # Execution
    # ══════════════════════════════════════════════

    def step(self) -> Optional[StopReason]:
        """Execute one instruction. Returns StopReason.HALT on END, else None."""
        ip = self.regs.instruction_pointer

        # Fetch
        word = self.mem.read_word(ip)
        self.regs.instruction_register = word
        self.regs.fetches += 1

        # Decode
        mnem, mode, operand = decode_opcode(word)

        if self._trace:
            self._trace_output.append(
                f"{ip:02d}: {disassemble(word):<14} IR=0x{word & 0xFFFF:04x} "
                f"ACC={self.regs.accumulator}")
        if log.isEnabledFor(logging.DEBUG):
            log.debug("fetch %02d: %s", ip, disassemble(word))

        if mnem == 'END':
            return StopReason.HALT

        # Execute; unknown opcodes (data words) fall through as no-ops
        handler = self._dispatch.get(mnem)
        if handler is not None:
            handler(operand)

        # Advance
        self.regs.instruction_pointer += 1
        return None

    def run(self, max_steps: Optional[int] = None) -> StopReason:
        """Run from the current IP until END (or max_steps, if given)."""
        self._write(EXEC_BANNER)
        steps = 0
        while max_steps is None or steps < max_steps:
            reason = self.step()
            steps += 1
            if reason is StopReason.HALT:
                self._write(DONE_BANNER)
                self.dump()
                log.info("Halted after %d fetches at word %d",
                         self.regs.fetches, self.regs.instruction_pointer)
                return reason
        log.warning("Stopped after %d steps without reaching END", steps)
        return StopReason.TIMEOUT

    def dump(self):
        """Print the register contents."""
        self._write("\n" + self.regs.display() + "\n\n")

    # ══════════════════════════════════════════════
    # Terminal I/O
    # ══════════════════════════════════════════════

    def _write(self, text: str):
        self.stdout.write(text)
        self.stdout.flush()

    def _readline(self) -> str:
        line = self.stdin.readline()
        if line == '':
            raise InvalidInput("end of input")
        return line.rstrip('\r\n')

    def _read_token(self) -> str:
        """Next whitespace-delimited token; blank lines are skipped.

        Whatever follows the token on its line stays buffered for the
        next RDI or RDS.
        """
        while not self._pending.strip():
            self._pending = self._readline()
        parts = self._pending.split(None, 1)
        self._pending = parts[1] if len(parts) > 1 else ''
        return parts[0]

    def _read_text(self) -> str:
        """Rest of the current line if anything is left on it, else a new line."""
        if self._pending.strip():
            text = self._pending.lstrip()
        else:
            text = self._readline()
        self._pending = ''
        return text

    # ══════════════════════════════════════════════
    # Instruction handlers
    # ══════════════════════════════════════════════
    # Handler signature: handler(operand)

    def _build_dispatch(self) -> dict:
        return {
            # ── I/O ──
            'RDI':  self._op_rdi,
            'RDS':  self._op_rds,
            'PRTI': self._op_prti,
            'PRTS': self._op_prts,
            # ── Control ──
            'B':    self._op_b,
            'BN':   self._op_bn,
            'BZ':   self._op_bz,
        }

    def _op_rdi(self, operand):
        text = self._read_token()
        try:
            value = int(text)
        except ValueError:
            raise InvalidInput(f"RDI: not an integer: {text!r}") from None
        self.mem.write_word(operand, value)

    def _op_rds(self, operand):
        byte_addr = operand * WORD_BYTES
        if byte_addr >= MEMORY_BYTES:
            raise MemoryAccessError(f"RDS: word address {operand} outside store")
        text = self._read_text()
        try:
            data = text.encode('latin-1')
        except UnicodeEncodeError:
            raise InvalidInput(f"RDS: non Latin-1 input: {text!r}") from None
        capacity = min(STRING_BUFFER_SIZE, MEMORY_BYTES - byte_addr)
        if len(data) > capacity:
            raise InputTooLong(
                f"RDS: {len(data)} bytes do not fit in {capacity} bytes at word {operand}")
        self.mem.write_bytes(byte_addr, data)

    def _op_prti(self, operand):
        self._write(f"{self.mem.read_word(operand)}\n")

    def _op_prts(self, operand):
        byte_addr = operand * WORD_BYTES
        if byte_addr >= MEMORY_BYTES:
            raise MemoryAccessError(f"PRTS: word address {operand} outside store")
        data = self.mem.read_bytes(byte_addr, STRING_BUFFER_SIZE)
        self._write(data.split(b'\x00', 1)[0].decode('latin-1') + "\n")

    def _op_b(self, operand):
        self.regs.instruction_pointer = operand - 1

    def _op_bn(self, operand):
        if self.regs.accumulator < 0:
            self.regs.instruction_pointer = operand - 1

    def _op_bz(self, operand):
        if self.regs.accumulator == 0:
            self.regs.instruction_pointer = operand - 1

    # ══════════════════════════════════════════════
    # Trace / Debug
    # ══════════════════════════════════════════════

    def enable_trace(self, enable: bool = True):
        """Enable per-instruction trace recording."""
        self._trace = enable

    def get_trace(self) -> str:
        return '\n'.join(self._trace_output)

    def clear_trace(self):
        self._trace_output.clear()

    def reset(self, instruction_pointer: int = 0):
        """Reset registers, trace and buffered input; the store is left untouched."""
        self.regs.reset(instruction_pointer)
        self._trace_output.clear()
        self._pending = ''
