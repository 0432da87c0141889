# TIMS Emulator: execution engine for the TIMS instructional computer
# Part of the TIMS toolchain (see tims_assembler for the assembler)
"""
TIMS Emulator

  cpu/regs.py     register bundle (IP, IR, ACC)
  cpu/decoder.py  opcode table, word split, disassembly
  mem/memory.py   100-word persistent store + formatted mirror
  loader.py       relocating program loader
  emu.py          fetch-decode-execute loop
"""

from .mem.memory import Memory, MemoryAccessError, MirrorAccessError
from .cpu.regs import Registers
from .loader import RelocationError, load_program, load_file
from .emu import TimsEmulator, StopReason, InputTooLong, InvalidInput
