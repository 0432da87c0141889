"""
TIMS Program Loader

Copies an assembled word stream into the store at a base address. The
assembler numbers labels from word 0, so every word whose opcode takes a
store or branch address (RDI RDS PRTI PRTS B BN BZ) gets the base added
to its operand byte. Everything else, END included, is copied unchanged.

Relocation is decided by the decoded opcode alone; a data or string word
whose high byte happens to equal one of those opcodes is relocated too.
"""

import logging
import struct
from pathlib import Path
from typing import List, Union

from tims_assembler.errors import ProgramAccessError

from .config import WORD_BYTES
from .cpu.decoder import RELOCATABLE_OPCODES, split_word
from .mem.memory import Memory

__all__ = ['RelocationError', 'relocate', 'load_program', 'load_file', 'read_words']

log = logging.getLogger(__name__)


class RelocationError(ValueError):
    """A relocated operand no longer fits in the 8-bit operand field."""


def relocate(words: List[int], base_addr: int) -> List[int]:
    """Return a copy of words with address operands shifted by base_addr."""
    out = []
    for i, word in enumerate(words):
        opcode, operand = split_word(word)
        if opcode in RELOCATABLE_OPCODES:
            operand += base_addr
            if operand > 0xFF:
                raise RelocationError(
                    f"word {i}: operand {operand} exceeds 255 after relocation "
                    f"by {base_addr}")
            word = struct.unpack('<h', struct.pack('<H', (opcode << 8) | operand))[0]
        out.append(word)
    return out


def load_program(memory: Memory, words: List[int], base_addr: int) -> int:
    """Relocate and write words into memory at base_addr.

    The mirror is resynchronised once, after the whole stream is written.
    Returns the number of words loaded.
    """
    memory.load_words(relocate(words, base_addr), base_addr)
    log.debug("relocated and wrote %d words at %d", len(words), base_addr)
    return len(words)


def read_words(path: Union[str, Path]) -> List[int]:
    """Read a headerless little-endian word file."""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise ProgramAccessError(f"cannot read program {path}: {e}") from e
    if len(data) % WORD_BYTES:
        raise ProgramAccessError(f"{path}: truncated word at end of file")
    return list(struct.unpack(f'<{len(data) // WORD_BYTES}h', data))


def load_file(memory: Memory, path: Union[str, Path], base_addr: int) -> int:
    """Load an assembled word file into memory at base_addr."""
    count = load_program(memory, read_words(path), base_addr)
    log.info('Loaded "%s" to TIMS memory word %d', path, base_addr)
    return count
