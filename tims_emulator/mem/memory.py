"""
TIMS Memory Store: 100-word persistent store with a formatted mirror.

The store is kept twice on disk:
  memory.dat    raw little-endian words, 200 bytes, no header (authoritative)
  memory_f.dat  10x10 hex table regenerated from the raw form after every
                mutation; never read back

Every mutating call (write_word, write_bytes, load_words, clear) commits:
the raw file is rewritten and the mirror regenerated before it returns,
so the mirror is never stale. A store opened with path=None lives in RAM
only (used by tests and by callers that only want to run code).

Words are addressed 0-99. Strings are moved by byte address
(word_addr * 2), so RDS/PRTS can start mid-store and span words.
"""

import logging
import struct
from pathlib import Path
from typing import List, Optional, Union

from ..config import (NUM_MEM_WORDS, WORD_BYTES, WORD_FORMAT, MEMORY_BYTES,
                      MEMORY_FILE, FORMATTED_MEMORY_FILE, MIRROR_COLUMNS)

__all__ = ['Memory', 'MemoryAccessError', 'MirrorAccessError', 'format_table']

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


class MemoryAccessError(Exception):
    """Store open/read/write failure, or an address outside the store."""


class MirrorAccessError(Exception):
    """The formatted mirror could not be written."""


def format_table(words: List[int]) -> str:
    """Render words as the fixed 10-column hex table of the mirror file."""
    out = [' ' * 11 + '0' + ''.join(f'{c:>10}' for c in range(1, MIRROR_COLUMNS)) + '\n']
    for addr, value in enumerate(words):
        if addr % MIRROR_COLUMNS == 0:
            out.append(f'{addr:3d}')
        sep = ' ' if (addr + 1) % MIRROR_COLUMNS else '\n'
        out.append(f'   0x{value & 0xFFFF:04x}{sep}')
    return ''.join(out)


class Memory:
    """Word-addressable TIMS store backed by a raw file and a mirror file.

    Single-owner: one Memory object per store file, used by one thread.
    """

    def __init__(self, path: Optional[PathLike] = MEMORY_FILE,
                 mirror_path: Optional[PathLike] = FORMATTED_MEMORY_FILE,
                 resume: bool = True):
        self.path = Path(path) if path is not None else None
        self.mirror_path = Path(mirror_path) if mirror_path is not None else None
        self._mem = bytearray(MEMORY_BYTES)

        # Resume the persisted machine state if there is one. With
        # resume=False the existing file is ignored and overwritten on
        # the first commit, whatever its size.
        if resume and self.path is not None and self.path.exists():
            try:
                data = self.path.read_bytes()
            except OSError as e:
                raise MemoryAccessError(f"cannot read {self.path}: {e}") from e
            if len(data) != MEMORY_BYTES:
                raise MemoryAccessError(
                    f"{self.path}: expected {MEMORY_BYTES} bytes, got {len(data)}")
            self._mem[:] = data

    # --- Core read/write ---

    @staticmethod
    def _check_word_addr(addr: int):
        if not 0 <= addr < NUM_MEM_WORDS:
            raise MemoryAccessError(
                f"word address {addr} outside store (0-{NUM_MEM_WORDS - 1})")

    def read_word(self, addr: int) -> int:
        """Read the signed word at a word address."""
        self._check_word_addr(addr)
        return struct.unpack_from(WORD_FORMAT, self._mem, addr * WORD_BYTES)[0]

    def write_word(self, addr: int, value: int):
        """Write one word (wrapped to 16 bits) and commit."""
        self._check_word_addr(addr)
        self._put_word(addr, value)
        self.commit()

    def _put_word(self, addr: int, value: int):
        struct.pack_into('<H', self._mem, addr * WORD_BYTES, value & 0xFFFF)

    def read_bytes(self, byte_addr: int, length: int) -> bytes:
        """Read up to length bytes, clipped at the end of the store."""
        if not 0 <= byte_addr < MEMORY_BYTES:
            raise MemoryAccessError(f"byte address {byte_addr} outside store")
        return bytes(self._mem[byte_addr:byte_addr + length])

    def write_bytes(self, byte_addr: int, data: bytes):
        """Write raw bytes at a byte address and commit."""
        if byte_addr < 0 or byte_addr + len(data) > MEMORY_BYTES:
            raise MemoryAccessError(
                f"{len(data)} bytes at byte address {byte_addr} overrun the store")
        self._mem[byte_addr:byte_addr + len(data)] = data
        self.commit()

    # --- Bulk load ---

    def load_words(self, words: List[int], base_addr: int):
        """Write a run of words starting at base_addr, committing once."""
        if base_addr < 0 or base_addr + len(words) > NUM_MEM_WORDS:
            raise MemoryAccessError(
                f"{len(words)} words at address {base_addr} do not fit in "
                f"{NUM_MEM_WORDS}-word store")
        for i, value in enumerate(words):
            self._put_word(base_addr + i, value)
        self.commit()

    def clear(self):
        """Zero the whole store and commit."""
        self._mem[:] = bytes(MEMORY_BYTES)
        self.commit()

    def words(self) -> List[int]:
        """Snapshot of all words as signed integers."""
        return list(struct.unpack(f'<{NUM_MEM_WORDS}h', self._mem))

    # --- Persistence ---

    def commit(self):
        """Persist the raw store, then regenerate the mirror from it."""
        self.flush()
        self.sync_mirror()

    def flush(self):
        if self.path is None:
            return
        try:
            self.path.write_bytes(bytes(self._mem))
        except OSError as e:
            raise MemoryAccessError(f"cannot write {self.path}: {e}") from e

    def sync_mirror(self):
        if self.mirror_path is None:
            return
        try:
            self.mirror_path.write_text(self.format_table(), encoding='ascii')
        except OSError as e:
            raise MirrorAccessError(f"cannot write {self.mirror_path}: {e}") from e
        log.debug("mirror %s synced", self.mirror_path)

    # --- Dump ---

    def format_table(self) -> str:
        """The mirror text for the current store contents."""
        return format_table(self.words())
