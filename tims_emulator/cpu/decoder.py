"""
TIMS Opcode Decoder

Maps the high byte of a word to (mnemonic, addressing_mode). The table
mirrors tims_assembler.encoder.OPCODES in the other direction; the test
suite checks the two stay in agreement.

Addressing modes:
  MEM     operand is a word address in the store (I/O instructions)
  BRANCH  operand is a branch target word address
  INH     no operand (halt)

MEM and BRANCH operands are position-dependent: the loader adds the load
address to them.
"""

from typing import Optional, Tuple

# ──────────────────────────────────────────────
# Addressing mode constants
# ──────────────────────────────────────────────

MEM = 'MEM'
BRANCH = 'BRANCH'
INH = 'INH'

# ──────────────────────────────────────────────
# Opcode table
# ──────────────────────────────────────────────
# Format: opcode -> (mnemonic, addressing_mode)

OPCODES = {
    0x10: ('RDI',  MEM),
    0x11: ('RDS',  MEM),
    0x12: ('PRTI', MEM),
    0x13: ('PRTS', MEM),
    0x40: ('B',    BRANCH),
    0x41: ('BN',   BRANCH),
    0x42: ('BZ',   BRANCH),
    0x43: ('END',  INH),
}

# Opcodes whose operand is relocated by the loader
RELOCATABLE_OPCODES = frozenset(op for op, (_, mode) in OPCODES.items()
                                if mode in (MEM, BRANCH))


def split_word(word: int) -> Tuple[int, int]:
    """Split a word into (opcode, operand) using its unsigned 16-bit view."""
    word &= 0xFFFF
    return (word >> 8) & 0xFF, word & 0xFF


def decode_opcode(word: int) -> Tuple[Optional[str], Optional[str], int]:
    """Decode a fetched word.

    Returns: (mnemonic, mode, operand). Unknown opcodes (data words) give
    (None, None, operand); the engine executes them as no-ops.
    """
    opcode, operand = split_word(word)
    if opcode in OPCODES:
        mnem, mode = OPCODES[opcode]
        return mnem, mode, operand
    return None, None, operand


def disassemble(word: int) -> str:
    """Render one word as assembly text (e.g. 'PRTI 12', 'END', '.WORD 0x4142')."""
    mnem, mode, operand = decode_opcode(word)
    if mnem is None:
        return f".WORD 0x{word & 0xFFFF:04X}"
    if mode == INH:
        return mnem if operand == 0 else f"{mnem} {operand}"
    return f"{mnem} {operand}"
