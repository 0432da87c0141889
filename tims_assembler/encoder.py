"""
TIMS instruction encoder (pass 2).

Word format (16-bit signed):
    15          8 7           0
   ┌─────────────┬─────────────┐
   │   opcode    │   operand   │     word == opcode * 256 + operand
   └─────────────┴─────────────┘     0 <= operand <= 255

Data words are stored verbatim (wrapped to 16 bits). Strings are packed
two characters per word, first character in the low byte.

Numeric literals follow C strtol() radix rules: a 0x/0X prefix is hex,
exactly "0" is octal (zero), anything else is decimal. Like strtol, the
longest valid digit prefix is used and trailing junk is ignored.
"""

from __future__ import annotations
import re
from typing import Dict, List

from .errors import InvalidInstruction, InvalidString
from .labels import LabelTable, NoLabel
from .lexer import ClassifiedLine, LineFormat

__all__ = ['OPCODES', 'to_word', 'pack_instruction', 'parse_literal',
           'pack_string', 'encode_line']


# ──────────────────────────────────────────────
# TIMS Opcode Table
# ──────────────────────────────────────────────

OPCODES: Dict[str, int] = {
    # ── I/O ──
    'RDI':  0x10,   # read integer into memory
    'RDS':  0x11,   # read string into memory
    'PRTI': 0x12,   # print integer from memory
    'PRTS': 0x13,   # print string from memory
    # ── Control ──
    'B':    0x40,   # branch
    'BN':   0x41,   # branch if accumulator negative
    'BZ':   0x42,   # branch if accumulator zero
    'END':  0x43,   # halt
}

OPERAND_MAX = 0xFF

_HEX_DIGITS = re.compile(r'[0-9a-fA-F]*')
_DEC_DIGITS = re.compile(r'[0-9]*')


def to_word(value: int) -> int:
    """Wrap an integer to a signed 16-bit word."""
    return ((value + 0x8000) & 0xFFFF) - 0x8000


def pack_instruction(opcode: int, operand: int) -> int:
    return to_word(opcode * 0x100 + operand)


def parse_literal(text: str) -> int:
    """Parse a numeric literal with C-style radix rules."""
    if text.startswith('0x') or text.startswith('0X'):
        digits = _HEX_DIGITS.match(text, 2).group()
        return int(digits, 16) if digits else 0
    if text == '0':
        return int(text, 8)
    digits = _DEC_DIGITS.match(text).group()
    return int(digits) if digits else 0


def pack_string(payload: str) -> List[int]:
    """Pack a string two characters per word (low byte first), no terminator."""
    data = payload.encode('latin-1')
    if len(data) % 2:
        data += b'\x00'
    return [to_word(data[i + 1] * 0x100 + data[i]) for i in range(0, len(data), 2)]


def _opcode(line: ClassifiedLine, opcodes: Dict[str, int]) -> int:
    mnem = line.mnemonic
    if mnem not in opcodes:
        raise InvalidInstruction(f"unknown mnemonic '{mnem}'", line.line_num, line.raw)
    return opcodes[mnem]


def _check_operand(line: ClassifiedLine, operand: int) -> int:
    if not 0 <= operand <= OPERAND_MAX:
        raise InvalidInstruction(
            f"{line.mnemonic}: operand {operand} out of range (0-{OPERAND_MAX})",
            line.line_num, line.raw)
    return operand


def encode_line(line: ClassifiedLine, labels: LabelTable,
                opcodes: Dict[str, int] = OPCODES) -> List[int]:
    """Encode one classified line into zero or more words."""
    fmt = line.format

    if fmt in (LineFormat.BLANK, LineFormat.LABEL_ONLY):
        return []

    if fmt == LineFormat.INSTR_WITH_REFERENCE:
        try:
            operand = labels.resolve(line.operand)
        except NoLabel as e:
            raise InvalidInstruction(str(e), line.line_num, line.raw) from None
        opcode = _opcode(line, opcodes)
        return [pack_instruction(opcode, _check_operand(line, operand))]

    if fmt == LineFormat.INSTR_WITH_LITERAL:
        operand = parse_literal(line.operand)
        opcode = _opcode(line, opcodes)
        return [pack_instruction(opcode, _check_operand(line, operand))]

    if fmt == LineFormat.INSTR_NO_OPERAND:
        return [pack_instruction(_opcode(line, opcodes), 0)]

    if fmt == LineFormat.DATA_WORD:
        return [to_word(parse_literal(line.components[0]))]

    if fmt == LineFormat.STRING_LITERAL:
        try:
            return pack_string(line.payload)
        except UnicodeEncodeError:
            raise InvalidString("string contains non Latin-1 characters",
                                line.line_num, line.raw) from None

    if fmt == LineFormat.INVALID_STRING:
        raise InvalidString(f"invalid string ({line.reason})", line.line_num, line.raw)

    raise InvalidInstruction(
        f"invalid instruction ({line.reason})" if line.reason else "invalid instruction",
        line.line_num, line.raw)
