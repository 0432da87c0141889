"""
Line classifier for the TIMS assembler.

Turns one raw source line into an optional label, a list of normalized
(uppercased) components and a classification tag. Classification is a
pure function of the line; callers decide whether a tag is fatal.

Source syntax:
    [label:] MNEMONIC [operand]     ; instruction
    [label:] 1234                   ; data word (0x.. hex, decimal)
    [label:] "text"                 ; string, packed two chars per word
    label:                          ; label-only, binds to the next line
    ; comment                       ; ignored
"""

from __future__ import annotations
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

__all__ = ['LineFormat', 'ClassifiedLine', 'classify_line', 'LABEL_MAX_LEN']

# Longest label name accepted
LABEL_MAX_LEN = 14

_DIGITS = '0123456789'


class LineFormat(enum.Enum):
    BLANK = "Blank"
    LABEL_ONLY = "LabelOnly"
    INSTR_WITH_LITERAL = "InstrWithLiteral"
    INSTR_WITH_REFERENCE = "InstrWithReference"
    INSTR_NO_OPERAND = "InstrNoOperand"
    DATA_WORD = "DataWord"
    STRING_LITERAL = "StringLiteral"
    INVALID_STRING = "InvalidString"
    INVALID_INSTRUCTION = "InvalidInstruction"


@dataclass
class ClassifiedLine:
    """Classified assembly source line."""
    format: LineFormat
    label: Optional[str] = None
    components: List[str] = field(default_factory=list)
    payload: Optional[str] = None   # verbatim string contents (StringLiteral only)
    line_num: int = 0
    raw: str = ""
    reason: str = ""                # why the line is invalid, if it is

    @property
    def mnemonic(self) -> Optional[str]:
        if self.format in (LineFormat.INSTR_NO_OPERAND,
                           LineFormat.INSTR_WITH_LITERAL,
                           LineFormat.INSTR_WITH_REFERENCE):
            return self.components[0]
        return None

    @property
    def operand(self) -> Optional[str]:
        if self.format in (LineFormat.INSTR_WITH_LITERAL,
                           LineFormat.INSTR_WITH_REFERENCE):
            return self.components[1]
        return None

    @property
    def word_count(self) -> int:
        """Number of machine words this line occupies once assembled."""
        if self.format == LineFormat.STRING_LITERAL:
            return (len(self.payload) + 1) // 2
        if self.format in (LineFormat.INSTR_NO_OPERAND,
                           LineFormat.INSTR_WITH_LITERAL,
                           LineFormat.INSTR_WITH_REFERENCE,
                           LineFormat.DATA_WORD):
            return 1
        return 0


def _isgraph(ch: str) -> bool:
    return ch.isprintable() and not ch.isspace()


def _strip_comment(line: str) -> str:
    """Drop everything from the first ';' that is not inside double quotes."""
    in_string = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_string = not in_string
        elif ch == ';' and not in_string:
            return line[:i]
    return line


def _split_label(text: str) -> Tuple[Optional[str], str]:
    """Split 'label: rest' into (LABEL, rest). No colon means no label."""
    if ':' not in text:
        return None, text
    label_part, rest = text.split(':', 1)
    rest = rest.split(':', 1)[0]
    parts = label_part.split()
    return (parts[0].upper() if parts else None), rest


def _clean_tokens(text: str) -> List[str]:
    tokens = []
    for tok in text.split():
        if not _isgraph(tok[0]):
            break
        end = len(tok)
        while end > 0 and not _isgraph(tok[end - 1]):
            end -= 1
        tokens.append(tok[:end].upper())
    return tokens


def _classify_string(text: str, result: ClassifiedLine) -> ClassifiedLine:
    quote = text.index('"')
    colon = text.find(':')
    if 0 <= colon < quote:
        parts = text[:colon].split()
        result.label = parts[0].upper() if parts else None

    rest = text[quote + 1:]
    close = rest.find('"')
    if close < 0:
        result.format = LineFormat.INVALID_STRING
        result.reason = "missing closing quote"
        return result

    result.payload = rest[:close]
    result.format = LineFormat.STRING_LITERAL
    return result


def classify_line(line: str, line_num: int = 0) -> ClassifiedLine:
    """Classify one line of TIMS assembly."""
    result = ClassifiedLine(format=LineFormat.BLANK, line_num=line_num, raw=line)
    text = _strip_comment(line.rstrip('\r\n'))

    if '"' in text:
        _classify_string(text, result)
    else:
        result.label, rest = _split_label(text)
        result.components = _clean_tokens(rest)
        count = len(result.components)

        if count == 0:
            result.format = LineFormat.LABEL_ONLY if result.label else LineFormat.BLANK
        elif count == 1:
            if result.components[0][0] in _DIGITS:
                result.format = LineFormat.DATA_WORD
            else:
                result.format = LineFormat.INSTR_NO_OPERAND
        elif count == 2:
            if result.components[1][0] in _DIGITS:
                result.format = LineFormat.INSTR_WITH_LITERAL
            else:
                result.format = LineFormat.INSTR_WITH_REFERENCE
        else:
            result.format = LineFormat.INVALID_INSTRUCTION
            result.reason = f"too many components ({count})"

    if result.label and len(result.label) > LABEL_MAX_LEN:
        result.format = LineFormat.INVALID_INSTRUCTION
        result.reason = (f"label '{result.label}' longer than "
                         f"{LABEL_MAX_LEN} characters")

    return result
