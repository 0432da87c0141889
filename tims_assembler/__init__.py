"""
TIMS Assembler
==============
Two-pass assembler for the TIMS instructional computer.

Architecture:
    ┌──────────┐    ┌────────────┐    ┌──────────┐    ┌──────────┐    ┌───────────┐
    │ Source   │───>│ Classifier │───>│  Labels  │───>│ Encoder  │───>│ Word file │
    │ (.tims)  │    │ (per line) │    │ (pass 1) │    │ (pass 2) │    │ (<h ...)  │
    └──────────┘    └────────────┘    └──────────┘    └──────────┘    └───────────┘

    - lexer.py:     classify_line() -> label, components, LineFormat
    - labels.py:    compile_labels() builds the LabelTable, tracks pending labels
    - encoder.py:   encode_line() turns one classified line into words
    - assembler.py: Assembler drives both passes and collects per-line errors
"""

__version__ = "0.1.0"

from .lexer import LineFormat, ClassifiedLine, classify_line
from .labels import LabelTable, NoLabel, compile_labels
from .encoder import OPCODES, encode_line, parse_literal, to_word
from .errors import (AssemblerError, InvalidInstruction, InvalidString,
                     ProgramAccessError, BadProgram)
from .assembler import (Assembler, assemble, assemble_file, assembled_name,
                        words_to_bytes)
