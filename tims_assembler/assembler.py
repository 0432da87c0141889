"""
TIMS Two-Pass Assembler.

Assembles TIMS assembly text into a flat stream of 16-bit words.

Input:  Assembly text, one directive per line
Output: List of signed words, or a headerless little-endian word file

How the two-pass algorithm works:
  Pass 1: Classify every line and bind labels to instruction-word indexes.
          Label-only lines bind to the next line that emits a word.
  Pass 2: Encode every line using the now-complete label table. Errors are
          recorded per line (1-based line numbers) and never abort the pass.

If any line fails, the output file is still written but the program is
reported as BadProgram and must not be loaded.
"""

from __future__ import annotations
import logging
import struct
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .encoder import OPCODES, encode_line
from .errors import AssemblerError, BadProgram, ProgramAccessError
from .labels import LabelTable, compile_labels
from .lexer import ClassifiedLine, classify_line

__all__ = ['Assembler', 'assemble', 'assemble_file', 'assembled_name',
           'words_to_bytes']

log = logging.getLogger(__name__)


def words_to_bytes(words: List[int]) -> bytes:
    """Pack words as signed 16-bit little-endian, no header."""
    return struct.pack(f'<{len(words)}h', *words)


def assembled_name(source_path: Union[str, Path]) -> Path:
    """prog.tims -> progAsm.tims (same directory)."""
    p = Path(source_path)
    return p.with_name(f"{p.stem}Asm{p.suffix}")


class Assembler:
    """Two-pass TIMS assembler.

    Usage:
        asm = Assembler()
        words = asm.assemble(source_text)
        if asm.errors: ...
    """

    def __init__(self, opcodes=OPCODES):
        self.opcodes = opcodes
        self.labels: LabelTable = LabelTable()     # label -> instruction-word index
        self.words: List[int] = []                 # assembled output
        self.errors: List[AssemblerError] = []     # per-line errors, in line order
        self.warnings: List[str] = []              # dangling / duplicate labels
        self._lines: List[ClassifiedLine] = []
        self._emitted: List[Tuple[int, List[int]]] = []  # (address, words) per line

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors

    def assemble(self, source: str) -> List[int]:
        """Assemble source text into words.

        Per-line errors are collected in self.errors; the returned words
        only contain the lines that encoded successfully.
        """
        self.labels = LabelTable()
        self.words = []
        self.errors = []
        self.warnings = []
        self._emitted = []

        self._lines = [classify_line(line, i)
                       for i, line in enumerate(source.splitlines(), 1)]

        # Pass 1: label table
        self.labels = compile_labels(self._lines, self.warnings)

        # Pass 2: encode
        self._pass2()

        log.info("Assembled %d lines: %d words, %d labels, %d errors",
                 len(self._lines), len(self.words), len(self.labels), len(self.errors))
        return self.words

    def _pass2(self):
        for line in self._lines:
            address = len(self.words)
            try:
                data = encode_line(line, self.labels, self.opcodes)
            except AssemblerError as e:
                log.error("%s", e)
                self.errors.append(e)
                self._emitted.append((address, []))
                continue
            self.words.extend(data)
            self._emitted.append((address, data))

    def to_bytes(self) -> bytes:
        return words_to_bytes(self.words)

    def assemble_file(self, source_path: Union[str, Path],
                      output_path: Optional[Union[str, Path]] = None) -> Path:
        """Assemble a source file and write the word file next to it.

        The output is written even if lines failed; BadProgram is raised
        afterwards so the caller never loads it.
        """
        source_path = Path(source_path)
        output_path = Path(output_path) if output_path else assembled_name(source_path)

        try:
            source = source_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise ProgramAccessError(f"cannot read program {source_path}: {e}") from e

        self.assemble(source)

        try:
            output_path.write_bytes(self.to_bytes())
        except OSError as e:
            raise ProgramAccessError(f"cannot write {output_path}: {e}") from e

        if self.errors:
            raise BadProgram(str(source_path), self.errors)

        log.info('Assembled "%s" to "%s"', source_path, output_path)
        return output_path

    def get_listing(self) -> str:
        """Return a human-readable listing showing address, words, and source."""
        lines = []
        lines.append(f"{'LINE':>4}  {'ADDR':>4}  {'WORDS':<20}  SOURCE")
        lines.append("-" * 60)

        for asmline, (addr, data) in zip(self._lines, self._emitted):
            raw = asmline.raw.rstrip()
            if len(raw) > 40:
                raw = raw[:40]
            if data:
                hex_str = ' '.join(f'{w & 0xFFFF:04X}' for w in data)
                lines.append(f"{asmline.line_num:>4}  {addr:>4}  {hex_str:<20}  {raw}")
            elif raw:
                lines.append(f"{asmline.line_num:>4}  {'':>4}  {'':<20}  {raw}")

        if len(self.labels):
            lines.append("")
            lines.append("LABELS:")
            for name, addr in self.labels:
                lines.append(f"  {name:<14}  {addr:>4}")

        return '\n'.join(lines)


# ──────────────────────────────────────────────
# Convenience functions
# ──────────────────────────────────────────────

def assemble(source: str) -> List[int]:
    """Assemble source text, return the words; raises BadProgram on any error."""
    asm = Assembler()
    words = asm.assemble(source)
    if asm.errors:
        raise BadProgram("<source>", asm.errors)
    return words


def assemble_file(source_path: Union[str, Path],
                  output_path: Optional[Union[str, Path]] = None) -> Path:
    """Assemble a source file to its word file, return the output path."""
    return Assembler().assemble_file(source_path, output_path)
