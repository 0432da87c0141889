"""
TIMS assembler error hierarchy.

Per-line errors (InvalidInstruction, InvalidString) are recoverable: the
driver records them and moves on to the next line. File errors
(ProgramAccessError) abort immediately. BadProgram is raised once at the
end of a pass that recorded at least one per-line error.
"""

from typing import List

__all__ = [
    'AssemblerError', 'InvalidInstruction', 'InvalidString',
    'ProgramAccessError', 'BadProgram',
]


class AssemblerError(Exception):
    """Raised on assembly errors."""
    def __init__(self, message: str, line_num: int = 0, line_text: str = ""):
        self.message = message
        self.line_num = line_num
        self.line_text = line_text
        super().__init__(f"Line {line_num}: {message}" if line_num else message)


class InvalidInstruction(AssemblerError):
    """Unknown mnemonic, unresolved label, bad operand or malformed line."""


class InvalidString(AssemblerError):
    """String literal without a closing quote (or with unencodable text)."""


class ProgramAccessError(AssemblerError):
    """Source or output file could not be opened, read or written."""


class BadProgram(AssemblerError):
    """One or more source lines failed to assemble."""
    def __init__(self, program: str, errors: List[AssemblerError]):
        self.program = program
        self.errors = list(errors)
        super().__init__(
            f'Failed to assemble "{program}": {len(self.errors)} errors contained')

    @property
    def error_count(self) -> int:
        return len(self.errors)
