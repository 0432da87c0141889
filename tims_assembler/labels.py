"""
Label resolver for the TIMS assembler (pass 1).

compile_labels() walks every classified line once and binds each label to
the instruction-word index of the first word its line emits. A label on a
line of its own is held as pending state and attached to the next line
that carries no label of its own.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .lexer import ClassifiedLine, LineFormat, LABEL_MAX_LEN

__all__ = ['NoLabel', 'LabelTable', 'NoPendingLabel', 'PendingLabel',
           'compile_labels']

log = logging.getLogger(__name__)


class NoLabel(LookupError):
    """Raised by LabelTable.resolve() for a name that was never defined."""
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"undefined label '{name}'")


class LabelTable:
    """Insertion-ordered symbol table: name -> instruction-word address.

    The first definition of a name wins; define() reports whether the
    name was new so the caller can warn about duplicates.
    """

    def __init__(self):
        self._labels: Dict[str, int] = {}

    def define(self, name: str, address: int) -> bool:
        if name in self._labels:
            return False
        self._labels[name] = address
        return True

    def resolve(self, name: str) -> int:
        try:
            return self._labels[name]
        except KeyError:
            raise NoLabel(name) from None

    def __contains__(self, name: str) -> bool:
        return name in self._labels

    def __len__(self) -> int:
        return len(self._labels)

    def __iter__(self) -> Iterator[Tuple[str, int]]:
        return iter(self._labels.items())

    def as_dict(self) -> Dict[str, int]:
        return dict(self._labels)


# ── Pending-label state carried across lines ──

@dataclass(frozen=True)
class NoPendingLabel:
    pass


@dataclass(frozen=True)
class PendingLabel:
    name: str
    line_num: int


LabelState = Union[NoPendingLabel, PendingLabel]

_NO_PENDING = NoPendingLabel()


def _dangling(state: PendingLabel) -> str:
    return f'Line {state.line_num} - dangling label "{state.name}" ignored'


def compile_labels(lines: Iterable[ClassifiedLine],
                   warnings: Optional[List[str]] = None) -> LabelTable:
    """Build the label table from classified lines.

    Mutates each line's ``label`` when a pending label gets attached to
    it, so pass 2 sees the same binding. Warnings (dangling or duplicate
    labels) are logged and appended to ``warnings`` if given.
    """
    table = LabelTable()
    state: LabelState = _NO_PENDING
    address = 0

    def warn(message: str):
        log.warning(message)
        if warnings is not None:
            warnings.append(message)

    for line in lines:
        if line.format == LineFormat.BLANK:
            continue

        if line.format == LineFormat.LABEL_ONLY:
            if isinstance(state, PendingLabel):
                warn(_dangling(state))
            state = PendingLabel(line.label, line.line_num)
            continue

        if isinstance(state, PendingLabel) and not line.label:
            line.label = state.name
            state = _NO_PENDING

        if line.label and len(line.label) <= LABEL_MAX_LEN:
            if table.define(line.label, address):
                log.debug("label %s = %d (line %d)", line.label, address, line.line_num)
            else:
                warn(f'Line {line.line_num} - duplicate label "{line.label}" ignored')

        address += line.word_count

    if isinstance(state, PendingLabel):
        warn(_dangling(state))

    return table
