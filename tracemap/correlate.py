"""TraceCorrelator — from a runtime failure point back to source spans."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence, Union

from .encoded_words import EncodedWord
from .instruction_table import InstructionStatementTable
from .source_types import SourceSpan, SourceStatementTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Found:
    """The pc maps to statements; ``spans`` may still be empty."""

    pc: int
    statement_indices: tuple[int, ...]
    spans: tuple[SourceSpan, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "found": True,
            "pc": self.pc,
            "statement_indices": list(self.statement_indices),
            "spans": [span.model_dump() for span in self.spans],
        }


@dataclass(frozen=True)
class NotFound:
    pc: Any

    def to_dict(self) -> dict[str, Any]:
        return {"found": False, "pc": self.pc}


LocateResult = Union[Found, NotFound]


class TraceCorrelator:
    """Read-only view over one compilation's tables."""

    def __init__(
        self,
        source_table: SourceStatementTable,
        instruction_table: InstructionStatementTable,
        encoded_words: Sequence[EncodedWord] = (),
    ):
        self._source_table = source_table
        self._instruction_table = instruction_table
        self._encoded_words = tuple(encoded_words)

    def locate(self, pc) -> LocateResult:
        """Return the source spans for instruction ordinal *pc*, or NotFound."""
        if not isinstance(pc, int) or isinstance(pc, bool):
            return NotFound(pc)
        indices = self._instruction_table.get(pc)
        if indices is None:
            logger.debug("No instruction at pc %d", pc)
            return NotFound(pc)
        spans: list[SourceSpan] = []
        for index in indices:
            record = self._source_table.get(index)
            if record is None:
                logger.warning("Statement %d missing from source table", index)
                continue
            spans.extend(record.spans)
        return Found(pc=pc, statement_indices=indices, spans=tuple(spans))

    def locate_word_offset(self, offset) -> LocateResult:
        """Resolve a word-granular offset to its instruction, then :meth:`locate`."""
        if (
            not isinstance(offset, int)
            or isinstance(offset, bool)
            or not 0 <= offset < len(self._encoded_words)
        ):
            return NotFound(offset)
        return self.locate(self._encoded_words[offset].instruction_index)
