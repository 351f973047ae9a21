"""InstructionStatementTable — instruction ordinal → producing statements."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Protocol

logger = logging.getLogger(__name__)


class StatementAnnotation(Protocol):
    instruction_idx: int


@dataclass(frozen=True)
class InstructionStatementTable:
    """Forward map only; iteration follows first appearance of each ordinal.

    ``entries`` is copied into a read-only mapping of tuples on construction.
    """

    entries: Mapping[int, tuple[int, ...]] = field(default_factory=dict)

    def __post_init__(self):
        frozen = {k: tuple(v) for k, v in self.entries.items()}
        object.__setattr__(self, "entries", MappingProxyType(frozen))

    def get(self, ordinal: int) -> tuple[int, ...] | None:
        return self.entries.get(ordinal)

    def __contains__(self, ordinal) -> bool:
        return ordinal in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def pairs(self) -> list[tuple[int, tuple[int, ...]]]:
        return list(self.entries.items())

    def to_dict(self) -> dict[str, Any]:
        return {"instructions": [[k, list(v)] for k, v in self.pairs()]}


def build_instruction_statement_table(
    annotations: Iterable[StatementAnnotation],
) -> InstructionStatementTable:
    """Invert per-statement annotations; the k-th annotation describes statement k."""
    accumulated: dict[int, list[int]] = {}
    for statement_index, annotation in enumerate(annotations):
        ordinal = annotation.instruction_idx
        if ordinal not in accumulated:
            accumulated[ordinal] = []
        accumulated[ordinal].append(statement_index)
    logger.info("Mapped %d instruction ordinals to statements", len(accumulated))
    return InstructionStatementTable(
        entries={k: tuple(v) for k, v in accumulated.items()}
    )
