"""Source-side mapping data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict


class SourcePosition(BaseModel):
    """Zero-based line and column."""

    model_config = ConfigDict(frozen=True)

    line: int
    col: int

    def key(self) -> tuple[int, int]:
        return (self.line, self.col)


UNRESOLVED_POSITION = SourcePosition(line=0, col=0)


class SourceSpan(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_name: str
    start: SourcePosition
    end: SourcePosition

    def is_ordered(self) -> bool:
        return self.start.key() <= self.end.key()

    def __str__(self) -> str:
        return (
            f"{self.file_name}:{self.start.line}:{self.start.col}"
            f"-{self.end.line}:{self.end.col}"
        )


class StatementRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    function_name: str | None = None
    spans: tuple[SourceSpan, ...] = ()


@dataclass(frozen=True)
class SourceStatementTable:
    """Dense statement index → StatementRecord, one record per IR statement.

    ``records[i]`` is the record of statement ``i``; the container makes the
    "exactly N entries, keys 0..N-1" invariant structural.
    """

    records: tuple[StatementRecord, ...] = ()
    contract_source: str | None = None

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> StatementRecord:
        return self.records[index]

    def get(self, index: int) -> StatementRecord | None:
        if 0 <= index < len(self.records):
            return self.records[index]
        return None

    def pairs(self) -> list[tuple[int, StatementRecord]]:
        return list(enumerate(self.records))

    def to_dict(self) -> dict[str, Any]:
        return {
            "statements": [
                [i, rec.model_dump(mode="json")] for i, rec in self.pairs()
            ],
            "contract_source": self.contract_source,
        }
