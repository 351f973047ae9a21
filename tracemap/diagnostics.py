"""Diagnostic locations attached to IR statements by the front end."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from pydantic import BaseModel

from .files import FileId


class ByteSpan(BaseModel):
    """Half-open byte range ``[start, end)`` in a file's UTF-8 encoding."""

    start: int
    end: int


class DiagnosticLocation(BaseModel):
    file_id: FileId
    span: ByteSpan


@dataclass
class StatementLocations:
    """Sparse statement index → locations, in the order they were reported."""

    locations: dict[int, list[DiagnosticLocation]] = field(default_factory=dict)

    def add(self, index: int, location: DiagnosticLocation):
        self.locations.setdefault(index, []).append(location)

    def for_statement(self, index: int) -> list[DiagnosticLocation]:
        return list(self.locations.get(index, []))

    def iter_sorted(self) -> Iterator[tuple[int, DiagnosticLocation]]:
        """Yield ``(index, location)`` by ascending index, report order within."""
        for index in sorted(self.locations):
            for location in self.locations[index]:
                yield index, location

    def __len__(self) -> int:
        return len(self.locations)
