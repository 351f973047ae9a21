"""Frontend / AST-to-IR Lowering."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .diagnostics import StatementLocations
from .files import FileId
from .ir import IRInstruction


@dataclass
class IRUnit:
    """Lowered statements plus the locations the front end attributed to them."""

    statements: list[IRInstruction] = field(default_factory=list)
    locations: StatementLocations = field(default_factory=StatementLocations)


class Frontend(ABC):
    @abstractmethod
    def lower(self, tree, source: bytes, file_id: FileId = 0) -> IRUnit: ...


def get_frontend(language: str) -> Frontend:
    """Return a fresh frontend for *language*.

    Raises ``ValueError`` if *language* has no registered frontend.
    """
    from .frontends import get_deterministic_frontend

    return get_deterministic_frontend(language)
