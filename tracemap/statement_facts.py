"""StatementFactFinder — per-statement function names and raw diagnostic locations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .diagnostics import DiagnosticLocation, StatementLocations
from .functions import statement_functions
from .ir import IRInstruction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatementFacts:
    """Sparse facts about IR statements.

    ``functions`` has no entry for statements outside any function body;
    ``locations`` has no entry for statements the front end did not attribute.
    Location lists keep report order and may contain duplicates.
    """

    functions: dict[int, str] = field(default_factory=dict)
    locations: dict[int, list[DiagnosticLocation]] = field(default_factory=dict)


def find_statement_facts(
    statements: list[IRInstruction],
    statement_locations: StatementLocations,
    module: str = "",
) -> StatementFacts:
    """Collect function display names and diagnostic locations per statement."""
    functions = statement_functions(statements, module)
    locations: dict[int, list[DiagnosticLocation]] = {}
    for index, location in statement_locations.iter_sorted():
        locations.setdefault(index, []).append(location)
    logger.debug(
        "Found %d named and %d located statements out of %d",
        len(functions),
        len(locations),
        len(statements),
    )
    return StatementFacts(functions=functions, locations=locations)
