"""SourceStatementTable builder — dense per-statement source attribution."""

from __future__ import annotations

import logging

from .diagnostics import DiagnosticLocation
from .files import FileDatabase
from .source_types import (
    UNRESOLVED_POSITION,
    SourcePosition,
    SourceSpan,
    SourceStatementTable,
    StatementRecord,
)
from .statement_facts import StatementFacts
from . import constants

logger = logging.getLogger(__name__)


def _resolve(
    files: FileDatabase, location: DiagnosticLocation, offset: int
) -> SourcePosition:
    position = files.position_in_file(location.file_id, offset)
    if position is None:
        logger.debug(
            "Unresolvable offset %d in file %d, using %s",
            offset,
            location.file_id,
            UNRESOLVED_POSITION.key(),
        )
        return UNRESOLVED_POSITION
    return position


def _to_span(files: FileDatabase, location: DiagnosticLocation) -> SourceSpan:
    file_name = files.file_name(location.file_id)
    if file_name is None:
        file_name = f"<file {location.file_id}>"
    span = SourceSpan(
        file_name=file_name,
        start=_resolve(files, location, location.span.start),
        end=_resolve(files, location, location.span.end),
    )
    if not span.is_ordered():
        logger.warning("Span end precedes start, kept as reported: %s", span)
    return span


def build_source_statement_table(
    facts: StatementFacts,
    statement_count: int,
    files: FileDatabase,
    contract_file_name: str = constants.CONTRACT_FILE_NAME,
) -> SourceStatementTable:
    """Fold sparse *facts* into exactly *statement_count* records.

    Every index in ``0..statement_count-1`` gets a record, whether or not it
    appears in the facts.  Positions that cannot be resolved degrade to
    ``(0, 0)`` for that span only.  The text of the virtual file named
    *contract_file_name* is captured the first time a location points into it.
    """
    records: list[StatementRecord] = []
    contract_source: str | None = None

    for index in range(statement_count):
        locations = facts.locations.get(index, [])
        for location in locations:
            if (
                contract_source is None
                and files.file_name(location.file_id) == contract_file_name
                and files.is_virtual(location.file_id)
            ):
                contract_source = files.content(location.file_id)
        records.append(
            StatementRecord(
                function_name=facts.functions.get(index),
                spans=tuple(_to_span(files, loc) for loc in locations),
            )
        )

    ignored = [i for i in facts.locations if not 0 <= i < statement_count]
    if ignored:
        logger.warning("Ignoring locations for out-of-range statements: %s", ignored)

    logger.info("Built source statement table with %d records", statement_count)
    return SourceStatementTable(records=tuple(records), contract_source=contract_source)
