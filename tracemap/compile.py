"""Compilation pipeline: source → IR → instructions, plus the mapping tables.

Each stage runs inside :func:`tracemap.errors.stage`, so any failure
surfaces as a :class:`~tracemap.errors.CompilationError` naming the stage.
Nothing is returned unless every stage succeeds.
"""

from __future__ import annotations

import logging
import tempfile
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

from .codegen import AssembledProgram, generate_code
from .compile_types import CompileStats, CompilerConfig
from .contract import (
    EntryPoint,
    EntryPointDef,
    collect_entry_points,
    find_entry_points,
    wrapper_source,
)
from .correlate import LocateResult, TraceCorrelator
from .encoded_words import EncodedWord, encode_instructions
from .errors import stage
from .files import FileDatabase
from .frontend import IRUnit, get_frontend
from .instruction_table import (
    InstructionStatementTable,
    build_instruction_statement_table,
)
from .ir import IRInstruction, dump_ir, parse_ir
from .metadata import ProgramMetadata, compute_metadata
from .parser import Parser
from .source_table import build_source_statement_table
from .source_types import SourceStatementTable
from .statement_facts import find_statement_facts
from . import constants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompilationResult:
    """Everything one compilation produced; read-only once returned."""

    file_name: str
    statements: tuple[IRInstruction, ...]
    ir_text: str
    source_table: SourceStatementTable
    metadata: ProgramMetadata
    program: AssembledProgram
    encoded_words: tuple[EncodedWord, ...]
    instruction_table: InstructionStatementTable
    entry_points: tuple[EntryPoint, ...]
    stats: CompileStats

    @property
    def contract_source(self) -> str | None:
        return self.source_table.contract_source

    def correlator(self) -> TraceCorrelator:
        return TraceCorrelator(
            self.source_table, self.instruction_table, self.encoded_words
        )

    def locate(self, pc) -> LocateResult:
        return self.correlator().locate(pc)

    def locate_word_offset(self, offset) -> LocateResult:
        return self.correlator().locate_word_offset(offset)

    def to_dict(self) -> dict[str, Any]:
        return {
            "file_name": self.file_name,
            "ir": self.ir_text,
            "source_table": self.source_table.to_dict(),
            "instructions": [str(inst) for inst in self.program.instructions],
            "encoded_words": [word.model_dump() for word in self.encoded_words],
            "instruction_table": self.instruction_table.to_dict(),
            "entry_points": [entry.model_dump() for entry in self.entry_points],
            "metadata": self.metadata.to_dict(),
            "stats": self.stats.to_dict(),
        }


@contextmanager
def _timed(stats: CompileStats, name: str) -> Iterator[None]:
    t0 = time.perf_counter()
    with stage(name):
        yield
    stats.stage_times[name] = time.perf_counter() - t0
    logger.info("Stage %s finished in %.1fms", name, stats.stage_times[name] * 1000)


def _lower(
    source: str,
    file_name: str,
    config: CompilerConfig,
    files: FileDatabase,
    contract: bool,
) -> tuple[IRUnit, list[EntryPointDef]]:
    frontend = get_frontend(config.language)
    parser = Parser()
    source_bytes = source.encode("utf-8")
    file_id = files.add(file_name, source)
    tree = parser.parse(source_bytes, config.language, file_name)
    unit = frontend.lower(tree, source_bytes, file_id)
    if not contract:
        return unit, []

    defs = find_entry_points(tree, source_bytes, file_id)
    text = wrapper_source(defs)
    wrapper_id = files.add(config.contract_file_name, text, virtual=True)
    wrapper_bytes = text.encode("utf-8")
    wrapper_tree = parser.parse(
        wrapper_bytes, config.language, config.contract_file_name
    )
    for d, node in zip(defs, wrapper_tree.root_node.named_children):
        with frontend.attributed_to(d.location):
            unit = frontend.extend_node(node, wrapper_bytes, wrapper_id)
    return unit, defs


def _round_trip(statements: list[IRInstruction], module: str) -> tuple[str, list]:
    """Write the IR text to a scratch directory and compile from what is read back."""
    text = dump_ir(statements)
    with tempfile.TemporaryDirectory(prefix=constants.TEMP_DIR_PREFIX) as tmp:
        path = Path(tmp) / f"{module or 'module'}{constants.IR_FILE_SUFFIX}"
        path.write_text(text, encoding="utf-8")
        logger.debug("Wrote %d IR statements to %s", len(statements), path)
        parsed = parse_ir(path.read_text(encoding="utf-8"))
    return text, parsed


def _compile(
    source: str, file_name: str, config: CompilerConfig, contract: bool
) -> CompilationResult:
    module = Path(file_name).stem
    stats = CompileStats(
        source_bytes=len(source.encode("utf-8")),
        source_lines=source.count("\n") + 1,
        language=config.language,
    )
    files = FileDatabase()
    logger.info("Compiling %s (%s, contract=%s)", file_name, config.language, contract)

    with _timed(stats, constants.STAGE_LOWER):
        unit, defs = _lower(source, file_name, config, files, contract)

    with _timed(stats, constants.STAGE_IR_PARSE):
        ir_text, statements = _round_trip(unit.statements, module)

    with _timed(stats, constants.STAGE_SOURCE_MAP):
        facts = find_statement_facts(statements, unit.locations, module)
        source_table = build_source_statement_table(
            facts, len(statements), files, config.contract_file_name
        )

    with _timed(stats, constants.STAGE_METADATA):
        metadata = compute_metadata(statements, module)

    with _timed(stats, constants.STAGE_CODEGEN):
        program = generate_code(statements, metadata, config)
        encoded_words = encode_instructions(program.instructions)

    with _timed(stats, constants.STAGE_INSTRUCTION_MAP):
        instruction_table = build_instruction_statement_table(program.debug_info)

    entry_points: list[EntryPoint] = []
    if contract:
        with _timed(stats, constants.STAGE_ENTRY_POINTS):
            entry_points = collect_entry_points(defs, program.label_offsets)

    stats.ir_statement_count = len(statements)
    stats.located_statement_count = len(facts.locations)
    stats.instruction_count = len(program.instructions)
    stats.bytecode_size = program.bytecode_size
    stats.frame_count = len(metadata.frames)
    logger.info(
        "Compiled %s: %d statements, %d instructions in %.1fms",
        file_name,
        stats.ir_statement_count,
        stats.instruction_count,
        stats.total_time * 1000,
    )
    return CompilationResult(
        file_name=file_name,
        statements=tuple(statements),
        ir_text=ir_text,
        source_table=source_table,
        metadata=metadata,
        program=program,
        encoded_words=tuple(encoded_words),
        instruction_table=instruction_table,
        entry_points=tuple(entry_points),
        stats=stats,
    )


def compile_source(
    source: str,
    file_name: str = constants.DEFAULT_FILE_NAME,
    config: CompilerConfig = CompilerConfig(),
) -> CompilationResult:
    """Compile a plain module.

    Raises:
        CompilationError: naming the stage that failed.
    """
    return _compile(source, file_name, config, contract=False)


def compile_contract(
    source: str,
    file_name: str = constants.DEFAULT_FILE_NAME,
    config: CompilerConfig = CompilerConfig(),
) -> CompilationResult:
    """Compile a module as a contract, synthesizing entry-point wrappers.

    Raises:
        CompilationError: naming the stage that failed.
    """
    return _compile(source, file_name, config, contract=True)
