"""Composable API functions for the compilation and correlation pipelines.

Each function corresponds to a CLI workflow (--ir-only, --pc, --offset) but is
callable programmatically without argparse.
"""

from __future__ import annotations

import logging

from .compile import CompilationResult, compile_contract, compile_source
from .compile_types import CompilerConfig
from .correlate import LocateResult
from .files import FileDatabase
from .frontend import get_frontend
from .ir import IRInstruction
from .ir import dump_ir as render_ir
from .parser import Parser
from . import constants

logger = logging.getLogger(__name__)

__all__ = [
    "compile_contract",
    "compile_file",
    "compile_source",
    "dump_ir",
    "lower_source",
    "trace_error",
    "trace_word_offset",
]


def lower_source(
    source: str,
    language: str = constants.DEFAULT_LANGUAGE,
    file_name: str = constants.DEFAULT_FILE_NAME,
) -> list[IRInstruction]:
    """Parse and lower source code to IR statements.

    Args:
        source: The source code text.
        language: Source language name.
        file_name: Name reported for the source in diagnostics.

    Returns:
        The IR statements; a statement's index is its position in the list.
    """
    logger.info("Lowering source (%s)", language)
    files = FileDatabase()
    file_id = files.add(file_name, source)
    source_bytes = source.encode("utf-8")
    frontend = get_frontend(language)
    tree = Parser().parse(source_bytes, language, file_name)
    return frontend.lower(tree, source_bytes, file_id).statements


def dump_ir(
    source: str,
    language: str = constants.DEFAULT_LANGUAGE,
) -> str:
    """Lower source to IR and return the text form that :func:`parse_ir` reads."""
    return render_ir(lower_source(source, language))


def trace_error(pc, result: CompilationResult) -> LocateResult:
    """Source spans for the instruction ordinal *pc* of a compiled program.

    Never raises; a pc with no instruction yields ``NotFound``.
    """
    outcome = result.locate(pc)
    logger.debug("trace_error(%r) → %s", pc, type(outcome).__name__)
    return outcome


def trace_word_offset(offset, result: CompilationResult) -> LocateResult:
    """Like :func:`trace_error` for a word offset into the encoded program."""
    return result.locate_word_offset(offset)


def compile_file(
    path: str, contract: bool = False, config: CompilerConfig | None = None
) -> CompilationResult:
    """Read *path* and compile it, as a contract when *contract* is set."""
    with open(path, encoding="utf-8") as f:
        source = f.read()
    compile_fn = compile_contract if contract else compile_source
    return compile_fn(source, path, config or CompilerConfig())
