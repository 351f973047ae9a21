"""IR Design — Flattened High-Level Three-Address Code.

The IR is the statement-based middle layer: a flat list of statements whose
position in the list is the statement index.  Source attribution is kept out
of the statements themselves and lives in
:class:`tracemap.diagnostics.StatementLocations`, keyed by that index, so the
text form produced by :func:`dump_ir` can be parsed back by :func:`parse_ir`
without losing the mapping.
"""

from __future__ import annotations

import shlex
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .errors import IRParseError


class Opcode(str, Enum):
    # Value producers
    CONST = "CONST"
    LOAD_VAR = "LOAD_VAR"
    LOAD_FIELD = "LOAD_FIELD"
    LOAD_INDEX = "LOAD_INDEX"
    NEW_OBJECT = "NEW_OBJECT"
    NEW_ARRAY = "NEW_ARRAY"
    BINOP = "BINOP"
    UNOP = "UNOP"
    CALL_FUNCTION = "CALL_FUNCTION"
    CALL_METHOD = "CALL_METHOD"
    CALL_UNKNOWN = "CALL_UNKNOWN"
    # Value consumers / control flow
    STORE_VAR = "STORE_VAR"
    STORE_FIELD = "STORE_FIELD"
    STORE_INDEX = "STORE_INDEX"
    BRANCH_IF = "BRANCH_IF"
    BRANCH = "BRANCH"
    RETURN = "RETURN"
    THROW = "THROW"
    # Special
    SYMBOLIC = "SYMBOLIC"
    # Labels (pseudo-instruction)
    LABEL = "LABEL"


_LABELLED_OPCODES = frozenset({Opcode.BRANCH, Opcode.BRANCH_IF})


# Operands are kept on one line; string literals may span several.
def _escape_operand(op: Any) -> str:
    return str(op).encode("unicode_escape").decode("ascii")


def _unescape_operand(token: str) -> str:
    return token.encode("ascii").decode("unicode_escape")


class IRInstruction(BaseModel):
    opcode: Opcode
    result_reg: str | None = None
    operands: list[Any] = []
    label: str | None = None  # for LABEL / branch targets

    def branch_targets(self) -> list[str]:
        if self.opcode not in _LABELLED_OPCODES or not self.label:
            return []
        return [t.strip() for t in self.label.split(",") if t.strip()]

    def __str__(self) -> str:
        if self.label and self.opcode == Opcode.LABEL:
            return f"{self.label}:"
        parts: list[str] = []
        if self.result_reg:
            parts.append(f"{self.result_reg} =")
        parts.append(self.opcode.value.lower())
        for op in self.operands:
            parts.append(shlex.quote(_escape_operand(op)))
        if self.label and self.opcode != Opcode.LABEL:
            parts.append(self.label)
        return " ".join(parts)


def dump_ir(statements: list[IRInstruction]) -> str:
    """Render *statements* one per line, in statement-index order."""
    return "\n".join(str(stmt) for stmt in statements)


def parse_ir(text: str) -> list[IRInstruction]:
    """Parse IR text produced by :func:`dump_ir`.

    Blank lines and lines starting with ``#`` are skipped and do not consume
    a statement index.

    Raises:
        IRParseError: on the first malformed line, carrying the offending
            fragment and its 1-based line number.
    """
    statements: list[IRInstruction] = []
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        statements.append(_parse_line(line, line_number))
    return statements


def _parse_line(line: str, line_number: int) -> IRInstruction:
    try:
        tokens = shlex.split(line)
    except ValueError as exc:
        raise IRParseError(f"Unbalanced quoting: {exc}", line, line_number) from exc

    if len(tokens) == 1 and tokens[0].endswith(":"):
        label = tokens[0][:-1]
        if not label:
            raise IRParseError("Empty label", line, line_number)
        return IRInstruction(opcode=Opcode.LABEL, label=label)

    result_reg = None
    if len(tokens) >= 2 and tokens[1] == "=":
        result_reg = tokens[0]
        tokens = tokens[2:]
    if not tokens:
        raise IRParseError("Missing opcode", line, line_number)

    mnemonic, rest = tokens[0], tokens[1:]
    try:
        opcode = Opcode(mnemonic.upper())
    except ValueError as exc:
        raise IRParseError(f"Unknown opcode '{mnemonic}'", line, line_number) from exc
    if opcode == Opcode.LABEL:
        raise IRParseError("Labels must use the 'name:' form", line, line_number)

    label = None
    if opcode in _LABELLED_OPCODES:
        if not rest:
            raise IRParseError(
                f"'{mnemonic}' requires a target label", line, line_number
            )
        label, rest = rest[-1], rest[:-1]
        if opcode == Opcode.BRANCH and rest:
            raise IRParseError("'branch' takes no operands", line, line_number)
        if opcode == Opcode.BRANCH_IF and len(rest) != 1:
            raise IRParseError(
                "'branch_if' takes exactly one condition", line, line_number
            )
    try:
        operands = [_unescape_operand(tok) for tok in rest]
    except UnicodeError as exc:
        raise IRParseError(f"Bad operand escape: {exc}", line, line_number) from exc
    return IRInstruction(
        opcode=opcode,
        result_reg=result_reg,
        operands=operands,
        label=label,
    )
