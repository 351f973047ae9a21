"""InstructionEncoder adapter — final instructions → flat list of encoded words."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from pydantic import BaseModel

from .assembly import InstructionRepr
from . import constants

logger = logging.getLogger(__name__)


class Assemblable(Protocol):
    def assemble(self) -> InstructionRepr: ...


class EncodedWord(BaseModel):
    """One memory word of the final program.

    Only the first word of an instruction carries ``structural_view``; the
    immediate word that may follow it points back through
    ``instruction_index``.
    """

    memory: str
    instruction_index: int
    structural_view: InstructionRepr | None = None


def to_hex(word: int) -> str:
    return f"{constants.HEX_PREFIX}{word:x}"


def encode_instructions(instructions: Iterable[Assemblable]) -> list[EncodedWord]:
    """Encode *instructions* in order, one EncodedWord per memory word."""
    words: list[EncodedWord] = []
    count = 0
    for index, instruction in enumerate(instructions):
        representation = instruction.assemble()
        encoded = representation.encode()
        words.append(
            EncodedWord(
                memory=to_hex(encoded[0]),
                instruction_index=index,
                structural_view=representation,
            )
        )
        words.extend(
            EncodedWord(memory=to_hex(word), instruction_index=index)
            for word in encoded[1:]
        )
        count += 1
    logger.info("Encoded %d instructions into %d words", count, len(words))
    return words
