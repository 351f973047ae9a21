"""Frame and resource metadata computed ahead of code generation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import MetadataError
from .functions import function_ranges
from .ir import IRInstruction, Opcode
from . import constants

logger = logging.getLogger(__name__)

MODULE_FRAME_NAME = "<module>"

# Estimated machine steps per IR opcode, excluding argument pushes.
STEP_COSTS: dict[Opcode, int] = {
    Opcode.LABEL: 0,
    Opcode.CONST: 1,
    Opcode.LOAD_VAR: 1,
    Opcode.STORE_VAR: 1,
    Opcode.SYMBOLIC: 1,
    Opcode.BINOP: 1,
    Opcode.UNOP: 1,
    Opcode.BRANCH: 1,
    Opcode.BRANCH_IF: 2,
    Opcode.RETURN: 2,
    Opcode.CALL_FUNCTION: 2,
    Opcode.CALL_METHOD: 2,
    Opcode.CALL_UNKNOWN: 2,
    Opcode.LOAD_FIELD: 2,
    Opcode.LOAD_INDEX: 2,
    Opcode.STORE_FIELD: 2,
    Opcode.STORE_INDEX: 2,
    Opcode.NEW_OBJECT: 2,
    Opcode.NEW_ARRAY: 2,
    Opcode.THROW: 2,
}


def is_register(operand) -> bool:
    return isinstance(operand, str) and operand.startswith("%")


def cell_names(inst: IRInstruction) -> list[str]:
    """Names that occupy a frame slot for *inst*, in operand order."""
    names = [op for op in inst.operands if is_register(op)]
    if inst.opcode in (Opcode.LOAD_VAR, Opcode.STORE_VAR) and inst.operands:
        names.insert(0, str(inst.operands[0]))
    if inst.result_reg:
        names.append(inst.result_reg)
    return names


@dataclass
class FrameInfo:
    name: str
    start: int = 0
    slots: dict[str, int] = field(default_factory=dict)
    params: list[str] = field(default_factory=list)
    gas: int = 0

    @property
    def size(self) -> int:
        return len(self.slots)

    def slot(self, name: str) -> int:
        return self.slots.setdefault(name, len(self.slots))


@dataclass(frozen=True)
class ProgramMetadata:
    frames: tuple[FrameInfo, ...]
    statement_frames: tuple[int, ...]  # statement index → index into frames
    labels: dict[str, int]  # label → statement index

    def frame_for(self, index: int) -> FrameInfo:
        return self.frames[self.statement_frames[index]]

    def to_dict(self) -> dict:
        return {
            frame.name: {"frame_size": frame.size, "gas": frame.gas}
            for frame in self.frames
        }


def compute_metadata(
    statements: list[IRInstruction], module: str = ""
) -> ProgramMetadata:
    """Assign frame slots and step costs to every statement.

    Raises:
        MetadataError: on duplicate or undefined labels, or when a frame needs
            more slots than an instruction offset can address.
    """
    labels: dict[str, int] = {}
    for i, inst in enumerate(statements):
        if inst.opcode != Opcode.LABEL:
            continue
        if inst.label in labels:
            raise MetadataError(
                f"Label '{inst.label}' defined at statements"
                f" {labels[inst.label]} and {i}"
            )
        labels[inst.label] = i

    frames: list[FrameInfo] = [FrameInfo(name=MODULE_FRAME_NAME)]
    owner = [0] * len(statements)
    for rng in function_ranges(statements, module):
        frames.append(FrameInfo(name=rng.display_name, start=rng.start))
        for i in range(rng.start, rng.end):
            owner[i] = len(frames) - 1

    for i, inst in enumerate(statements):
        for target in inst.branch_targets():
            if target not in labels:
                raise MetadataError(
                    f"Statement {i} ({inst}) branches to undefined label '{target}'"
                )
        frame = frames[owner[i]]
        for name in cell_names(inst):
            frame.slot(name)
        if (
            inst.opcode == Opcode.SYMBOLIC
            and inst.operands
            and str(inst.operands[0]).startswith(constants.PARAM_PREFIX)
        ):
            frame.params.append(str(inst.operands[0])[len(constants.PARAM_PREFIX) :])
        frame.gas += STEP_COSTS[inst.opcode]

    for frame in frames:
        if frame.size > constants.MAX_FRAME_SLOTS:
            raise MetadataError(
                f"Frame '{frame.name}' needs {frame.size} slots,"
                f" limit is {constants.MAX_FRAME_SLOTS}"
            )
        logger.debug("Frame %s: %d slots, gas %d", frame.name, frame.size, frame.gas)

    logger.info("Computed metadata for %d frames", len(frames))
    return ProgramMetadata(
        frames=tuple(frames), statement_frames=tuple(owner), labels=labels
    )
