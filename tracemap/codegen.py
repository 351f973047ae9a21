"""Final code generator: IR statements → instructions plus debug info."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from pydantic import BaseModel

from .assembly import (
    CellRef,
    Instruction,
    InstructionKind,
    ResLogic,
    ap,
    fp,
    literal_value,
    selector_of,
)
from .compile_types import CompilerConfig
from .errors import CodegenError, CodeSizeLimitError
from .functions import function_entry_labels
from .ir import IRInstruction, Opcode
from .metadata import FrameInfo, ProgramMetadata, is_register
from . import constants

logger = logging.getLogger(__name__)

_RUNTIME_HELPERS = frozenset(
    {
        Opcode.LOAD_FIELD,
        Opcode.LOAD_INDEX,
        Opcode.STORE_FIELD,
        Opcode.STORE_INDEX,
        Opcode.NEW_OBJECT,
        Opcode.NEW_ARRAY,
        Opcode.THROW,
    }
)

_NATIVE_BINOPS = {"+": ResLogic.ADD, "*": ResLogic.MUL}


class StatementDebugInfo(BaseModel):
    """Where the code for one IR statement starts.

    ``instruction_idx`` equals the instruction count when the statement emits
    nothing and no instruction follows it.
    """

    instruction_idx: int
    code_offset: int = 0


@dataclass(frozen=True)
class AssembledProgram:
    instructions: tuple[Instruction, ...]
    debug_info: tuple[StatementDebugInfo, ...]
    instruction_offsets: tuple[int, ...]
    label_offsets: dict[str, int]
    function_offsets: dict[str, int]
    bytecode_size: int

    def __str__(self) -> str:
        return "\n".join(
            f"{offset:>6}: {inst}"
            for offset, inst in zip(self.instruction_offsets, self.instructions)
        )


@dataclass
class _Fixup:
    instruction_idx: int
    label: str
    relative: bool = True


@dataclass
class _Emitter:
    metadata: ProgramMetadata
    function_labels: dict[str, str]
    instructions: list[Instruction] = field(default_factory=list)
    fixups: list[_Fixup] = field(default_factory=list)
    label_positions: dict[str, int] = field(default_factory=dict)

    def emit(self, inst: Instruction, target: str = "", relative: bool = True):
        if target:
            self.fixups.append(_Fixup(len(self.instructions), target, relative))
        self.instructions.append(inst)

    def push(self, frame: FrameInfo, operand):
        if is_register(operand):
            self.emit(_assert_eq(ap(0), b=_cell(frame, operand), ap_plus_plus=True))
        else:
            self.emit(_assert_eq(ap(0), imm=literal_value(operand), ap_plus_plus=True))

    def store_result(self, frame: FrameInfo, inst: IRInstruction):
        if inst.result_reg:
            self.emit(_assert_eq(_cell(frame, inst.result_reg), b=ap(-1)))

    def call_external(self, name: str):
        self.emit(Instruction(kind=InstructionKind.CALL_ABS, imm=selector_of(name)))


def _assert_eq(dst: CellRef, **kwargs) -> Instruction:
    return Instruction(kind=InstructionKind.ASSERT_EQ, dst=dst, **kwargs)


def _cell(frame: FrameInfo, name) -> CellRef:
    slot = frame.slots.get(str(name))
    if slot is None:
        raise CodegenError(f"No slot for '{name}' in frame '{frame.name}'")
    return fp(slot)


def _param_cell(frame: FrameInfo, param: str) -> CellRef:
    k = frame.params.index(param)
    return fp(constants.PARAM_BASE_OFFSET - (len(frame.params) - 1 - k))


def _lower_statement(em: _Emitter, frame: FrameInfo, inst: IRInstruction):
    op = inst.opcode
    ops = inst.operands

    if op == Opcode.LABEL:
        return

    if op == Opcode.CONST:
        em.emit(_assert_eq(_cell(frame, inst.result_reg), imm=literal_value(ops[0])))
    elif op == Opcode.LOAD_VAR:
        em.emit(_assert_eq(_cell(frame, inst.result_reg), b=_cell(frame, ops[0])))
    elif op == Opcode.STORE_VAR:
        em.emit(_assert_eq(_cell(frame, ops[0]), b=_cell(frame, ops[1])))
    elif op == Opcode.SYMBOLIC:
        if not inst.result_reg:
            return
        descr = str(ops[0]) if ops else ""
        dst = _cell(frame, inst.result_reg)
        param = descr[len(constants.PARAM_PREFIX) :]
        if descr.startswith(constants.PARAM_PREFIX) and param in frame.params:
            em.emit(_assert_eq(dst, b=_param_cell(frame, param)))
        else:
            em.emit(_assert_eq(dst, imm=literal_value(descr)))
    elif op == Opcode.BINOP and ops[0] in _NATIVE_BINOPS:
        em.emit(
            _assert_eq(
                _cell(frame, inst.result_reg),
                a=_cell(frame, ops[1]),
                b=_cell(frame, ops[2]),
                op=_NATIVE_BINOPS[ops[0]],
            )
        )
    elif op == Opcode.BINOP and ops[0] == "-":
        # a - b = r  is asserted as  a = r + b
        em.emit(
            _assert_eq(
                _cell(frame, ops[1]),
                a=_cell(frame, inst.result_reg),
                b=_cell(frame, ops[2]),
                op=ResLogic.ADD,
            )
        )
    elif op == Opcode.UNOP and ops[0] == "-":
        em.emit(
            _assert_eq(
                _cell(frame, inst.result_reg),
                a=_cell(frame, ops[1]),
                imm=-1,
                op=ResLogic.MUL,
            )
        )
    elif op in (Opcode.BINOP, Opcode.UNOP):
        for operand in ops[1:]:
            em.push(frame, operand)
        em.call_external(str(ops[0]))
        em.store_result(frame, inst)
    elif op == Opcode.CALL_FUNCTION:
        for operand in ops[1:]:
            em.push(frame, operand)
        target = em.function_labels.get(str(ops[0]))
        if target:
            em.emit(Instruction(kind=InstructionKind.CALL_REL, imm=0), target=target)
        else:
            em.call_external(str(ops[0]))
        em.store_result(frame, inst)
    elif op == Opcode.CALL_METHOD:
        em.push(frame, ops[0])
        for operand in ops[2:]:
            em.push(frame, operand)
        em.call_external(str(ops[1]))
        em.store_result(frame, inst)
    elif op == Opcode.CALL_UNKNOWN:
        for operand in ops:
            em.push(frame, operand)
        em.call_external(op.value.lower())
        em.store_result(frame, inst)
    elif op in _RUNTIME_HELPERS:
        for operand in ops:
            em.push(frame, operand)
        em.call_external(op.value.lower())
        em.store_result(frame, inst)
    elif op == Opcode.BRANCH:
        em.emit(Instruction(kind=InstructionKind.JUMP_REL, imm=0), target=inst.label)
    elif op == Opcode.BRANCH_IF:
        targets = inst.branch_targets()
        em.emit(
            Instruction(kind=InstructionKind.JNZ, dst=_cell(frame, ops[0]), imm=0),
            target=targets[0],
        )
        if len(targets) > 1:
            em.emit(
                Instruction(kind=InstructionKind.JUMP_REL, imm=0), target=targets[1]
            )
    elif op == Opcode.RETURN:
        em.push(frame, ops[0] if ops else "None")
        em.emit(Instruction(kind=InstructionKind.RET))
    else:
        raise CodegenError(f"Cannot generate code for {inst}")


def generate_code(
    statements: list[IRInstruction],
    metadata: ProgramMetadata,
    config: CompilerConfig = CompilerConfig(),
) -> AssembledProgram:
    """Lower *statements* to instructions with one debug record per statement.

    Raises:
        CodegenError: when a statement cannot be lowered.
        CodeSizeLimitError: when the result exceeds a configured limit.
    """
    em = _Emitter(
        metadata=metadata, function_labels=function_entry_labels(metadata.labels)
    )
    debug_positions: list[int] = []

    for i, inst in enumerate(statements):
        frame = metadata.frame_for(i)
        debug_positions.append(len(em.instructions))
        if inst.opcode == Opcode.LABEL:
            em.label_positions[inst.label] = len(em.instructions)
        if i == frame.start and frame.size:
            em.emit(Instruction(kind=InstructionKind.ADD_AP, imm=frame.size))
        try:
            _lower_statement(em, frame, inst)
        except (IndexError, KeyError) as exc:
            raise CodegenError(f"Malformed statement {i} ({inst}): {exc}") from exc
    # Module epilogue; trailing labels collapse onto it.
    em.emit(Instruction(kind=InstructionKind.RET))

    if len(em.instructions) > config.max_instructions:
        raise CodeSizeLimitError(
            f"{len(em.instructions)} instructions exceed the limit"
            f" of {config.max_instructions}"
        )

    offsets: list[int] = []
    total = 0
    for inst in em.instructions:
        offsets.append(total)
        total += inst.size()
    if total > config.max_bytecode_size:
        raise CodeSizeLimitError(
            f"Code size {total} words exceeds the limit of {config.max_bytecode_size}"
        )

    def offset_at(position: int) -> int:
        return offsets[position] if position < len(offsets) else total

    label_offsets = {
        label: offset_at(position) for label, position in em.label_positions.items()
    }
    for fixup in em.fixups:
        target = label_offsets.get(fixup.label)
        if target is None:
            raise CodegenError(f"Unresolved label '{fixup.label}'")
        inst = em.instructions[fixup.instruction_idx]
        imm = target - offsets[fixup.instruction_idx] if fixup.relative else target
        em.instructions[fixup.instruction_idx] = inst.model_copy(update={"imm": imm})

    debug_info = tuple(
        StatementDebugInfo(instruction_idx=pos, code_offset=offset_at(pos))
        for pos in debug_positions
    )
    function_offsets = {
        frame.name: offset_at(debug_positions[frame.start])
        for frame in metadata.frames[1:]
        if frame.start < len(debug_positions)
    }
    logger.info(
        "Generated %d instructions (%d words) for %d statements",
        len(em.instructions),
        total,
        len(statements),
    )
    return AssembledProgram(
        instructions=tuple(em.instructions),
        debug_info=debug_info,
        instruction_offsets=tuple(offsets),
        label_offsets=label_offsets,
        function_offsets=function_offsets,
        bytecode_size=total,
    )
