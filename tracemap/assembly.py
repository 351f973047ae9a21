"""Final instruction set: structural instructions and their word encoding.

An instruction reads and writes memory cells addressed relative to the
allocation pointer (``ap``) or the frame pointer (``fp``).  Its encoded form
is one word holding three 16-bit biased offsets and 15 flag bits, followed
by a second word when the instruction carries an immediate operand.
"""

from __future__ import annotations

import hashlib
from enum import Enum

from pydantic import BaseModel

from . import constants


class Register(str, Enum):
    AP = "ap"
    FP = "fp"


class Op1Source(str, Enum):
    OP0 = "op0"
    IMM = "imm"
    FP = "fp"
    AP = "ap"


class ResLogic(str, Enum):
    OP1 = "op1"
    ADD = "add"
    MUL = "mul"
    UNCONSTRAINED = "unconstrained"


class PcUpdate(str, Enum):
    REGULAR = "regular"
    JUMP = "jump"
    JUMP_REL = "jump_rel"
    JNZ = "jnz"


class ApUpdate(str, Enum):
    REGULAR = "regular"
    ADD = "add"
    ADD1 = "add1"
    ADD2 = "add2"


class FpUpdate(str, Enum):
    REGULAR = "regular"
    AP_PLUS2 = "ap_plus2"
    DST = "dst"


class MachineOpcode(str, Enum):
    NOP = "nop"
    ASSERT_EQ = "assert_eq"
    CALL = "call"
    RET = "ret"


# Flag bit positions within the 15-bit flags field.
_DST_REG_BIT = 0
_OP0_REG_BIT = 1
_OP1_SRC_BITS = {Op1Source.OP0: 0, Op1Source.IMM: 1, Op1Source.FP: 2, Op1Source.AP: 4}
_OP1_SRC_SHIFT = 2
_RES_BITS = {
    ResLogic.OP1: 0,
    ResLogic.ADD: 1,
    ResLogic.MUL: 2,
    ResLogic.UNCONSTRAINED: 0,
}
_RES_SHIFT = 5
_PC_BITS = {
    PcUpdate.REGULAR: 0,
    PcUpdate.JUMP: 1,
    PcUpdate.JUMP_REL: 2,
    PcUpdate.JNZ: 4,
}
_PC_SHIFT = 7
_AP_BITS = {ApUpdate.REGULAR: 0, ApUpdate.ADD: 1, ApUpdate.ADD1: 2, ApUpdate.ADD2: 0}
_AP_SHIFT = 10
_OPCODE_BITS = {
    MachineOpcode.NOP: 0,
    MachineOpcode.CALL: 1,
    MachineOpcode.RET: 2,
    MachineOpcode.ASSERT_EQ: 4,
}
_OPCODE_SHIFT = 12


def _bias(offset: int) -> int:
    biased = offset + constants.OFFSET_BIAS
    if not 0 <= biased < 2**constants.OFFSET_BITS:
        raise ValueError(
            f"Offset {offset} does not fit in {constants.OFFSET_BITS} bits"
        )
    return biased


class InstructionRepr(BaseModel):
    """Decoded structural view of one instruction, field by field."""

    off0: int
    off1: int
    off2: int
    imm: int | None = None
    dst_register: Register
    op0_register: Register
    op1_addr: Op1Source
    res: ResLogic
    pc_update: PcUpdate
    ap_update: ApUpdate
    fp_update: FpUpdate
    opcode: MachineOpcode

    def flags(self) -> int:
        return (
            (int(self.dst_register == Register.FP) << _DST_REG_BIT)
            | (int(self.op0_register == Register.FP) << _OP0_REG_BIT)
            | (_OP1_SRC_BITS[self.op1_addr] << _OP1_SRC_SHIFT)
            | (_RES_BITS[self.res] << _RES_SHIFT)
            | (_PC_BITS[self.pc_update] << _PC_SHIFT)
            | (_AP_BITS[self.ap_update] << _AP_SHIFT)
            | (_OPCODE_BITS[self.opcode] << _OPCODE_SHIFT)
        )

    def size(self) -> int:
        return 1 if self.imm is None else 2

    def encode(self) -> list[int]:
        """Return the encoded words: the instruction word, then the immediate if any."""
        bits = constants.OFFSET_BITS
        word = (
            _bias(self.off0)
            | (_bias(self.off1) << bits)
            | (_bias(self.off2) << (2 * bits))
            | (self.flags() << constants.FLAGS_SHIFT)
        )
        if self.imm is None:
            return [word]
        return [word, self.imm % constants.FIELD_PRIME]


class CellRef(BaseModel):
    reg: Register
    offset: int

    def __str__(self) -> str:
        sign = "+" if self.offset >= 0 else "-"
        return f"[{self.reg.value}{sign}{abs(self.offset)}]"


def fp(offset: int) -> CellRef:
    return CellRef(reg=Register.FP, offset=offset)


def ap(offset: int) -> CellRef:
    return CellRef(reg=Register.AP, offset=offset)


class InstructionKind(str, Enum):
    ASSERT_EQ = "assert_eq"
    CALL_REL = "call_rel"
    CALL_ABS = "call_abs"
    JUMP_REL = "jump_rel"
    JUMP_ABS = "jump_abs"
    JNZ = "jnz"
    RET = "ret"
    ADD_AP = "add_ap"


_CALL_PC_UPDATE = {
    InstructionKind.CALL_REL: PcUpdate.JUMP_REL,
    InstructionKind.CALL_ABS: PcUpdate.JUMP,
}


class Instruction(BaseModel):
    """One instruction in structural form.

    ``ASSERT_EQ``: ``dst = b`` or ``dst = a <op> b``; ``b`` is a cell or ``imm``.
    Jumps, calls and ``ADD_AP`` take ``imm``.  ``JNZ`` tests ``dst``.
    """

    kind: InstructionKind
    dst: CellRef | None = None
    a: CellRef | None = None
    b: CellRef | None = None
    imm: int | None = None
    op: ResLogic = ResLogic.OP1
    ap_plus_plus: bool = False

    def __str__(self) -> str:
        suffix = ", ap++" if self.ap_plus_plus else ""
        if self.kind == InstructionKind.ASSERT_EQ:
            rhs = str(self.b) if self.b is not None else str(self.imm)
            if self.op == ResLogic.ADD:
                rhs = f"{self.a} + {rhs}"
            elif self.op == ResLogic.MUL:
                rhs = f"{self.a} * {rhs}"
            return f"{self.dst} = {rhs}{suffix}"
        if self.kind == InstructionKind.CALL_REL:
            return f"call rel {self.imm}"
        if self.kind == InstructionKind.CALL_ABS:
            return f"call abs {self.imm}"
        if self.kind == InstructionKind.JUMP_REL:
            return f"jmp rel {self.imm}"
        if self.kind == InstructionKind.JUMP_ABS:
            return f"jmp abs {self.imm}"
        if self.kind == InstructionKind.JNZ:
            return f"jmp rel {self.imm} if {self.dst} != 0"
        if self.kind == InstructionKind.ADD_AP:
            return f"ap += {self.imm}"
        return "ret"

    def size(self) -> int:
        return self.assemble().size()

    def assemble(self) -> InstructionRepr:
        """Lower to the flat field representation used for encoding."""
        kind = self.kind
        if kind == InstructionKind.ASSERT_EQ:
            return self._assemble_assert_eq()
        if kind in (InstructionKind.CALL_REL, InstructionKind.CALL_ABS):
            return InstructionRepr(
                off0=0,
                off1=1,
                off2=1,
                imm=self.imm,
                dst_register=Register.AP,
                op0_register=Register.AP,
                op1_addr=Op1Source.IMM,
                res=ResLogic.OP1,
                pc_update=_CALL_PC_UPDATE[kind],
                ap_update=ApUpdate.ADD2,
                fp_update=FpUpdate.AP_PLUS2,
                opcode=MachineOpcode.CALL,
            )
        if kind == InstructionKind.RET:
            return InstructionRepr(
                off0=-2,
                off1=-1,
                off2=-1,
                dst_register=Register.FP,
                op0_register=Register.FP,
                op1_addr=Op1Source.FP,
                res=ResLogic.OP1,
                pc_update=PcUpdate.JUMP,
                ap_update=ApUpdate.REGULAR,
                fp_update=FpUpdate.DST,
                opcode=MachineOpcode.RET,
            )
        if kind == InstructionKind.JNZ:
            return InstructionRepr(
                off0=self.dst.offset,
                off1=-1,
                off2=1,
                imm=self.imm,
                dst_register=self.dst.reg,
                op0_register=Register.FP,
                op1_addr=Op1Source.IMM,
                res=ResLogic.UNCONSTRAINED,
                pc_update=PcUpdate.JNZ,
                ap_update=ApUpdate.REGULAR,
                fp_update=FpUpdate.REGULAR,
                opcode=MachineOpcode.NOP,
            )
        pc_update = {
            InstructionKind.JUMP_REL: PcUpdate.JUMP_REL,
            InstructionKind.JUMP_ABS: PcUpdate.JUMP,
            InstructionKind.ADD_AP: PcUpdate.REGULAR,
        }[kind]
        return InstructionRepr(
            off0=-1,
            off1=-1,
            off2=1,
            imm=self.imm,
            dst_register=Register.FP,
            op0_register=Register.FP,
            op1_addr=Op1Source.IMM,
            res=ResLogic.OP1,
            pc_update=pc_update,
            ap_update=(
                ApUpdate.ADD if kind == InstructionKind.ADD_AP else ApUpdate.REGULAR
            ),
            fp_update=FpUpdate.REGULAR,
            opcode=MachineOpcode.NOP,
        )

    def _assemble_assert_eq(self) -> InstructionRepr:
        op0 = self.a if self.a is not None else fp(-1)
        if self.b is not None:
            op1_addr = Op1Source(self.b.reg.value)
            off2 = self.b.offset
            imm = None
        else:
            op1_addr = Op1Source.IMM
            off2 = 1
            imm = self.imm
        return InstructionRepr(
            off0=self.dst.offset,
            off1=op0.offset,
            off2=off2,
            imm=imm,
            dst_register=self.dst.reg,
            op0_register=op0.reg,
            op1_addr=op1_addr,
            res=self.op,
            pc_update=PcUpdate.REGULAR,
            ap_update=ApUpdate.ADD1 if self.ap_plus_plus else ApUpdate.REGULAR,
            fp_update=FpUpdate.REGULAR,
            opcode=MachineOpcode.ASSERT_EQ,
        )


def selector_of(name: str) -> int:
    """Stable 250-bit selector for an external name (sha3-256, masked)."""
    digest = hashlib.sha3_256(name.encode("utf-8")).digest()
    return int.from_bytes(digest, "big") & constants.SELECTOR_MASK


def literal_value(text) -> int:
    """Field value for an IR constant.

    Integers are taken as-is; anything else is encoded as a short string.
    """
    if isinstance(text, bool):
        return int(text)
    if isinstance(text, int):
        return text
    text = str(text)
    if text in _KEYWORD_VALUES:
        return _KEYWORD_VALUES[text]
    try:
        return int(text, 0)
    except ValueError:
        return int.from_bytes(text.encode("utf-8"), "big") % constants.FIELD_PRIME


_KEYWORD_VALUES = {"True": 1, "False": 0, "None": 0, "true": 1, "false": 0}
