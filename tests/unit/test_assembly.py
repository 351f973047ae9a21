"""Tests for instruction assembly and word encoding."""

import pytest
from pydantic import BaseModel

from tracemap.assembly import (
    CellRef,
    Instruction,
    InstructionKind,
    PcUpdate,
    Register,
    ResLogic,
    ap,
    fp,
    literal_value,
    selector_of,
)
from tracemap import constants


def _encode_hex(inst: Instruction) -> list[str]:
    return [hex(word) for word in inst.assemble().encode()]


class TestKnownEncodings:
    def test_ret(self):
        assert _encode_hex(Instruction(kind=InstructionKind.RET)) == [
            "0x208b7fff7fff7ffe"
        ]

    def test_call_rel(self):
        inst = Instruction(kind=InstructionKind.CALL_REL, imm=7)
        assert _encode_hex(inst) == ["0x1104800180018000", "0x7"]

    def test_jmp_rel(self):
        inst = Instruction(kind=InstructionKind.JUMP_REL, imm=4)
        assert _encode_hex(inst) == ["0x10780017fff7fff", "0x4"]

    def test_push_immediate(self):
        inst = Instruction(
            kind=InstructionKind.ASSERT_EQ, dst=ap(0), imm=10, ap_plus_plus=True
        )
        assert _encode_hex(inst) == ["0x480680017fff8000", "0xa"]

    def test_immediate_reduced_modulo_prime(self):
        inst = Instruction(kind=InstructionKind.JUMP_REL, imm=constants.FIELD_PRIME + 5)
        assert inst.assemble().encode()[1] == 5


class TestStructuralView:
    def test_assert_eq_from_cell_has_no_immediate(self):
        inst = Instruction(kind=InstructionKind.ASSERT_EQ, dst=fp(1), b=fp(0))
        assert inst.assemble().imm is None
        assert inst.size() == 1

    def test_jnz_tests_destination_cell(self):
        inst = Instruction(kind=InstructionKind.JNZ, dst=fp(3), imm=6)
        view = inst.assemble()
        assert view.off0 == 3
        assert view.pc_update == PcUpdate.JNZ
        assert inst.size() == 2

    def test_offset_out_of_range_raises(self):
        inst = Instruction(kind=InstructionKind.ASSERT_EQ, dst=fp(2**15), imm=1)
        with pytest.raises(ValueError):
            inst.assemble().encode()


class TestRendering:
    def test_assert_eq_text(self):
        inst = Instruction(
            kind=InstructionKind.ASSERT_EQ, dst=fp(2), a=fp(0), b=fp(1), op=ResLogic.ADD
        )
        assert str(inst) == "[fp+2] = [fp+0] + [fp+1]"

    def test_push_text(self):
        inst = Instruction(
            kind=InstructionKind.ASSERT_EQ, dst=ap(0), b=fp(-3), ap_plus_plus=True
        )
        assert str(inst) == "[ap+0] = [fp-3], ap++"

    def test_control_flow_text(self):
        assert str(Instruction(kind=InstructionKind.CALL_REL, imm=3)) == "call rel 3"
        assert str(Instruction(kind=InstructionKind.ADD_AP, imm=2)) == "ap += 2"
        assert str(Instruction(kind=InstructionKind.RET)) == "ret"


class TestCellRef:
    def test_fields_do_not_shadow_model_attributes(self):
        assert set(CellRef.model_fields) == {"reg", "offset"}
        assert not any(hasattr(BaseModel, name) for name in CellRef.model_fields)

    def test_helpers_set_the_base_register(self):
        assert fp(-3).reg is Register.FP
        assert ap(1).reg is Register.AP
        assert str(CellRef(reg=Register.AP, offset=-1)) == "[ap-1]"


class TestLiterals:
    def test_integers(self):
        assert literal_value("42") == 42
        assert literal_value("0x10") == 16
        assert literal_value(7) == 7

    def test_keywords(self):
        assert literal_value("True") == 1
        assert literal_value("None") == 0

    def test_short_string(self):
        assert literal_value("ab") == 0x6162


class TestSelector:
    def test_fits_in_250_bits(self):
        assert 0 <= selector_of("transfer") < 2**250

    def test_stable_and_distinct(self):
        assert selector_of("transfer") == selector_of("transfer")
        assert selector_of("transfer") != selector_of("approve")
