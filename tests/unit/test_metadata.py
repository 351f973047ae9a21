"""Tests for frame and resource metadata."""

import pytest

from tracemap.errors import MetadataError
from tracemap.ir import IRInstruction, Opcode
from tracemap.metadata import MODULE_FRAME_NAME, cell_names, compute_metadata
from tracemap import constants


def _make_instructions(*specs):
    """Helper: build IRInstruction list from (opcode, kwargs) tuples."""
    return [IRInstruction(opcode=op, **kw) for op, kw in specs]


def _function_program():
    return _make_instructions(
        (Opcode.LABEL, {"label": "entry"}),
        (Opcode.BRANCH, {"label": "end_f_1"}),
        (Opcode.LABEL, {"label": "func_f_0"}),
        (Opcode.SYMBOLIC, {"result_reg": "%0", "operands": ["param:a"]}),
        (Opcode.STORE_VAR, {"operands": ["a", "%0"]}),
        (Opcode.LOAD_VAR, {"result_reg": "%1", "operands": ["a"]}),
        (Opcode.RETURN, {"operands": ["%1"]}),
        (Opcode.LABEL, {"label": "end_f_1"}),
        (Opcode.CONST, {"result_reg": "%2", "operands": ["1"]}),
        (Opcode.CALL_FUNCTION, {"result_reg": "%3", "operands": ["f", "%2"]}),
    )


class TestCellNames:
    def test_store_var_names_variable_first(self):
        inst = IRInstruction(opcode=Opcode.STORE_VAR, operands=["x", "%0"])
        assert cell_names(inst) == ["x", "%0"]

    def test_result_register_last(self):
        inst = IRInstruction(
            opcode=Opcode.BINOP, result_reg="%2", operands=["+", "%0", "%1"]
        )
        assert cell_names(inst) == ["%0", "%1", "%2"]


class TestFrames:
    def test_module_and_function_frames(self):
        metadata = compute_metadata(_function_program(), "m")
        assert [f.name for f in metadata.frames] == [MODULE_FRAME_NAME, "m::f"]
        module, func = metadata.frames
        assert module.slots == {"%2": 0, "%3": 1}
        assert func.slots == {"%0": 0, "a": 1, "%1": 2}
        assert func.params == ["a"]
        assert func.start == 2

    def test_statement_frames(self):
        metadata = compute_metadata(_function_program(), "m")
        assert metadata.statement_frames == (0, 0, 1, 1, 1, 1, 1, 0, 0, 0)
        assert metadata.frame_for(4).name == "m::f"

    def test_gas_sums_step_costs(self):
        metadata = compute_metadata(_function_program(), "m")
        # branch + const + call_function
        assert metadata.frames[0].gas == 1 + 1 + 2
        assert metadata.to_dict()["m::f"] == {"frame_size": 3, "gas": 1 + 1 + 1 + 2}

    def test_labels_indexed(self):
        metadata = compute_metadata(_function_program())
        assert metadata.labels["end_f_1"] == 7

    def test_empty_program(self):
        metadata = compute_metadata([])
        assert len(metadata.frames) == 1
        assert metadata.statement_frames == ()


class TestErrors:
    def test_duplicate_label(self):
        program = _make_instructions(
            (Opcode.LABEL, {"label": "a"}),
            (Opcode.LABEL, {"label": "a"}),
        )
        with pytest.raises(MetadataError, match="'a'"):
            compute_metadata(program)

    def test_undefined_branch_target(self):
        program = _make_instructions((Opcode.BRANCH, {"label": "nowhere"}))
        with pytest.raises(MetadataError, match="nowhere"):
            compute_metadata(program)

    def test_frame_too_large(self):
        count = constants.MAX_FRAME_SLOTS + 1
        program = [
            IRInstruction(opcode=Opcode.CONST, result_reg=f"%{i}", operands=["0"])
            for i in range(count)
        ]
        with pytest.raises(MetadataError, match="slots"):
            compute_metadata(program)
