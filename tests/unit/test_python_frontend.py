"""Tests for PythonFrontend — tree-sitter Python AST to IR lowering."""

from __future__ import annotations

from tree_sitter_language_pack import get_parser

from tracemap.diagnostics import ByteSpan, DiagnosticLocation
from tracemap.frontend import IRUnit
from tracemap.frontends.python import PythonFrontend
from tracemap.ir import IRInstruction, Opcode


def _lower_python(source: str, file_id: int = 0) -> IRUnit:
    parser = get_parser("python")
    tree = parser.parse(source.encode("utf-8"))
    return PythonFrontend().lower(tree, source.encode("utf-8"), file_id)


def _parse_python(source: str) -> list[IRInstruction]:
    return _lower_python(source).statements


def _opcodes(instructions: list[IRInstruction]) -> list[Opcode]:
    return [inst.opcode for inst in instructions]


def _find_all(instructions: list[IRInstruction], opcode: Opcode) -> list[IRInstruction]:
    return [inst for inst in instructions if inst.opcode == opcode]


def _labels_in_order(instructions: list[IRInstruction]) -> list[str]:
    return [inst.label for inst in instructions if inst.opcode == Opcode.LABEL]


def _span_text(source: str, location: DiagnosticLocation) -> str:
    data = source.encode("utf-8")
    return data[location.span.start : location.span.end].decode("utf-8")


class TestPythonSmoke:
    def test_empty_program(self):
        instructions = _parse_python("")
        assert instructions[0].opcode == Opcode.LABEL
        assert instructions[0].label == "entry"

    def test_integer_literal(self):
        instructions = _parse_python("42")
        consts = _find_all(instructions, Opcode.CONST)
        assert any("42" in inst.operands for inst in consts)

    def test_string_literal(self):
        instructions = _parse_python('x = "hello"')
        consts = _find_all(instructions, Opcode.CONST)
        assert any('"hello"' in inst.operands for inst in consts)


class TestPythonVariables:
    def test_simple_assignment(self):
        instructions = _parse_python("x = 10")
        stores = _find_all(instructions, Opcode.STORE_VAR)
        assert any("x" in inst.operands for inst in stores)

    def test_augmented_assignment(self):
        instructions = _parse_python("x += 1")
        binops = _find_all(instructions, Opcode.BINOP)
        assert any("+" in inst.operands for inst in binops)

    def test_tuple_unpack(self):
        instructions = _parse_python("a, b = pair")
        stores = _find_all(instructions, Opcode.STORE_VAR)
        assert [s.operands[0] for s in stores] == ["a", "b"]

    def test_bare_annotation_emits_nothing(self):
        assert len(_parse_python("x: int")) == 1


class TestPythonExpressions:
    def test_arithmetic(self):
        instructions = _parse_python("y = x + 5")
        assert Opcode.LOAD_VAR in _opcodes(instructions)
        binops = _find_all(instructions, Opcode.BINOP)
        assert any("+" in inst.operands for inst in binops)

    def test_chained_comparison_ands_pairs(self):
        instructions = _parse_python("ok = 0 < x < 10")
        operators = [inst.operands[0] for inst in _find_all(instructions, Opcode.BINOP)]
        assert operators == ["<", "<", "and"]

    def test_conditional_expression(self):
        instructions = _parse_python("y = 1 if x > 0 else 0")
        assert Opcode.BRANCH_IF in _opcodes(instructions)
        assert any("ternary" in lbl for lbl in _labels_in_order(instructions))

    def test_list_and_dict_literals(self):
        instructions = _parse_python('arr = [1, 2]\nd = {"a": 1}')
        opcodes = _opcodes(instructions)
        assert Opcode.NEW_ARRAY in opcodes
        assert Opcode.NEW_OBJECT in opcodes
        assert Opcode.STORE_INDEX in opcodes


class TestPythonControlFlow:
    def test_if_elif_else(self):
        source = """\
if x > 100:
    grade = "A"
elif x > 50:
    grade = "B"
else:
    grade = "F"
"""
        instructions = _parse_python(source)
        assert len(_find_all(instructions, Opcode.BRANCH_IF)) == 2
        labels = _labels_in_order(instructions)
        assert any(lbl.startswith("elif_true") for lbl in labels)
        grades = [
            s
            for s in _find_all(instructions, Opcode.STORE_VAR)
            if s.operands[0] == "grade"
        ]
        assert len(grades) == 3

    def test_while_loop(self):
        instructions = _parse_python("while x > 0:\n    x = x - 1")
        assert any("while" in lbl for lbl in _labels_in_order(instructions))

    def test_for_loop_walks_index(self):
        instructions = _parse_python("for x in items:\n    y = x")
        assert Opcode.LOAD_INDEX in _opcodes(instructions)
        calls = _find_all(instructions, Opcode.CALL_FUNCTION)
        assert calls[0].operands[0] == "len"

    def test_break_branches_to_loop_end(self):
        source = "for x in items:\n    if x > 10:\n        break\n"
        instructions = _parse_python(source)
        end_labels = [lbl for lbl in _labels_in_order(instructions) if "for_end" in lbl]
        branches = _find_all(instructions, Opcode.BRANCH)
        assert any(b.label in end_labels for b in branches)

    def test_continue_branches_to_step(self):
        source = "for x in items:\n    if x < 0:\n        continue\n    y = x\n"
        instructions = _parse_python(source)
        step_labels = [
            lbl for lbl in _labels_in_order(instructions) if "for_step" in lbl
        ]
        branches = _find_all(instructions, Opcode.BRANCH)
        assert any(b.label in step_labels for b in branches)

    def test_break_inside_while(self):
        instructions = _parse_python("while True:\n    break\n")
        end_labels = [
            lbl for lbl in _labels_in_order(instructions) if "while_end" in lbl
        ]
        branches = _find_all(instructions, Opcode.BRANCH)
        assert any(b.label in end_labels for b in branches)

    def test_while_else_skipped_by_break(self):
        source = "while x:\n    break\nelse:\n    y = 1\n"
        instructions = _parse_python(source)
        labels = _labels_in_order(instructions)
        else_label = next(lbl for lbl in labels if lbl.startswith("while_else"))
        end_label = next(lbl for lbl in labels if lbl.startswith("while_end"))
        (branch_if,) = _find_all(instructions, Opcode.BRANCH_IF)
        assert branch_if.label.endswith(else_label)
        breaks = [b.label for b in _find_all(instructions, Opcode.BRANCH)]
        assert end_label in breaks
        assert labels.index(else_label) < labels.index(end_label)

    def test_for_else(self):
        instructions = _parse_python("for x in xs:\n    pass\nelse:\n    done = 1\n")
        labels = _labels_in_order(instructions)
        assert any(lbl.startswith("for_else") for lbl in labels)
        stores = [s.operands[0] for s in _find_all(instructions, Opcode.STORE_VAR)]
        assert "done" in stores

    def test_break_in_nested_function_does_not_leave_outer_loop(self):
        source = "while x:\n    def f():\n        break\n"
        instructions = _parse_python(source)
        symbolic = [s.operands[0] for s in _find_all(instructions, Opcode.SYMBOLIC)]
        assert "break_outside_loop" in symbolic

    def test_try_except_finally(self):
        source = """\
try:
    risky()
except ValueError as e:
    handle(e)
finally:
    cleanup()
"""
        instructions = _parse_python(source)
        labels = _labels_in_order(instructions)
        assert any(lbl.startswith("catch_0") for lbl in labels)
        assert any(lbl.startswith("try_finally") for lbl in labels)
        stores = _find_all(instructions, Opcode.STORE_VAR)
        assert any("e" in inst.operands for inst in stores)


class TestPythonFunctions:
    def test_function_definition(self):
        instructions = _parse_python("def add(a, b):\n    return a + b")
        labels = _labels_in_order(instructions)
        assert any(lbl.startswith("func_add_") for lbl in labels)
        assert any(lbl.startswith("end_add_") for lbl in labels)
        params = [
            inst.operands[0]
            for inst in _find_all(instructions, Opcode.SYMBOLIC)
            if str(inst.operands[0]).startswith("param:")
        ]
        assert params == ["param:a", "param:b"]

    def test_typed_and_default_parameters(self):
        source = "def f(a: int, b=1, c: int = 2):\n    return a"
        instructions = _parse_python(source)
        params = [inst.operands[0] for inst in _find_all(instructions, Opcode.SYMBOLIC)]
        assert params == ["param:a", "param:b", "param:c"]

    def test_splat_parameters(self):
        instructions = _parse_python("def f(*args, **kwargs):\n    return args")
        params = [inst.operands[0] for inst in _find_all(instructions, Opcode.SYMBOLIC)]
        assert params == ["param:args", "param:kwargs"]

    def test_typed_splat_parameters(self):
        source = "def f(*args: int, **kwargs: str):\n    return args"
        instructions = _parse_python(source)
        params = [inst.operands[0] for inst in _find_all(instructions, Opcode.SYMBOLIC)]
        assert params == ["param:args", "param:kwargs"]

    def test_keyword_arguments_pass_values(self):
        instructions = _parse_python("f(1, key=2)")
        (call,) = _find_all(instructions, Opcode.CALL_FUNCTION)
        assert len(call.operands) == 3
        assert Opcode.SYMBOLIC not in _opcodes(instructions)

    def test_return_of_several_values_builds_tuple(self):
        instructions = _parse_python("def f():\n    return 1, 2")
        arrays = _find_all(instructions, Opcode.NEW_ARRAY)
        assert arrays[0].operands[0] == "tuple"

    def test_implicit_return(self):
        instructions = _parse_python("def f():\n    pass")
        assert len(_find_all(instructions, Opcode.RETURN)) == 1

    def test_decorated_definition_lowers_inner_function(self):
        instructions = _parse_python("@external\ndef f(x):\n    return x")
        labels = _labels_in_order(instructions)
        assert any(lbl.startswith("func_f_") for lbl in labels)

    def test_method_call(self):
        instructions = _parse_python('obj.method("arg")')
        calls = _find_all(instructions, Opcode.CALL_METHOD)
        assert calls[0].operands[1] == "method"


class TestPythonClasses:
    def test_class_with_method(self):
        source = """\
class Counter:
    def increment(self):
        self.count = self.count + 1
"""
        instructions = _parse_python(source)
        labels = _labels_in_order(instructions)
        assert any(lbl.startswith("class_Counter") for lbl in labels)
        store_fields = _find_all(instructions, Opcode.STORE_FIELD)
        assert any("count" in inst.operands for inst in store_fields)


class TestDiagnosticLocations:
    def test_located_statement_spans_its_node(self):
        source = "x = 1\ny = x + 2\n"
        unit = _lower_python(source, file_id=3)
        store_y = next(
            i
            for i, inst in enumerate(unit.statements)
            if inst.opcode == Opcode.STORE_VAR and inst.operands[0] == "y"
        )
        locations = unit.locations.for_statement(store_y)
        assert len(locations) == 1
        assert locations[0].file_id == 3
        assert _span_text(source, locations[0]) == "y = x + 2"

    def test_labels_have_no_location(self):
        unit = _lower_python("if x:\n    y = 1\n")
        for i, inst in enumerate(unit.statements):
            if inst.opcode == Opcode.LABEL:
                assert unit.locations.for_statement(i) == []

    def test_multibyte_source_uses_byte_offsets(self):
        source = 's = "héllo"\nt = 1\n'
        unit = _lower_python(source)
        store_t = next(
            i
            for i, inst in enumerate(unit.statements)
            if inst.opcode == Opcode.STORE_VAR and inst.operands[0] == "t"
        )
        (location,) = unit.locations.for_statement(store_t)
        assert _span_text(source, location) == "t = 1"
        assert location.span.start == len('s = "héllo"\n'.encode("utf-8"))

    def test_attributed_to_adds_extra_location(self):
        source = "x = 1\n"
        parser = get_parser("python")
        tree = parser.parse(source.encode("utf-8"))
        frontend = PythonFrontend()
        extra = DiagnosticLocation(file_id=9, span=ByteSpan(start=0, end=4))
        frontend.lower(parser.parse(b""), b"", 0)
        with frontend.attributed_to(extra):
            unit = frontend.extend(tree, source.encode("utf-8"), 1)
        store = next(
            i
            for i, inst in enumerate(unit.statements)
            if inst.opcode == Opcode.STORE_VAR
        )
        locations = unit.locations.for_statement(store)
        assert [loc.file_id for loc in locations] == [1, 9]

    def test_extend_continues_register_numbering(self):
        parser = get_parser("python")
        frontend = PythonFrontend()
        frontend.lower(parser.parse(b"a = 1\n"), b"a = 1\n", 0)
        unit = frontend.extend(parser.parse(b"b = 2\n"), b"b = 2\n", 1)
        result_regs = [inst.result_reg for inst in unit.statements if inst.result_reg]
        assert len(result_regs) == len(set(result_regs))
