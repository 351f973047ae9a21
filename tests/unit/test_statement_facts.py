"""Tests for StatementFactFinder."""

from tracemap.diagnostics import ByteSpan, DiagnosticLocation, StatementLocations
from tracemap.ir import IRInstruction, Opcode
from tracemap.statement_facts import find_statement_facts


def _loc(start: int, end: int, file_id: int = 0) -> DiagnosticLocation:
    return DiagnosticLocation(file_id=file_id, span=ByteSpan(start=start, end=end))


def _program() -> list[IRInstruction]:
    return [
        IRInstruction(opcode=Opcode.LABEL, label="entry"),
        IRInstruction(opcode=Opcode.LABEL, label="func_main_0"),
        IRInstruction(opcode=Opcode.CONST, result_reg="%0", operands=["1"]),
        IRInstruction(opcode=Opcode.LABEL, label="end_main_1"),
    ]


class TestFunctions:
    def test_sparse_function_names(self):
        facts = find_statement_facts(_program(), StatementLocations(), "app")
        assert facts.functions == {1: "app::main", 2: "app::main"}


class TestLocations:
    def test_sparse_and_in_report_order(self):
        locations = StatementLocations()
        locations.add(2, _loc(10, 12))
        locations.add(0, _loc(0, 3))
        locations.add(2, _loc(4, 6, file_id=1))
        locations.add(2, _loc(10, 12))
        facts = find_statement_facts(_program(), locations)
        assert sorted(facts.locations) == [0, 2]
        assert facts.locations[2] == [_loc(10, 12), _loc(4, 6, file_id=1), _loc(10, 12)]

    def test_no_locations(self):
        facts = find_statement_facts(_program(), StatementLocations())
        assert facts.locations == {}
