"""Tests for contract entry-point discovery and wrapper synthesis."""

import pytest
from tree_sitter_language_pack import get_parser

from tracemap.contract import (
    EntryPointKind,
    collect_entry_points,
    find_entry_points,
    wrapper_source,
)
from tracemap.assembly import selector_of
from tracemap.errors import EntryPointError

CONTRACT_SOURCE = """\
@constructor
def init(owner):
    return owner

@external
def transfer(to, amount: int = 0):
    return amount

@l1_handler()
def deposit(x):
    return x

def helper():
    return 1

@staticmethod
def other():
    return 2
"""


def _find(source: str):
    tree = get_parser("python").parse(source.encode("utf-8"))
    return find_entry_points(tree, source.encode("utf-8"), 0)


class TestFindEntryPoints:
    def test_decorated_functions_in_source_order(self):
        defs = _find(CONTRACT_SOURCE)
        assert [(d.name, d.kind) for d in defs] == [
            ("init", EntryPointKind.CONSTRUCTOR),
            ("transfer", EntryPointKind.EXTERNAL),
            ("deposit", EntryPointKind.L1_HANDLER),
        ]

    def test_parameters(self):
        defs = _find(CONTRACT_SOURCE)
        assert defs[1].params == ("to", "amount")

    def test_location_spans_decorated_definition(self):
        source = CONTRACT_SOURCE.encode("utf-8")
        span = _find(CONTRACT_SOURCE)[1].location.span
        text = source[span.start : span.end].decode("utf-8")
        assert text.startswith("@external\ndef transfer")

    def test_nested_functions_are_not_entry_points(self):
        source = "def outer():\n    @external\n    def inner():\n        return 1\n"
        assert _find(source) == []

    def test_two_constructors(self):
        source = (
            "@constructor\ndef a():\n    pass\n\n@constructor\ndef b():\n    pass\n"
        )
        with pytest.raises(EntryPointError, match="constructor"):
            _find(source)

    def test_duplicate_names(self):
        source = "@external\ndef a():\n    pass\n\n@l1_handler\ndef a():\n    pass\n"
        with pytest.raises(EntryPointError, match="'a'"):
            _find(source)


class TestWrapperSource:
    def test_one_forwarding_wrapper_each(self):
        text = wrapper_source(_find(CONTRACT_SOURCE))
        expected = (
            "def __wrapper__transfer(to, amount):\n"
            "    return transfer(to, amount)\n"
        )
        assert expected in text
        assert "def __wrapper__init(owner):" in text
        assert text.count("def ") == 3

    def test_empty(self):
        assert wrapper_source([]) == ""

    def test_splat_parameters_are_forwarded(self):
        source = (
            "@external\ndef f(a, b=1, *args, c, d: int = 2, **kwargs):\n"
            "    return a\n"
        )
        defs = _find(source)
        assert defs[0].params == ("a", "b", "*args", "c", "d", "**kwargs")
        assert wrapper_source(defs) == (
            "def __wrapper__f(a, b, *args, c, d, **kwargs):\n"
            "    return f(a, b, *args, c=c, d=d, **kwargs)\n"
        )

    def test_bare_star_and_slash_separators(self):
        source = "@external\ndef g(a, /, b, *, c, **kw: int):\n    return a\n"
        defs = _find(source)
        assert defs[0].params == ("a", "/", "b", "*", "c", "**kw")
        assert wrapper_source(defs) == (
            "def __wrapper__g(a, /, b, *, c, **kw):\n"
            "    return g(a, b, c=c, **kw)\n"
        )


class TestCollectEntryPoints:
    def test_sorted_by_selector_with_offsets(self):
        defs = _find(CONTRACT_SOURCE)
        labels = {
            "entry": 0,
            "func___wrapper__init_9": 40,
            "func___wrapper__transfer_12": 50,
            "func___wrapper__deposit_15": 60,
        }
        entries = collect_entry_points(defs, labels)
        selectors = [int(e.selector, 16) for e in entries]
        assert selectors == sorted(selectors)
        by_name = {e.function_name: e for e in entries}
        assert by_name["transfer"].offset == 50
        assert by_name["transfer"].selector == hex(selector_of("transfer"))
        assert by_name["init"].kind == EntryPointKind.CONSTRUCTOR

    def test_missing_wrapper_code(self):
        with pytest.raises(EntryPointError):
            collect_entry_points(_find(CONTRACT_SOURCE), {"entry": 0})
