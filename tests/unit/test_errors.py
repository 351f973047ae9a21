"""Tests for stage wrapping."""

import pytest

from tracemap.errors import (
    CompilationError,
    IRParseError,
    MetadataError,
    stage,
)


class TestStage:
    def test_wraps_package_errors(self):
        with pytest.raises(CompilationError) as exc_info:
            with stage("metadata"):
                raise MetadataError("bad frame")
        assert exc_info.value.stage == "metadata"
        assert isinstance(exc_info.value.cause, MetadataError)
        assert str(exc_info.value) == "[metadata] bad frame"

    def test_wraps_value_errors(self):
        with pytest.raises(CompilationError) as exc_info:
            with stage("codegen"):
                raise ValueError("offset")
        assert exc_info.value.__cause__ is exc_info.value.cause

    def test_does_not_rewrap(self):
        with pytest.raises(CompilationError) as exc_info:
            with stage("outer"):
                with stage("inner"):
                    raise MetadataError("x")
        assert exc_info.value.stage == "inner"

    def test_other_exceptions_propagate(self):
        with pytest.raises(KeyError):
            with stage("lower"):
                raise KeyError("k")

    def test_passes_through_on_success(self):
        with stage("lower"):
            value = 1
        assert value == 1


class TestIRParseError:
    def test_carries_fragment_and_line(self):
        err = IRParseError("Unknown opcode", "%0 = nope", 7)
        assert err.fragment == "%0 = nope"
        assert err.line_number == 7
        assert "line 7" in str(err)
