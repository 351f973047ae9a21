"""Function ranges recovered from the frontend's label conventions.

The frontend brackets every function body with ``func_<name>_<n>`` and
``end_<name>_<m>`` labels (``class_`` / ``end_class_`` for classes).  The
opening label belongs to the function; the closing label belongs to the
enclosing scope.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .ir import IRInstruction, Opcode
from . import constants

_COUNTER_SUFFIX = re.compile(r"^(.+)_(\d+)$")


@dataclass(frozen=True)
class FunctionRange:
    name: str
    display_name: str
    start: int  # index of the opening label
    end: int  # exclusive; index of the closing label


def extract_name(label: str, prefix: str) -> str:
    """Extract the base name from a label like ``func_foo_3`` → ``foo``."""
    suffix = label[len(prefix) :]
    match = _COUNTER_SUFFIX.match(suffix)
    return match.group(1) if match else suffix


def _opened_scope(label: str) -> tuple[str, str] | None:
    """Return ``(kind, name)`` when *label* opens a function or class."""
    if label.startswith(constants.CLASS_LABEL_PREFIX):
        return "class", extract_name(label, constants.CLASS_LABEL_PREFIX)
    if label.startswith(constants.FUNC_LABEL_PREFIX):
        return "func", extract_name(label, constants.FUNC_LABEL_PREFIX)
    return None


def _closes(label: str, kind: str, name: str) -> bool:
    """Whether *label* closes the open *kind* scope called *name*.

    Closers are matched against the open scope only: ``end_class_x_3`` ends
    a function named ``class_x`` as well as a class named ``x``.
    """
    if kind == "class":
        prefix = constants.END_CLASS_LABEL_PREFIX
    else:
        prefix = constants.END_FUNC_LABEL_PREFIX
    return label.startswith(prefix) and extract_name(label, prefix) == name


def _walk(
    statements: list[IRInstruction], module: str
) -> tuple[list[FunctionRange], dict[int, str]]:
    sep = constants.FUNCTION_NAME_SEPARATOR
    stack: list[tuple[str, str, str, int]] = []  # kind, name, display, start
    ranges: list[FunctionRange] = []
    owners: dict[int, str] = {}

    def close(end: int):
        kind, name, display, start = stack.pop()
        if kind == "func":
            ranges.append(FunctionRange(name, display, start, end))

    for i, inst in enumerate(statements):
        label = inst.label if inst.opcode == Opcode.LABEL else None
        opened = _opened_scope(label) if label else None
        if opened is not None:
            kind, name = opened
            parent = stack[-1][2] if stack else module
            display = f"{parent}{sep}{name}" if parent else name
            stack.append((kind, name, display, i))
        elif label and stack and _closes(label, stack[-1][0], stack[-1][1]):
            close(i)
        func_display = next(
            (display for kind, _, display, _ in reversed(stack) if kind == "func"),
            None,
        )
        if func_display is not None:
            owners[i] = func_display

    while stack:
        close(len(statements))
    ranges.sort(key=lambda r: r.start)
    return ranges, owners


def function_ranges(
    statements: list[IRInstruction], module: str = ""
) -> list[FunctionRange]:
    """Return every function range, ordered by opening label."""
    return _walk(statements, module)[0]


def statement_functions(
    statements: list[IRInstruction], module: str = ""
) -> dict[int, str]:
    """Sparse statement index → display name of the innermost enclosing function."""
    return _walk(statements, module)[1]


def function_entry_labels(labels) -> dict[str, str]:
    """Map function name → entry label; the first label per name wins."""
    result: dict[str, str] = {}
    for label in labels:
        if label.startswith(constants.FUNC_LABEL_PREFIX):
            result.setdefault(extract_name(label, constants.FUNC_LABEL_PREFIX), label)
    return result
