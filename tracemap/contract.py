"""Contract entry points and the synthesized wrapper file.

Top-level functions decorated ``@external``, ``@l1_handler`` or
``@constructor`` are entry points.  Each gets a wrapper function in a
virtual file named ``contract``; statements lowered from a wrapper carry
both the wrapper's own span and the span of the decorated definition it
forwards to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel

from .assembly import selector_of
from .diagnostics import ByteSpan, DiagnosticLocation
from .errors import EntryPointError
from .files import FileId
from .functions import function_entry_labels
from . import constants

logger = logging.getLogger(__name__)

_PARAM_NAME_TYPES = frozenset({"default_parameter", "typed_default_parameter"})
_SPLAT_PREFIXES = {"list_splat_pattern": "*", "dictionary_splat_pattern": "**"}
_SEPARATORS = frozenset({"keyword_separator", "positional_separator"})


class EntryPointKind(str, Enum):
    EXTERNAL = constants.EXTERNAL_DECORATOR
    L1_HANDLER = constants.L1_HANDLER_DECORATOR
    CONSTRUCTOR = constants.CONSTRUCTOR_DECORATOR


@dataclass(frozen=True)
class EntryPointDef:
    """A decorated definition found in the user's source."""

    name: str
    kind: EntryPointKind
    params: tuple[str, ...]
    location: DiagnosticLocation

    @property
    def wrapper_name(self) -> str:
        return f"{constants.WRAPPER_PREFIX}{self.name}"

    @property
    def selector(self) -> int:
        return selector_of(self.name)


class EntryPoint(BaseModel):
    selector: str
    function_name: str
    kind: EntryPointKind
    offset: int


def _decorator_name(decorator, source: bytes) -> str:
    expr = next((c for c in decorator.children if c.is_named), None)
    if expr is not None and expr.type == "call":
        expr = expr.child_by_field_name("function")
    if expr is None:
        return ""
    return source[expr.start_byte : expr.end_byte].decode("utf-8")


def _text(node, source: bytes) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8")


def _param_decl(node, source: bytes) -> str | None:
    """``a``, ``*args``, ``**kw``, ``*`` or ``/``; defaults and types dropped."""
    if node.type == "identifier":
        return _text(node, source)
    if node.type in _SEPARATORS:
        return _text(node, source)
    if node.type in _PARAM_NAME_TYPES:
        name = node.child_by_field_name("name")
        return _text(name, source) if name is not None else None
    if node.type == "typed_parameter":
        inner = next(
            (
                c
                for c in node.named_children
                if c.type == "identifier" or c.type in _SPLAT_PREFIXES
            ),
            None,
        )
        return _param_decl(inner, source) if inner is not None else None
    if node.type in _SPLAT_PREFIXES:
        name = next((c for c in node.named_children if c.type == "identifier"), None)
        if name is not None:
            return _SPLAT_PREFIXES[node.type] + _text(name, source)
    return None


def _param_names(params_node, source: bytes) -> tuple[str, ...]:
    decls = (
        _param_decl(child, source)
        for child in (params_node.named_children if params_node else [])
    )
    return tuple(d for d in decls if d is not None)


def _forwarded_args(params: tuple[str, ...]) -> str:
    """Call arguments passing each of *params* through unchanged."""
    args: list[str] = []
    keyword_only = False
    for param in params:
        if param == "/":
            continue
        if param.startswith("*"):
            keyword_only = True
            if param != "*":
                args.append(param)
        elif keyword_only:
            args.append(f"{param}={param}")
        else:
            args.append(param)
    return ", ".join(args)


def find_entry_points(tree, source: bytes, file_id: FileId) -> list[EntryPointDef]:
    """Return the entry points of a module, in source order.

    Raises:
        EntryPointError: on more than one constructor, or two entry points
            with the same name.
    """
    found: list[EntryPointDef] = []
    for node in tree.root_node.named_children:
        if node.type != "decorated_definition":
            continue
        definition = node.child_by_field_name("definition")
        if definition is None or definition.type != "function_definition":
            continue
        kinds = [
            EntryPointKind(name)
            for name in (
                _decorator_name(d, source)
                for d in node.named_children
                if d.type == "decorator"
            )
            if name in constants.ENTRY_POINT_DECORATORS
        ]
        if not kinds:
            continue
        name_node = definition.child_by_field_name("name")
        found.append(
            EntryPointDef(
                name=source[name_node.start_byte : name_node.end_byte].decode("utf-8"),
                kind=kinds[0],
                params=_param_names(
                    definition.child_by_field_name("parameters"), source
                ),
                location=DiagnosticLocation(
                    file_id=file_id,
                    span=ByteSpan(start=node.start_byte, end=node.end_byte),
                ),
            )
        )

    constructors = [d.name for d in found if d.kind == EntryPointKind.CONSTRUCTOR]
    if len(constructors) > 1:
        raise EntryPointError(
            f"At most one constructor is allowed, found {len(constructors)}:"
            f" {', '.join(constructors)}"
        )
    seen: set[str] = set()
    for d in found:
        if d.name in seen:
            raise EntryPointError(f"Entry point '{d.name}' is defined more than once")
        seen.add(d.name)
    logger.info("Found %d entry points", len(found))
    return found


def wrapper_source(defs: list[EntryPointDef]) -> str:
    """Python text of the ``contract`` file: one forwarding wrapper per entry point."""
    blocks = []
    for d in defs:
        signature = ", ".join(d.params)
        blocks.append(
            f"def {d.wrapper_name}({signature}):\n"
            f"    return {d.name}({_forwarded_args(d.params)})\n"
        )
    return "\n".join(blocks)


def collect_entry_points(
    defs: list[EntryPointDef], label_offsets: dict[str, int]
) -> list[EntryPoint]:
    """Pair each entry point with its wrapper's word offset, sorted by selector.

    Raises:
        EntryPointError: if a wrapper has no code.
    """
    entry_labels = function_entry_labels(label_offsets)
    entries: list[tuple[int, EntryPoint]] = []
    for d in defs:
        label = entry_labels.get(d.wrapper_name)
        if label is None:
            raise EntryPointError(f"No code generated for entry point '{d.name}'")
        selector = d.selector
        entries.append(
            (
                selector,
                EntryPoint(
                    selector=hex(selector),
                    function_name=d.name,
                    kind=d.kind,
                    offset=label_offsets[label],
                ),
            )
        )
    entries.sort(key=lambda pair: pair[0])
    return [entry for _, entry in entries]
