"""BaseFrontend — tree-sitter AST → IR lowering with per-statement locations."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Sequence

from ..diagnostics import ByteSpan, DiagnosticLocation, StatementLocations
from ..files import FileId
from ..frontend import Frontend, IRUnit
from ..ir import IRInstruction, Opcode
from .. import constants

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoopTargets:
    """Where ``continue`` and ``break`` go inside one loop."""

    continue_label: str
    break_label: str


@dataclass
class CatchClause:
    node: Any = None
    body: Any = None
    variable: str | None = None
    exc_type: str | None = None


class BaseFrontend(Frontend):
    """Shared lowering machinery for tree-sitter grammars.

    Subclasses fill ``_STMT_DISPATCH`` and ``_EXPR_DISPATCH`` and override the
    field-name constants where their grammar differs.

    A statement emitted with an AST ``node`` is located at the node's byte
    span in the file being lowered, then at every location pushed with
    :meth:`attributed_to`, innermost last.  Statements emitted without a node
    (labels, synthesized constants, parameter stores) carry no location.
    """

    # ── grammar fields ───────────────────────────────────────────

    FUNC_NAME_FIELD = "name"
    FUNC_PARAMS_FIELD = "parameters"
    FUNC_BODY_FIELD = "body"
    CLASS_NAME_FIELD = "name"
    CLASS_BODY_FIELD = "body"

    IF_CONDITION_FIELD = "condition"
    IF_CONSEQUENCE_FIELD = "consequence"
    IF_ALTERNATIVE_FIELD = "alternative"
    ELSE_BODY_FIELD = "body"
    ELIF_NODE_TYPE = "elif_clause"

    LOOP_CONDITION_FIELD = "condition"
    LOOP_BODY_FIELD = "body"
    LOOP_ELSE_FIELD = "alternative"

    BINOP_LEFT_FIELD = "left"
    BINOP_OPERATOR_FIELD = "operator"
    BINOP_RIGHT_FIELD = "right"
    UNOP_OPERATOR_FIELD = "operator"
    UNOP_OPERAND_FIELD = "argument"

    ATTR_OBJECT_FIELD = "object"
    ATTR_ATTRIBUTE_FIELD = "attribute"
    SUBSCRIPT_VALUE_FIELD = "value"
    SUBSCRIPT_INDEX_FIELD = "subscript"
    ASSIGN_LEFT_FIELD = "left"
    ASSIGN_RIGHT_FIELD = "right"
    ASSIGN_OPERATOR_FIELD = "operator"

    ATTRIBUTE_NODE_TYPE = "attribute"
    SUBSCRIPT_NODE_TYPE = "subscript"
    PAIR_NODE_TYPE = "pair"
    BLOCK_NODE_TYPE = "block"

    DEFAULT_RETURN_VALUE = "None"
    COMMENT_TYPES: frozenset[str] = frozenset({"comment"})
    NOISE_TYPES: frozenset[str] = frozenset({"newline", "\n"})

    def __init__(self):
        self._reg_counter = 0
        self._label_counter = 0
        self._statements: list[IRInstruction] = []
        self._locations = StatementLocations()
        self._attributions: list[DiagnosticLocation] = []
        self._loops: list[LoopTargets] = []
        self._source = b""
        self._file_id: FileId = 0
        self._STMT_DISPATCH: dict[str, Callable] = {}
        self._EXPR_DISPATCH: dict[str, Callable] = {}

    # ── entry points ─────────────────────────────────────────────

    def lower(self, tree, source: bytes, file_id: FileId = 0) -> IRUnit:
        """Lower *tree* from scratch, starting with the ``entry`` label."""
        self._reg_counter = self._label_counter = 0
        self._statements = []
        self._locations = StatementLocations()
        self._attributions = []
        self._place(constants.ENTRY_LABEL)
        return self.extend(tree, source, file_id)

    def extend(self, tree, source: bytes, file_id: FileId) -> IRUnit:
        """Append the lowering of another file's top level.

        Register and label numbering carries on, so names stay unique across
        files.
        """
        return self.extend_node(tree.root_node, source, file_id)

    def extend_node(self, node, source: bytes, file_id: FileId) -> IRUnit:
        """Append the lowering of one *node* taken from *source*."""
        self._source = source
        self._file_id = file_id
        self._loops = []
        before = len(self._statements)
        self._lower_block(node)
        logger.debug(
            "Lowered %s of file %d into %d statements",
            node.type,
            file_id,
            len(self._statements) - before,
        )
        return IRUnit(statements=self._statements, locations=self._locations)

    def location_of(self, node) -> DiagnosticLocation:
        return DiagnosticLocation(
            file_id=self._file_id,
            span=ByteSpan(start=node.start_byte, end=node.end_byte),
        )

    @contextmanager
    def attributed_to(self, location: DiagnosticLocation) -> Iterator[None]:
        """Add *location* to every located statement emitted in the block."""
        self._attributions.append(location)
        try:
            yield
        finally:
            self._attributions.pop()

    # ── emission ─────────────────────────────────────────────────

    def _fresh_reg(self) -> str:
        reg = f"%{self._reg_counter}"
        self._reg_counter += 1
        return reg

    def _fresh_label(self, prefix: str = "L") -> str:
        label = f"{prefix}_{self._label_counter}"
        self._label_counter += 1
        return label

    def _fresh_labels(self, *prefixes: str) -> list[str]:
        return [self._fresh_label(prefix) for prefix in prefixes]

    def _emit(
        self,
        opcode: Opcode,
        *,
        result_reg: str = "",
        operands: Sequence[Any] = (),
        label: str = "",
        node=None,
    ) -> IRInstruction:
        index = len(self._statements)
        inst = IRInstruction(
            opcode=opcode,
            result_reg=result_reg or None,
            operands=list(operands),
            label=label or None,
        )
        self._statements.append(inst)
        if node is not None:
            for location in [self.location_of(node), *self._attributions]:
                self._locations.add(index, location)
        return inst

    def _value(self, opcode: Opcode, *operands: Any, node=None) -> str:
        """Emit *opcode* into a fresh register and return that register."""
        reg = self._fresh_reg()
        self._emit(opcode, result_reg=reg, operands=operands, node=node)
        return reg

    def _effect(self, opcode: Opcode, *operands: Any, node=None):
        self._emit(opcode, operands=operands, node=node)

    def _const(self, text: str, node=None) -> str:
        return self._value(Opcode.CONST, text, node=node)

    def _store(self, name: str, reg: str, node=None):
        self._effect(Opcode.STORE_VAR, name, reg, node=node)

    def _place(self, label: str):
        self._emit(Opcode.LABEL, label=label)

    def _jump(self, target: str, node=None):
        self._emit(Opcode.BRANCH, label=target, node=node)

    def _jump_if(self, cond_reg: str, if_true: str, if_false: str, node=None):
        self._emit(
            Opcode.BRANCH_IF,
            operands=[cond_reg],
            label=f"{if_true},{if_false}",
            node=node,
        )

    @contextmanager
    def _loop(self, continue_label: str, break_label: str) -> Iterator[None]:
        self._loops.append(LoopTargets(continue_label, break_label))
        try:
            yield
        finally:
            self._loops.pop()

    # ── node access ──────────────────────────────────────────────

    def _node_text(self, node) -> str:
        return self._source[node.start_byte : node.end_byte].decode("utf-8")

    @staticmethod
    def _fields(node, *names: str) -> tuple:
        return tuple(node.child_by_field_name(name) for name in names)

    def _value_children(self, node) -> list:
        """Named children of *node*, comments excluded."""
        return [c for c in node.named_children if c.type not in self.COMMENT_TYPES]

    def _block_of(self, node):
        return next(
            (c for c in node.named_children if c.type == self.BLOCK_NODE_TYPE), None
        )

    # ── dispatch ─────────────────────────────────────────────────

    def _lower_block(self, node):
        """Lower the statements under *node*.

        A node that is itself a dispatched statement (a one-line ``if`` body,
        a single wrapper definition) is lowered as that statement.
        """
        if node.type in self._STMT_DISPATCH:
            self._lower_stmt(node)
            return
        for child in node.named_children:
            self._lower_stmt(child)

    def _lower_stmt(self, node):
        if node.type in self.COMMENT_TYPES or node.type in self.NOISE_TYPES:
            return
        handler = self._STMT_DISPATCH.get(node.type, self._lower_expr)
        handler(node)

    def _lower_expr(self, node) -> str:
        """Lower an expression and return the register holding its value."""
        handler = self._EXPR_DISPATCH.get(node.type)
        if handler is None:
            logger.debug("No lowering for %s, using a symbolic value", node.type)
            return self._value(Opcode.SYMBOLIC, f"unsupported:{node.type}", node=node)
        return handler(node)

    # ── expressions ──────────────────────────────────────────────

    def _lower_const_literal(self, node) -> str:
        return self._const(self._node_text(node), node=node)

    def _lower_identifier(self, node) -> str:
        return self._value(Opcode.LOAD_VAR, self._node_text(node), node=node)

    def _lower_paren(self, node) -> str:
        inner = self._value_children(node)
        if not inner:
            return self._lower_const_literal(node)
        return self._lower_expr(inner[0])

    def _lower_binop(self, node) -> str:
        left, operator, right = self._fields(
            node,
            self.BINOP_LEFT_FIELD,
            self.BINOP_OPERATOR_FIELD,
            self.BINOP_RIGHT_FIELD,
        )
        lhs = self._lower_expr(left)
        rhs = self._lower_expr(right)
        return self._value(Opcode.BINOP, self._node_text(operator), lhs, rhs, node=node)

    def _lower_unop(self, node) -> str:
        operator, operand = self._fields(
            node, self.UNOP_OPERATOR_FIELD, self.UNOP_OPERAND_FIELD
        )
        if operator is None:
            operator = node.children[0]
        op = self._node_text(operator)
        return self._value(Opcode.UNOP, op, self._lower_expr(operand), node=node)

    def _lower_attribute(self, node) -> str:
        obj, attr = self._fields(
            node, self.ATTR_OBJECT_FIELD, self.ATTR_ATTRIBUTE_FIELD
        )
        if obj is None or attr is None:
            return self._lower_const_literal(node)
        obj_reg = self._lower_expr(obj)
        return self._value(
            Opcode.LOAD_FIELD, obj_reg, self._node_text(attr), node=node
        )

    def _lower_subscript(self, node) -> str:
        obj, index = self._fields(
            node, self.SUBSCRIPT_VALUE_FIELD, self.SUBSCRIPT_INDEX_FIELD
        )
        if obj is None or index is None:
            return self._lower_const_literal(node)
        obj_reg = self._lower_expr(obj)
        index_reg = self._lower_expr(index)
        return self._value(Opcode.LOAD_INDEX, obj_reg, index_reg, node=node)

    def _lower_sequence(self, node, kind: str) -> str:
        """Allocate a *kind* array sized to the literal, then fill it in order."""
        elements = self._value_children(node)
        size = self._const(str(len(elements)))
        seq = self._value(Opcode.NEW_ARRAY, kind, size, node=node)
        for position, element in enumerate(elements):
            item = self._lower_expr(element)
            self._effect(Opcode.STORE_INDEX, seq, self._const(str(position)), item)
        return seq

    def _lower_list_literal(self, node) -> str:
        return self._lower_sequence(node, "list")

    def _lower_dict_literal(self, node) -> str:
        obj = self._value(Opcode.NEW_OBJECT, "dict", node=node)
        for pair in node.named_children:
            if pair.type != self.PAIR_NODE_TYPE:
                continue
            key_node, value_node = self._fields(pair, "key", "value")
            key = self._lower_expr(key_node)
            self._effect(Opcode.STORE_INDEX, obj, key, self._lower_expr(value_node))
        return obj

    # ── stores ───────────────────────────────────────────────────

    def _lower_store_target(self, target, val_reg: str, parent_node):
        """Store *val_reg* into *target*; the store is located at *parent_node*."""
        if target.type == self.ATTRIBUTE_NODE_TYPE:
            obj, attr = self._fields(
                target, self.ATTR_OBJECT_FIELD, self.ATTR_ATTRIBUTE_FIELD
            )
            if obj is not None and attr is not None:
                obj_reg = self._lower_expr(obj)
                self._effect(
                    Opcode.STORE_FIELD,
                    obj_reg,
                    self._node_text(attr),
                    val_reg,
                    node=parent_node,
                )
            return
        if target.type == self.SUBSCRIPT_NODE_TYPE:
            obj, index = self._fields(
                target, self.SUBSCRIPT_VALUE_FIELD, self.SUBSCRIPT_INDEX_FIELD
            )
            if obj is not None and index is not None:
                obj_reg = self._lower_expr(obj)
                index_reg = self._lower_expr(index)
                self._effect(
                    Opcode.STORE_INDEX, obj_reg, index_reg, val_reg, node=parent_node
                )
            return
        # Plain names, and any other target by its source text.
        self._store(self._node_text(target), val_reg, node=parent_node)

    def _lower_assignment(self, node):
        left, right = self._fields(
            node, self.ASSIGN_LEFT_FIELD, self.ASSIGN_RIGHT_FIELD
        )
        if right is None:
            # annotation only
            return
        self._lower_store_target(left, self._lower_expr(right), node)

    def _lower_augmented_assignment(self, node):
        left, operator, right = self._fields(
            node,
            self.ASSIGN_LEFT_FIELD,
            self.ASSIGN_OPERATOR_FIELD,
            self.ASSIGN_RIGHT_FIELD,
        )
        if operator is None:
            operator = next(c for c in node.children if not c.is_named)
        op = self._node_text(operator).removesuffix("=")
        current = self._lower_expr(left)
        operand = self._lower_expr(right)
        result = self._value(Opcode.BINOP, op, current, operand, node=node)
        self._lower_store_target(left, result, node)

    def _lower_expression_statement(self, node):
        for child in node.named_children:
            self._lower_stmt(child)

    # ── control flow ─────────────────────────────────────────────

    def _lower_exit(self, node, opcode: Opcode):
        """``return`` / ``raise`` with an optional value, defaulting to None."""
        values = self._value_children(node)
        if values:
            reg = self._lower_expr(values[0])
        else:
            reg = self._const(self.DEFAULT_RETURN_VALUE)
        self._effect(opcode, reg, node=node)

    def _lower_return(self, node):
        self._lower_exit(node, Opcode.RETURN)

    def _lower_raise(self, node):
        self._lower_exit(node, Opcode.THROW)

    def _lower_if(self, node):
        end_label = self._fresh_label("if_end")
        rest = node.children_by_field_name(self.IF_ALTERNATIVE_FIELD)
        self._lower_guarded(node, rest, "if", end_label)
        self._place(end_label)

    def _lower_guarded(self, node, rest: list, prefix: str, end_label: str):
        """Lower one ``condition: body`` arm; *rest* runs when it is false."""
        cond, body = self._fields(
            node, self.IF_CONDITION_FIELD, self.IF_CONSEQUENCE_FIELD
        )
        cond_reg = self._lower_expr(cond)
        true_label = self._fresh_label(f"{prefix}_true")
        false_label = self._fresh_label(f"{prefix}_false") if rest else end_label
        self._jump_if(cond_reg, true_label, false_label, node=node)

        self._place(true_label)
        self._lower_block(body)
        self._jump(end_label)

        if not rest:
            return
        self._place(false_label)
        if rest[0].type == self.ELIF_NODE_TYPE:
            self._lower_guarded(rest[0], rest[1:], "elif", end_label)
        else:
            self._lower_else(rest[0])

    def _lower_else(self, node):
        body = node.child_by_field_name(self.ELSE_BODY_FIELD)
        self._lower_block(body if body is not None else node)

    def _lower_loop_else(self, else_node, else_label: str):
        """The ``else`` of a loop runs when the loop test fails, not on ``break``."""
        if else_node is None:
            return
        self._place(else_label)
        self._lower_else(else_node)

    def _lower_break(self, node):
        self._jump_out(node, "break")

    def _lower_continue(self, node):
        self._jump_out(node, "continue")

    def _jump_out(self, node, keyword: str):
        if not self._loops:
            logger.debug("'%s' outside a loop at byte %d", keyword, node.start_byte)
            self._value(Opcode.SYMBOLIC, f"{keyword}_outside_loop", node=node)
            return
        targets = self._loops[-1]
        if keyword == "break":
            self._jump(targets.break_label, node=node)
        else:
            self._jump(targets.continue_label, node=node)

    def _lower_while(self, node):
        cond, body, else_node = self._fields(
            node, self.LOOP_CONDITION_FIELD, self.LOOP_BODY_FIELD, self.LOOP_ELSE_FIELD
        )
        cond_label, body_label, end_label = self._fresh_labels(
            "while_cond", "while_body", "while_end"
        )
        exit_label = end_label
        if else_node is not None:
            exit_label = self._fresh_label("while_else")

        self._place(cond_label)
        self._jump_if(self._lower_expr(cond), body_label, exit_label, node=node)
        self._place(body_label)
        with self._loop(cond_label, end_label):
            self._lower_block(body)
        self._jump(cond_label)
        self._lower_loop_else(else_node, exit_label)
        self._place(end_label)

    # ── definitions ──────────────────────────────────────────────

    def _lower_function_def(self, node):
        name_node, params, body = self._fields(
            node, self.FUNC_NAME_FIELD, self.FUNC_PARAMS_FIELD, self.FUNC_BODY_FIELD
        )
        name = self._node_text(name_node)
        entry_label = self._fresh_label(f"{constants.FUNC_LABEL_PREFIX}{name}")
        exit_label = self._fresh_label(f"{constants.END_FUNC_LABEL_PREFIX}{name}")

        # Defining a function skips over its body.
        self._jump(exit_label, node=node)
        self._place(entry_label)
        enclosing_loops, self._loops = self._loops, []
        if params is not None:
            self._lower_params(params)
        if body is not None:
            self._lower_block(body)
        self._loops = enclosing_loops
        self._effect(Opcode.RETURN, self._const(self.DEFAULT_RETURN_VALUE))
        self._place(exit_label)

        ref = constants.FUNC_REF_TEMPLATE.format(name=name, label=entry_label)
        self._store(name, self._const(ref))

    def _lower_params(self, params_node):
        for child in params_node.named_children:
            name = self._param_name(child)
            if name:
                self._emit_param(name, child)

    def _param_name(self, node) -> str | None:
        return self._node_text(node) if node.type == "identifier" else None

    def _emit_param(self, name: str, node):
        reg = self._value(Opcode.SYMBOLIC, f"{constants.PARAM_PREFIX}{name}", node=node)
        self._store(name, reg)

    def _lower_class_def(self, node):
        name_node, body = self._fields(
            node, self.CLASS_NAME_FIELD, self.CLASS_BODY_FIELD
        )
        name = self._node_text(name_node)
        start_label = self._fresh_label(f"{constants.CLASS_LABEL_PREFIX}{name}")
        end_label = self._fresh_label(f"{constants.END_CLASS_LABEL_PREFIX}{name}")

        self._jump(end_label, node=node)
        self._place(start_label)
        if body is not None:
            self._lower_block(body)
        self._place(end_label)

        ref = constants.CLASS_REF_TEMPLATE.format(name=name, label=start_label)
        self._store(name, self._const(ref))

    # ── exceptions ───────────────────────────────────────────────

    def _lower_try_catch(
        self,
        node,
        body,
        handlers: list[CatchClause],
        finally_body=None,
        else_body=None,
    ):
        """Lay out try/except/else/finally as labelled blocks.

        Handlers are never branched to; control enters one only by raising.
        The body, each handler and ``else`` all leave through ``finally``
        when there is one.
        """
        body_label = self._fresh_label("try_body")
        handler_labels = [
            self._fresh_label(f"catch_{i}") for i in range(len(handlers))
        ]
        else_label = finally_label = ""
        if else_body is not None:
            else_label = self._fresh_label("try_else")
        if finally_body is not None:
            finally_label = self._fresh_label("try_finally")
        end_label = self._fresh_label("try_end")
        leave = finally_label or end_label

        self._place(body_label)
        if body is not None:
            self._lower_block(body)
        self._jump(else_label or leave)

        for label, handler in zip(handler_labels, handlers):
            self._place(label)
            at = handler.node if handler.node is not None else node
            kind = handler.exc_type or "Exception"
            caught = self._value(
                Opcode.SYMBOLIC,
                f"{constants.CAUGHT_EXCEPTION_PREFIX}:{kind}",
                node=at,
            )
            if handler.variable:
                self._store(handler.variable, caught, node=at)
            if handler.body is not None:
                self._lower_block(handler.body)
            self._jump(leave)

        if else_body is not None:
            self._place(else_label)
            self._lower_block(else_body)
            self._jump(leave)

        if finally_body is not None:
            self._place(finally_label)
            self._lower_block(finally_body)
        self._place(end_label)
