"""PythonFrontend — lowering for the tree-sitter Python grammar."""

from __future__ import annotations

from typing import Callable

from ._base import BaseFrontend, CatchClause
from ..ir import Opcode

_LITERAL_TYPES = (
    "integer",
    "float",
    "string",
    "concatenated_string",
    "true",
    "false",
    "none",
)
_UNPACK_TARGETS = frozenset({"pattern_list", "tuple_pattern", "list_pattern"})
_SPLAT_PARAMS = frozenset({"list_splat_pattern", "dictionary_splat_pattern"})
_NAMED_PARAMS = frozenset({"default_parameter", "typed_default_parameter"})


class PythonFrontend(BaseFrontend):
    """Lowers Python modules; decorators and annotations produce no code."""

    def __init__(self):
        super().__init__()
        self._EXPR_DISPATCH: dict[str, Callable] = {
            **dict.fromkeys(_LITERAL_TYPES, self._lower_const_literal),
            "identifier": self._lower_identifier,
            "binary_operator": self._lower_binop,
            "boolean_operator": self._lower_binop,
            "comparison_operator": self._lower_comparison,
            "unary_operator": self._lower_unop,
            "not_operator": self._lower_unop,
            "call": self._lower_call,
            "keyword_argument": self._lower_keyword_argument,
            "attribute": self._lower_attribute,
            "subscript": self._lower_subscript,
            "parenthesized_expression": self._lower_paren,
            "list": self._lower_list_literal,
            "tuple": self._lower_tuple_literal,
            "expression_list": self._lower_tuple_literal,
            "dictionary": self._lower_dict_literal,
            "conditional_expression": self._lower_conditional_expr,
        }
        self._STMT_DISPATCH: dict[str, Callable] = {
            "expression_statement": self._lower_expression_statement,
            "assignment": self._lower_assignment,
            "augmented_assignment": self._lower_augmented_assignment,
            "return_statement": self._lower_return,
            "raise_statement": self._lower_raise,
            "if_statement": self._lower_if,
            "while_statement": self._lower_while,
            "for_statement": self._lower_for,
            "break_statement": self._lower_break,
            "continue_statement": self._lower_continue,
            "function_definition": self._lower_function_def,
            "class_definition": self._lower_class_def,
            "decorated_definition": self._lower_decorated_def,
            "try_statement": self._lower_try,
            "pass_statement": lambda _: None,
        }

    # ── calls ────────────────────────────────────────────────────

    def _lower_call(self, node) -> str:
        """Method calls, direct calls by name, and calls through a value."""
        callee, arguments = self._fields(node, "function", "arguments")
        args = []
        if arguments is not None:
            args = [self._lower_expr(a) for a in self._value_children(arguments)]

        if callee.type == self.ATTRIBUTE_NODE_TYPE:
            obj, method = self._fields(
                callee, self.ATTR_OBJECT_FIELD, self.ATTR_ATTRIBUTE_FIELD
            )
            obj_reg = self._lower_expr(obj)
            return self._value(
                Opcode.CALL_METHOD, obj_reg, self._node_text(method), *args, node=node
            )
        if callee.type == "identifier":
            return self._value(
                Opcode.CALL_FUNCTION, self._node_text(callee), *args, node=node
            )
        target = self._lower_expr(callee)
        return self._value(Opcode.CALL_UNKNOWN, target, *args, node=node)

    def _lower_keyword_argument(self, node) -> str:
        # passed positionally
        return self._lower_expr(node.child_by_field_name("value"))

    def _lower_comparison(self, node) -> str:
        """``a < b < c`` becomes ``(a < b) and (b < c)``, each operand once."""
        regs = [self._lower_expr(c) for c in self._value_children(node)]
        operators = [c for c in node.children if not c.is_named]
        result = None
        for lhs, op, rhs in zip(regs, operators, regs[1:]):
            pair = self._value(
                Opcode.BINOP, self._node_text(op), lhs, rhs, node=node
            )
            if result is not None:
                pair = self._value(Opcode.BINOP, "and", result, pair, node=node)
            result = pair
        return result

    def _lower_tuple_literal(self, node) -> str:
        return self._lower_sequence(node, "tuple")

    def _lower_conditional_expr(self, node) -> str:
        """``a if c else b``; both arms meet in a scratch variable."""
        when_true, condition, when_false = self._value_children(node)[:3]
        true_label, false_label, end_label = self._fresh_labels(
            "ternary_true", "ternary_false", "ternary_end"
        )
        scratch = f"__ternary_{self._label_counter}"

        self._jump_if(self._lower_expr(condition), true_label, false_label, node=node)
        for label, arm in ((true_label, when_true), (false_label, when_false)):
            self._place(label)
            self._store(scratch, self._lower_expr(arm))
            self._jump(end_label)
        self._place(end_label)
        return self._value(Opcode.LOAD_VAR, scratch)

    # ── for loop ─────────────────────────────────────────────────

    def _lower_for(self, node):
        """Walk a hidden index from 0 to ``len(iterable)``, binding the target."""
        target, iterable, body, else_node = self._fields(
            node, "left", "right", self.LOOP_BODY_FIELD, self.LOOP_ELSE_FIELD
        )
        seq = self._lower_expr(iterable)
        index_var = f"__for_idx_{self._label_counter}"
        self._store(index_var, self._const("0"))
        length = self._value(Opcode.CALL_FUNCTION, "len", seq, node=iterable)

        cond_label, body_label, step_label, end_label = self._fresh_labels(
            "for_cond", "for_body", "for_step", "for_end"
        )
        exit_label = end_label
        if else_node is not None:
            exit_label = self._fresh_label("for_else")

        self._place(cond_label)
        index = self._value(Opcode.LOAD_VAR, index_var)
        in_range = self._value(Opcode.BINOP, "<", index, length)
        self._jump_if(in_range, body_label, exit_label, node=node)

        self._place(body_label)
        item = self._value(Opcode.LOAD_INDEX, seq, index)
        self._lower_store_target(target, item, target)
        with self._loop(step_label, end_label):
            self._lower_block(body)

        self._place(step_label)
        self._store(index_var, self._value(Opcode.BINOP, "+", index, self._const("1")))
        self._jump(cond_label)
        self._lower_loop_else(else_node, exit_label)
        self._place(end_label)

    # ── definitions ──────────────────────────────────────────────

    def _param_name(self, node) -> str | None:
        if node.type == "identifier":
            return self._node_text(node)
        if node.type in _NAMED_PARAMS:
            name = node.child_by_field_name("name")
        elif node.type == "typed_parameter" or node.type in _SPLAT_PARAMS:
            name = next(
                (
                    c
                    for c in node.named_children
                    if c.type == "identifier" or c.type in _SPLAT_PARAMS
                ),
                None,
            )
            if name is not None and name.type in _SPLAT_PARAMS:
                return self._param_name(name)
        else:
            return None
        return self._node_text(name) if name is not None else None

    def _lower_decorated_def(self, node):
        definition = node.child_by_field_name("definition")
        if definition is not None:
            self._lower_stmt(definition)

    def _lower_store_target(self, target, val_reg: str, parent_node):
        if target.type not in _UNPACK_TARGETS:
            super()._lower_store_target(target, val_reg, parent_node)
            return
        for position, element in enumerate(self._value_children(target)):
            item = self._value(Opcode.LOAD_INDEX, val_reg, self._const(str(position)))
            self._lower_store_target(element, item, parent_node)

    # ── try ──────────────────────────────────────────────────────

    def _lower_try(self, node):
        handlers: list[CatchClause] = []
        else_body = finally_body = None
        for clause in node.named_children:
            if clause.type in ("except_clause", "except_group_clause"):
                handlers.append(self._except_clause(clause))
            elif clause.type == "else_clause":
                else_body = clause.child_by_field_name(self.ELSE_BODY_FIELD)
            elif clause.type == "finally_clause":
                finally_body = self._block_of(clause)
        body = node.child_by_field_name("body")
        self._lower_try_catch(node, body, handlers, finally_body, else_body)

    def _except_clause(self, clause) -> CatchClause:
        """Read ``except T as name`` in both the field and ``as_pattern`` forms."""
        handler = CatchClause(node=clause, body=self._block_of(clause))
        caught = [
            c
            for c in self._value_children(clause)
            if c.type != self.BLOCK_NODE_TYPE
        ]
        if caught and caught[0].type == "as_pattern":
            caught = self._value_children(caught[0])
        if caught:
            handler.exc_type = self._node_text(caught[0])
        if len(caught) > 1:
            handler.variable = self._node_text(caught[-1])
        return handler
