"""
Constant folding over analyzed expressions.

Only a small, closed set of forms is understood; everything else is
``UNRESOLVED`` and callers fall back to their defaults.
"""

from __future__ import annotations

import ast
import http
import logging
import operator
from typing import TYPE_CHECKING, Any, Optional, Set

from .decls import ExternalDecl, MemberDecl, NewTypeDecl, VariableDecl

if TYPE_CHECKING:
    from .program import Module, Program

logger = logging.getLogger("routescan.typeindex.evaluate")


class _Unresolved:
    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False


UNRESOLVED = _Unresolved()

BINARY_OPERATORS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitOr: operator.or_,
    ast.BitAnd: operator.and_,
    ast.LShift: operator.lshift,
}

CONVERSIONS = {"int": int, "str": str, "float": float, "bool": bool}

MAX_POWER = 64
MAX_INT_BITS = 4096
MAX_SEQUENCE_LENGTH = 1 << 16


def constant_value(program: "Program", module: "Module", expr: Optional[ast.AST],
                   _seen: Optional[Set[str]] = None) -> Any:
    """
    Fold ``expr`` into a Python constant.

    Returns:
        The value, or UNRESOLVED when the expression is not a known constant
    """
    if expr is None:
        return UNRESOLVED
    seen = _seen if _seen is not None else set()

    if isinstance(expr, ast.Constant):
        if isinstance(expr.value, (str, int, float, bool)) or expr.value is None:
            return expr.value
        return UNRESOLVED

    if isinstance(expr, ast.UnaryOp):
        operand = constant_value(program, module, expr.operand, seen)
        if operand is UNRESOLVED:
            return UNRESOLVED
        if isinstance(expr.op, ast.USub) and isinstance(operand, (int, float)):
            return -operand
        if isinstance(expr.op, ast.UAdd) and isinstance(operand, (int, float)):
            return operand
        if isinstance(expr.op, ast.Not):
            return not operand
        return UNRESOLVED

    if isinstance(expr, ast.BinOp):
        op = BINARY_OPERATORS.get(type(expr.op))
        left = constant_value(program, module, expr.left, seen)
        right = constant_value(program, module, expr.right, seen)
        if op is None or left is UNRESOLVED or right is UNRESOLVED:
            return UNRESOLVED
        if not _within_bounds(expr.op, left, right):
            return UNRESOLVED
        try:
            return op(left, right)
        except (TypeError, ValueError, ZeroDivisionError, OverflowError, MemoryError):
            return UNRESOLVED

    if isinstance(expr, (ast.Name, ast.Attribute)):
        return _named_value(program, module, expr, seen)

    if isinstance(expr, ast.Call):
        return _call_value(program, module, expr, seen)

    if isinstance(expr, (ast.List, ast.Tuple, ast.Set)):
        items = [constant_value(program, module, e, seen) for e in expr.elts]
        if any(item is UNRESOLVED for item in items):
            return UNRESOLVED
        return tuple(items) if isinstance(expr, ast.Tuple) else list(items)

    if isinstance(expr, ast.Dict):
        result = {}
        for key_expr, value_expr in zip(expr.keys, expr.values):
            if key_expr is None:
                return UNRESOLVED
            key = constant_value(program, module, key_expr, seen)
            value = constant_value(program, module, value_expr, seen)
            if key is UNRESOLVED or value is UNRESOLVED:
                return UNRESOLVED
            result[key] = value
        return result

    if isinstance(expr, ast.JoinedStr):
        return UNRESOLVED

    return UNRESOLVED


def _within_bounds(op: ast.operator, left: Any, right: Any) -> bool:
    """Reject folds whose result would grow without limit."""
    if isinstance(op, ast.Pow):
        if not isinstance(right, int) or right > MAX_POWER:
            return False
        if isinstance(left, int) and left.bit_length() * max(right, 0) > MAX_INT_BITS:
            return False
    elif isinstance(op, ast.LShift):
        if not isinstance(left, int) or not isinstance(right, int) or right > MAX_INT_BITS:
            return False
        return left.bit_length() + right <= MAX_INT_BITS
    elif isinstance(op, ast.Mult):
        for seq, count in ((left, right), (right, left)):
            if isinstance(seq, (str, list, tuple)) and isinstance(count, int):
                return len(seq) * max(count, 0) <= MAX_SEQUENCE_LENGTH
    return True


def _named_value(program, module, expr, seen) -> Any:
    decl = program.resolve_expr(module, expr)
    if decl is None:
        return UNRESOLVED
    if isinstance(decl, ExternalDecl):
        return _external_value(decl.qualname)
    key = decl.qualname
    if key in seen:
        return UNRESOLVED
    if isinstance(decl, (MemberDecl, VariableDecl)):
        return constant_value(program, decl.module, decl.value, seen | {key})
    return UNRESOLVED


def _external_value(qualname: str) -> Any:
    # http.HTTPStatus.CREATED and friends are stable stdlib constants
    prefix = "http.HTTPStatus."
    if qualname.startswith(prefix):
        member = qualname[len(prefix):]
        if member in http.HTTPStatus.__members__:
            return int(http.HTTPStatus[member])
    return UNRESOLVED


def _call_value(program, module, expr: ast.Call, seen) -> Any:
    if len(expr.args) != 1 or expr.keywords:
        return UNRESOLVED
    callee = program.resolve_expr(module, expr.func)
    arg = constant_value(program, module, expr.args[0], seen)
    if arg is UNRESOLVED:
        return UNRESOLVED
    if isinstance(callee, NewTypeDecl):
        return arg
    if isinstance(callee, ExternalDecl) and callee.qualname in CONVERSIONS:
        try:
            return CONVERSIONS[callee.qualname](arg)
        except (TypeError, ValueError):
            return UNRESOLVED
    return UNRESOLVED
