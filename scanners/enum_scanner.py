"""
Enum detection for named types.

Two shapes count as enums:
- ``Enum`` subclasses; every member is a value
- ``NewType`` declarations with labelled module-level constants of that type
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from typeindex import (
    UNRESOLVED,
    ClassDecl,
    Declaration,
    NewTypeDecl,
    Program,
    VariableDecl,
    constant_value,
)
from typeindex.types import enum_value_type

from .base import BaseScanner
from .deterministic import DocstringParser

logger = logging.getLogger("routescan.scanners.enum_scanner")


@dataclass
class EnumValue:
    name: str
    value: Any
    label: str


class EnumScanner(BaseScanner):
    """Collects and caches the values of enum-like declarations."""

    def __init__(self, program: Program, vocabulary=None):
        super().__init__(program, vocabulary)
        self._cache: Dict[str, Optional[List[EnumValue]]] = {}

    def enum_of(self, decl: Declaration) -> Optional[List[EnumValue]]:
        """Values ordered by value, or None when ``decl`` is not an enum."""
        if decl.qualname not in self._cache:
            values = None
            if isinstance(decl, ClassDecl) and decl.is_enum(self.program):
                values = self._class_members(decl)
            elif isinstance(decl, NewTypeDecl):
                values = self._typed_constants(decl)
            if values:
                values = sorted(values, key=lambda v: _sort_key(v.value))
            self._cache[decl.qualname] = values or None
        return self._cache[decl.qualname]

    def _class_members(self, decl: ClassDecl) -> List[EnumValue]:
        kind = enum_value_type(self.program, decl)
        values: List[EnumValue] = []
        previous: Any = 0
        for name, member in decl.members.items():
            if name.startswith("_"):
                continue
            if _is_auto(member.value):
                value = name.lower() if kind == "str" else (previous + 1 if isinstance(previous, int) else 1)
            else:
                value = constant_value(self.program, decl.module, member.value)
            if value is UNRESOLVED:
                logger.debug(f"Skipping enum member {member.qualname}: value is not a constant")
                continue
            previous = value
            label = DocstringParser.description(member.doc).replace("\n", " ") or name
            values.append(EnumValue(name, value, label))
        return values

    def _typed_constants(self, decl: NewTypeDecl) -> List[EnumValue]:
        values: List[EnumValue] = []
        for candidate in decl.module.decls.values():
            if not isinstance(candidate, VariableDecl) or not self._is_typed_as(candidate, decl):
                continue
            label = DocstringParser.description(candidate.doc).replace("\n", " ")
            if not label:
                continue
            value = constant_value(self.program, candidate.module, candidate.value)
            if value is UNRESOLVED:
                continue
            values.append(EnumValue(candidate.name, value, label))
        return values

    def _is_typed_as(self, variable: VariableDecl, decl: NewTypeDecl) -> bool:
        if variable.annotation is not None:
            resolved = self.program.resolve_expr(variable.module, variable.annotation)
            return resolved is decl
        value = variable.value
        if isinstance(value, ast.Call):
            return self.program.resolve_expr(variable.module, value.func) is decl
        return False


def _is_auto(value: Optional[ast.AST]) -> bool:
    if not isinstance(value, ast.Call):
        return False
    func = value.func
    name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", "")
    return name == "auto"


def _sort_key(value: Any):
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    return (1, 0, str(value))
