"""
Custom error-formatter detection.

Looks for ``register_error_formatter(Formatter())`` calls. The first registered
class that has a field tagged ``error`` becomes the error response schema; its
``status_code_map()`` literal, if any, overrides code → status bucketing.
"""

from __future__ import annotations

import ast
import logging
from typing import Dict, Optional

from typeindex import ClassDecl, Module, Program, VariableDecl

from .base import BaseScanner, callee_name

logger = logging.getLogger("routescan.scanners.error_formatter_scanner")


class ErrorFormatterScanner(BaseScanner):

    def __init__(self, program: Program, vocabulary=None):
        super().__init__(program, vocabulary)
        self.formatter: Optional[ClassDecl] = None
        self.status_code_map: Dict[int, int] = {}
        self._scanned = False

    def scan(self) -> Optional[ClassDecl]:
        if self._scanned:
            return self.formatter
        self._scanned = True

        for module in self.program.iter_modules():
            calls = [n for n in ast.walk(module.tree)
                     if isinstance(n, ast.Call) and callee_name(n) == self.vocabulary.error_formatter_register]
            for call in sorted(calls, key=lambda c: (c.lineno, c.col_offset)):
                if not call.args:
                    continue
                decl = self._formatter_class(module, call.args[0])
                if decl is None or not self._has_error_field(decl):
                    continue
                self.formatter = decl
                self.status_code_map = self._status_code_map(decl)
                logger.info(f"Using error formatter {decl.qualname}")
                return self.formatter
        return None

    def _formatter_class(self, module: Module, arg: ast.AST) -> Optional[ClassDecl]:
        if isinstance(arg, ast.Call):
            arg = arg.func
        resolved = self.program.resolve_expr(module, arg)
        if isinstance(resolved, VariableDecl) and isinstance(resolved.value, ast.Call):
            resolved = self.program.resolve_expr(resolved.module, resolved.value.func)
        return resolved if isinstance(resolved, ClassDecl) else None

    def _has_error_field(self, decl: ClassDecl) -> bool:
        return any(f.has_tag("error") for f in decl.all_fields(self.program))

    def _status_code_map(self, decl: ClassDecl) -> Dict[int, int]:
        method = decl.find_method(self.program, self.vocabulary.status_code_map_method)
        if method is None:
            return {}
        for expr in method.return_values():
            value = self.fold(method.module, expr)
            if isinstance(value, dict) and all(isinstance(k, int) and isinstance(v, int) for k, v in value.items()):
                return dict(value)
        logger.debug(f"Status code map of {decl.qualname} is not a literal")
        return {}
