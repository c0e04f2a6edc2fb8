"""
Error reachability analysis.

Collects the application errors a function can produce: status-error constants
it references, literal ``wrap(...)`` calls, ``@err[...]`` doc lines and,
transitively, everything the in-tree functions it calls can produce.
"""

from __future__ import annotations

import ast
import logging
from typing import Dict, List, Optional, Tuple

from typeindex import ClassDecl, FunctionDecl, MemberDecl, Program

from .base import BaseScanner, StatusErr, callee_name, dedupe_status_errors
from .deterministic import DocstringParser

logger = logging.getLogger("routescan.scanners.status_err_scanner")


class StatusErrScanner(BaseScanner):
    """
    Finds status-error declarations and the errors each function reaches.
    """

    def __init__(self, program: Program, vocabulary=None, default_locale: str = "zh"):
        super().__init__(program, vocabulary)
        self.default_locale = default_locale
        # member qualname -> declared error
        self.status_errors: Dict[str, StatusErr] = {}
        # function qualname -> reachable errors
        self.errors_used: Dict[str, List[StatusErr]] = {}
        # function qualname -> (own errors, in-tree callees)
        self._direct: Dict[str, Tuple[List[StatusErr], List[FunctionDecl]]] = {}
        self._scan_status_error_types()

    def _scan_status_error_types(self):
        bases = set(self.vocabulary.status_error_bases)
        for decl in self.program.iter_decls(ClassDecl):
            if not decl.has_ancestor_named(self.program, bases):
                continue
            for name, member in decl.members.items():
                if name.startswith("_"):
                    continue
                code = self.fold(decl.module, member.value)
                if not isinstance(code, int) or isinstance(code, bool):
                    continue
                messages = DocstringParser.error_messages(member.doc, self.default_locale)
                self.status_errors[member.qualname] = StatusErr(name, code, messages)
            logger.debug(f"Status error type {decl.qualname}")
        self.bump("status_errors", len(self.status_errors))

    def status_error_of(self, member: MemberDecl) -> Optional[StatusErr]:
        return self.status_errors.get(member.qualname)

    def status_errors_in_func(self, func: FunctionDecl) -> List[StatusErr]:
        """
        Errors ``func`` can produce, unique by (key, code) and ordered by code.

        Functions calling each other in a cycle share one result, so the answer
        does not depend on which of them was asked first.
        """
        key = func.qualname
        if key not in self.errors_used:
            self._visit(func, {}, {}, [])
        return self.errors_used[key]

    def _visit(self, func: FunctionDecl, index: Dict[str, int], low: Dict[str, int],
               stack: List[FunctionDecl]):
        # Tarjan's strongly connected components over the in-tree call graph
        key = func.qualname
        index[key] = low[key] = len(index)
        stack.append(func)

        for callee in self._direct_errors(func)[1]:
            callee_key = callee.qualname
            if callee_key in self.errors_used:
                continue
            if callee_key not in index:
                self._visit(callee, index, low, stack)
                low[key] = min(low[key], low[callee_key])
            elif any(f.qualname == callee_key for f in stack):
                low[key] = min(low[key], index[callee_key])

        if low[key] != index[key]:
            return

        component: List[FunctionDecl] = []
        while True:
            member = stack.pop()
            component.append(member)
            if member.qualname == key:
                break
        names = {member.qualname for member in component}

        found: List[StatusErr] = []
        for member in component:
            direct, callees = self._direct_errors(member)
            found.extend(direct)
            for callee in callees:
                if callee.qualname not in names:
                    found.extend(self.errors_used[callee.qualname])

        result = dedupe_status_errors(found)
        for member in component:
            self.errors_used[member.qualname] = result
        if len(component) > 1:
            logger.debug(f"Call cycle {sorted(names)} reaches {len(result)} errors")

    def _direct_errors(self, func: FunctionDecl) -> Tuple[List[StatusErr], List[FunctionDecl]]:
        """Errors raised in ``func`` itself and the in-tree functions it calls."""
        key = func.qualname
        if key in self._direct:
            return self._direct[key]

        found: List[StatusErr] = []
        callees: Dict[str, FunctionDecl] = {}
        local_names = func.local_names()

        for node in func.iter_body_nodes():
            if isinstance(node, ast.Attribute):
                resolved = self.resolve_in(func, func.module, node, local_names)
                if isinstance(resolved, MemberDecl) and resolved.qualname in self.status_errors:
                    found.append(self.status_errors[resolved.qualname])

            elif isinstance(node, ast.Call):
                wrapped = self._wrapped_error(func, node, local_names)
                if wrapped is not None:
                    found.append(wrapped)
                    continue
                callee = self.resolve_in(func, func.module, node.func, local_names)
                if isinstance(callee, FunctionDecl) and callee.qualname != key:
                    callees.setdefault(callee.qualname, callee)

        for item in DocstringParser.status_error_summaries(func.doc, self.default_locale):
            found.append(StatusErr(item["key"], item["code"], item["messages"]))

        self._direct[key] = (found, list(callees.values()))
        return self._direct[key]

    def _wrapped_error(self, func: FunctionDecl, call: ast.Call, local_names) -> Optional[StatusErr]:
        """Literal ``wrap(err, code, key, msg, *desc)`` call."""
        if callee_name(call) != self.vocabulary.wrap_function or len(call.args) < 3:
            return None

        code = self.fold(func.module, call.args[1], local_names)
        error_key = self.fold(func.module, call.args[2], local_names)
        if not isinstance(code, int) or isinstance(code, bool) or code <= 0:
            return None
        if not isinstance(error_key, str) or not error_key:
            return None
        if len(str(code)) == 3:
            code = code * 10 ** 6

        message = ""
        if len(call.args) > 3:
            value = self.fold(func.module, call.args[3], local_names)
            if isinstance(value, str):
                message = value
        descriptions = []
        for arg in call.args[4:]:
            value = self.fold(func.module, arg, local_names)
            if isinstance(value, str):
                descriptions.append(value)

        text = message or error_key
        if descriptions:
            text = "\n".join([text] + descriptions)
        return StatusErr(error_key, code, {self.default_locale: text})
