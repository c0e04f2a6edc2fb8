"""
OpenAPI document assembly.

Finds the root router handed to the serve call of the entry point, folds every
leaf route into an operation and writes the document as JSON or YAML.
"""

from __future__ import annotations

import ast
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from typeindex import FunctionDecl, Module, Program, VariableDecl, load_program

from .base import BaseScanner, callee_name
from .config import GeneratorConfig
from .definition_scanner import DefinitionScanner
from .error_formatter_scanner import ErrorFormatterScanner
from .errors import DuplicateOperationIDError
from .oas import Document, Operation
from .operator_scanner import Operator, OperatorScanner
from .router_scanner import Route, Router, RouterScanner
from .status_err_scanner import StatusErrScanner

logger = logging.getLogger("routescan.scanners.openapi_generator")

HTTP_ROUTER_PATH = re.compile(r"/:([^/]+)")


class OpenAPIGenerator(BaseScanner):
    """
    Single-use document generator for one program.
    """

    def __init__(self, program: Program, config: Optional[GeneratorConfig] = None):
        self.config = config or GeneratorConfig()
        super().__init__(program, self.config.vocabulary)

        self.document = Document(self.config.title, self.config.version)
        for url in self.config.servers:
            self.add_server(url)

        self.definition_scanner = DefinitionScanner(program, self.vocabulary)
        self.status_err_scanner = StatusErrScanner(program, self.vocabulary, self.config.default_locale)
        self.error_formatter_scanner = ErrorFormatterScanner(program, self.vocabulary)
        self.operator_scanner = OperatorScanner(
            program,
            self.vocabulary,
            self.config.default_locale,
            definition_scanner=self.definition_scanner,
            status_err_scanner=self.status_err_scanner,
            error_formatter_scanner=self.error_formatter_scanner,
        )
        self.router_scanner = RouterScanner(program, self.operator_scanner, self.vocabulary)
        self._scanned = False

    def add_server(self, url: str):
        self.document.add_server(url)

    @property
    def skipped(self) -> Dict[str, str]:
        return self.operator_scanner.skipped

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def scan(self) -> Document:
        if self._scanned:
            return self.document
        self._scanned = True

        root = self.root_router()
        if root is None:
            logger.warning("No root router found; the document will have no paths")
        else:
            self._add_routes(root)

        self.definition_scanner.bind_schemas(self.document)
        self.operator_scanner.bind_security_schemes(self.document)

        operations = sum(len(m) for m in self.document.paths.values())
        logger.info(f"Generated {operations} operations, {len(self.document.schemas)} schemas, "
                    f"{len(self.skipped)} skipped operators")
        return self.document

    def _add_routes(self, root: Router):
        operation_ids: Dict[str, Route] = {}
        self.error_formatter_scanner.scan()
        status_code_map = self.error_formatter_scanner.status_code_map

        for route in root.routes():
            method = route.method()
            operation = self.operation_by_operators(method, route.operators, status_code_map)
            if not operation.operation_id:
                continue
            if operation.operation_id in operation_ids:
                raise DuplicateOperationIDError(
                    f"operationId {operation.operation_id} should be unique, "
                    f"used by `{operation_ids[operation.operation_id]}` and `{route}`",
                    operation.operation_id,
                )
            operation_ids[operation.operation_id] = route
            self.document.add_operation(method.lower(), self.patch_path(route.path(), operation), operation)

    @staticmethod
    def operation_by_operators(method: str, operators: List[Operator],
                               status_code_map: Optional[Dict[int, int]] = None) -> Operation:
        operation = Operation()
        length = len(operators)
        for idx, operator in enumerate(operators):
            if operator.is_group:
                continue
            operator.bind_operation(method, operation, idx == length - 1, status_code_map)
        return operation

    @staticmethod
    def patch_path(path: str, operation: Operation) -> str:
        """``/users/:id`` -> ``/users/{id}``; undeclared names become ``/0``."""
        def replace(match):
            name = match.group(1)
            if operation.has_path_parameter(name):
                return "/{" + name + "}"
            return "/0"

        return HTTP_ROUTER_PATH.sub(replace, path)

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def _entry_modules(self) -> List[Module]:
        if self.config.entry_module:
            module = self.program.modules.get(self.config.entry_module)
            if module is None:
                logger.warning(f"Entry module {self.config.entry_module} not found")
                return []
            return [module]
        return list(self.program.iter_modules())

    def root_router(self) -> Optional[Router]:
        for module in self._entry_modules():
            for scope, func in self._entry_scopes(module):
                for node in scope:
                    if isinstance(node, ast.Call):
                        router = self._served_router(module, func, node)
                        if router is not None:
                            logger.info(f"Root router {router.name} found in {module.name}")
                            return router
        return None

    def _entry_scopes(self, module: Module):
        entry = module.decls.get(self.vocabulary.entry_function)
        if isinstance(entry, FunctionDecl):
            yield entry.iter_body_nodes(), entry
        for stmt in module.tree.body:
            if isinstance(stmt, ast.If) and _is_main_guard(stmt):
                yield _iter_nodes(stmt.body), None

    def _served_router(self, module: Module, func: Optional[FunctionDecl], call: ast.Call) -> Optional[Router]:
        if callee_name(call) not in self.vocabulary.serve_functions:
            return None
        candidates = [k.value for k in call.keywords if k.arg == "router"]
        if call.args:
            candidates.append(call.args[-1])
        for expr in candidates:
            if func is not None and isinstance(expr, ast.Name) and expr.id in func.local_names():
                router = self.router_scanner.local_router(func, expr.id)
                if router is not None:
                    return router
                continue
            decl = self.resolve_in(func, module, expr)
            if isinstance(decl, VariableDecl):
                router = self.router_scanner.router(decl)
                if router is not None:
                    return router
        return None

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return self.document.to_dict()

    def dumps(self, fmt: str = "json") -> str:
        data = self.to_dict()
        if fmt in ("yaml", "yml"):
            return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
        return json.dumps(data, indent=2, ensure_ascii=False)

    def output(self, path: str, fmt: Optional[str] = None) -> Path:
        fmt = fmt or self.config.output_format
        target = Path(path)
        if target.is_dir():
            target = target / ("openapi.yaml" if fmt in ("yaml", "yml") else "openapi.json")
        target.write_text(self.dumps(fmt), encoding="utf-8")
        logger.info(f"Generated OpenAPI document into {target}")
        return target


def _is_main_guard(stmt: ast.If) -> bool:
    test = stmt.test
    return (
        isinstance(test, ast.Compare)
        and isinstance(test.left, ast.Name)
        and test.left.id == "__name__"
    )


def _iter_nodes(body):
    for stmt in body:
        yield from ast.walk(stmt)


def generate(root: str, config: Optional[GeneratorConfig] = None) -> Tuple[OpenAPIGenerator, Document]:
    """Load ``root`` and generate its document."""
    config = config or GeneratorConfig()
    program = load_program(root, config.ignore_dirs)
    generator = OpenAPIGenerator(program, config)
    return generator, generator.scan()
