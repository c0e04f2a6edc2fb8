"""
Operator compilation.

An operator is a class whose tagged fields describe the request and whose
``output()`` method describes the response. ``OperatorScanner.operator``
compiles one class into an ``Operator``; ``Operator.bind_operation`` folds it
into an OpenAPI operation while a route is walked root to leaf.
"""

from __future__ import annotations

import ast
import logging
from typing import Any, Dict, List, Optional

from typeindex import (
    ClassDecl,
    FunctionDecl,
    Interface,
    Named,
    Pointer,
    Program,
    Slice,
    TypeNode,
    resolve_annotation,
    type_of_declaration,
)

from .base import (
    CONTENT_TYPE_FORM,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_URLENCODED,
    X_STATUS_ERRORS,
    BaseScanner,
    ParameterLocation,
    SecurityType,
    StatusErr,
    tag_value_and_flags,
)
from .definition_scanner import DefinitionScanner
from .deterministic import DocstringParser, ResponseBuilderAnalyzer, StatusCodeAnalyzer
from .error_formatter_scanner import ErrorFormatterScanner
from .errors import FatalConfigError, MissingLocationTagError
from .oas import Operation, Parameter, RequestBody, Response, SchemaNode, SecurityScheme
from .status_err_scanner import StatusErrScanner

logger = logging.getLogger("routescan.scanners.operator_scanner")

GROUP_OPERATOR_ID = "Group"

SECURITY_SCHEMES = {
    SecurityType.API_KEY.value: lambda: SecurityScheme("apiKey", name="AccessToken", location="header"),
    SecurityType.BASIC_AUTH.value: lambda: SecurityScheme("http", scheme="basic"),
    SecurityType.BEARER_JWT.value: lambda: SecurityScheme("http", scheme="bearer", bearer_format="JWT"),
}

# Marks an operator whose compilation is underway
_IN_PROGRESS = object()


class Operator:
    """Compiled endpoint or middleware."""

    def __init__(self, id: str, decl: Optional[ClassDecl] = None):
        self.id = id
        self.decl = decl
        self.method = ""
        self.path = ""
        self.tag = ""
        self.summary = ""
        self.description = ""
        self.deprecated = False
        self.type = ""

        self.non_body_parameters: Dict[str, Parameter] = {}
        self.request_body: Optional[RequestBody] = None

        self.status_errors: List[StatusErr] = []
        self.status_error_schema: Optional[SchemaNode] = None

        self.success_type: Optional[TypeNode] = None
        self.success_status = 0
        self.success_content_type = ""
        self.success_schema: Optional[SchemaNode] = None

    def __repr__(self) -> str:
        return f"Operator({self.id})"

    @property
    def is_middleware(self) -> bool:
        return bool(self.type)

    @property
    def is_group(self) -> bool:
        return self.id == GROUP_OPERATOR_ID and self.decl is None

    def add_non_body_parameter(self, parameter: Parameter):
        self.non_body_parameters[parameter.name] = parameter

    def bind_operation(self, method: str, operation: Operation, last: bool,
                       status_code_map: Optional[Dict[int, int]] = None):
        """
        Fold this operator into ``operation``.

        Parameters never override ones already present; status errors are
        merged per HTTP status. Identity and the success response come from
        the last operator of the route only.
        """
        for parameter in self.non_body_parameters.values():
            operation.add_parameter(parameter)

        if self.request_body is not None:
            operation.request_body = self.request_body

        buckets: Dict[int, List[str]] = {}
        for err in self.status_errors:
            status = StatusCodeAnalyzer.error_status(err.status_code(), err.code, status_code_map)
            buckets.setdefault(status, []).append(err.summary())

        for status in sorted(buckets):
            summaries = list(buckets[status])
            existing = operation.response(status)
            if existing is not None:
                summaries.extend(existing.extensions.get(X_STATUS_ERRORS, []))
            summaries = sorted(set(summaries))

            response = Response(">\n" + "".join(f"* `{s}`\n" for s in summaries))
            response.extensions[X_STATUS_ERRORS] = summaries
            if self.status_error_schema is not None:
                response.add_content(CONTENT_TYPE_JSON, self.status_error_schema)
            operation.set_response(status, response)

        if not last:
            return

        operation.operation_id = self.id
        operation.deprecated = self.deprecated
        operation.summary = self.summary
        operation.description = self.description
        if self.tag:
            operation.tags = [self.tag]

        if self.success_type is None:
            operation.set_response(204, Response(StatusCodeAnalyzer.get_standard_description(204)))
            return

        status = self.success_status or StatusCodeAnalyzer.default_success_status(method)
        response = Response(StatusCodeAnalyzer.get_standard_description(status))
        if not StatusCodeAnalyzer.is_redirect(status) and self.success_schema is not None:
            response.add_content(self.success_content_type or CONTENT_TYPE_JSON, self.success_schema)
        operation.set_response(status, response)


class OperatorScanner(BaseScanner):
    """
    Compiles operator classes, memoized per class.
    """

    def __init__(self, program: Program, vocabulary=None, default_locale: str = "zh",
                 definition_scanner: Optional[DefinitionScanner] = None,
                 status_err_scanner: Optional[StatusErrScanner] = None,
                 error_formatter_scanner: Optional[ErrorFormatterScanner] = None):
        super().__init__(program, vocabulary)
        self.definition_scanner = definition_scanner or DefinitionScanner(program, self.vocabulary)
        self.status_err_scanner = status_err_scanner or StatusErrScanner(program, self.vocabulary, default_locale)
        self.error_formatter_scanner = error_formatter_scanner or ErrorFormatterScanner(program, self.vocabulary)
        self.operators: Dict[str, Any] = {}
        self.security_schemes: Dict[str, SecurityScheme] = {}
        # qualname -> reason for operators that could not be compiled
        self.skipped: Dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------------

    def group_operator(self, path: str) -> Operator:
        operator = Operator(GROUP_OPERATOR_ID)
        operator.path = path
        return operator

    def operator(self, decl: ClassDecl) -> Optional[Operator]:
        """
        Compiled operator for ``decl``, or None when it cannot be compiled.

        Fatal configuration errors propagate; any other failure is logged and
        the class is remembered as skipped.
        """
        key = decl.qualname
        cached = self.operators.get(key)
        if cached is _IN_PROGRESS:
            return None
        if key in self.operators:
            return cached

        logger.debug(f"Scanning operator {key}")
        self.operators[key] = _IN_PROGRESS
        try:
            operator = self._compile(decl)
        except FatalConfigError as e:
            if e.declaration is None:
                e.declaration = key
            del self.operators[key]
            raise
        except Exception as e:
            logger.error(f"Scan operator `{key}` failed: {e}", exc_info=True)
            self.operators[key] = None
            self.skipped[key] = str(e)
            return None

        self.operators[key] = operator
        self.bump("operators")
        return operator

    def _compile(self, decl: ClassDecl) -> Operator:
        operator = Operator(decl.name, decl)
        operator.tag = self.program.relative_module_name(decl.module_name)
        self.scan_route_meta(operator, decl)
        self.scan_parameter_or_request_body(operator, decl)
        self.scan_returns(operator, decl)
        return operator

    # -------------------------------------------------------------------------
    # Route meta
    # -------------------------------------------------------------------------

    def single_return_of(self, decl: ClassDecl, name: str) -> Optional[Any]:
        """Constant returned by a zero-argument method."""
        method = decl.find_method(self.program, name)
        if method is None or method.params:
            return None
        for expr in method.return_values():
            value = self.fold(method.module, expr)
            if isinstance(value, (str, int)) and not isinstance(value, bool):
                return value
        return None

    def _mixin_value(self, decl: ClassDecl, table: Dict[str, str]) -> str:
        for ancestor in decl.ancestors(self.program):
            if ancestor.name in table:
                return table[ancestor.name]
        return ""

    def method_of(self, decl: ClassDecl) -> str:
        method = self.single_return_of(decl, self.vocabulary.method_query)
        if isinstance(method, str) and method:
            return method.upper()
        return self._mixin_value(decl, self.vocabulary.method_mixins)

    def type_of(self, decl: ClassDecl) -> str:
        """Classification of a middleware; empty for plain operators."""
        typ = self.single_return_of(decl, self.vocabulary.type_query)
        if isinstance(typ, str) and typ:
            return typ
        return self._mixin_value(decl, self.vocabulary.type_mixins)

    def is_middleware(self, decl: ClassDecl) -> bool:
        return bool(self.type_of(decl))

    def scan_route_meta(self, operator: Operator, decl: ClassDecl):
        doc = DocstringParser.parse(decl.doc)
        operator.summary = doc["summary"]
        operator.description = doc["description"]
        operator.deprecated = doc["deprecated"]

        operator.method = self.method_of(decl)
        path = self.single_return_of(decl, self.vocabulary.path_query)
        if isinstance(path, str):
            operator.path = path

        operator.type = self.type_of(decl)
        factory = SECURITY_SCHEMES.get(operator.type)
        if factory is not None:
            self.security_schemes[operator.type] = factory()

    # -------------------------------------------------------------------------
    # Parameters & request body
    # -------------------------------------------------------------------------

    def scan_parameter_or_request_body(self, operator: Operator, decl: ClassDecl):
        form_fields = []
        scanner = self.definition_scanner

        for item in decl.all_fields(self.program):
            if not item.exported:
                continue

            location_value, _ = tag_value_and_flags(item.tag("in"))
            if not location_value:
                raise MissingLocationTagError(
                    f"missing tag `in` for {item.name} of {operator.id}", decl.qualname
                )
            try:
                location = ParameterLocation(location_value)
            except ValueError:
                raise MissingLocationTagError(
                    f"unknown location `{location_value}` for {item.name} of {operator.id}", decl.qualname
                )

            if location.is_form:
                form_fields.append((item, location))
                continue

            name, flags = tag_value_and_flags(item.tag("name"))
            display_name = name or item.name
            omitempty = bool(flags.get("omitempty"))

            type_node = resolve_annotation(self.program, item.owner.module, item.annotation)
            try:
                schema = scanner.prop_schema_by_field(item, type_node, display_name, flags)
            except FatalConfigError as e:
                if e.declaration is None:
                    e.declaration = f"{item.owner.qualname}.{item.name}"
                raise

            if location == ParameterLocation.BODY:
                operator.request_body = RequestBody(CONTENT_TYPE_JSON, schema)
                continue

            required = {
                ParameterLocation.QUERY: not omitempty,
                ParameterLocation.PATH: True,
                ParameterLocation.COOKIE: not omitempty,
                ParameterLocation.HEADER: False,
            }[location]
            operator.add_non_body_parameter(
                Parameter(display_name, location.value, schema, required, _schema_description(schema))
            )

        if form_fields:
            self.scan_form(operator, form_fields)

    def scan_form(self, operator: Operator, form_fields):
        struct_schema = SchemaNode.object()
        content_type = CONTENT_TYPE_FORM

        for item, location in form_fields:
            if location == ParameterLocation.URLENCODED:
                content_type = CONTENT_TYPE_URLENCODED

            name, flags = tag_value_and_flags(item.tag("json") or item.tag("name"))
            if name == "-":
                continue
            if not name:
                name = item.name

            type_node = resolve_annotation(self.program, item.owner.module, item.annotation)
            prop = self.definition_scanner.prop_schema_by_field(item, type_node, name, flags)
            struct_schema.set_property(name, prop, required=not flags.get("omitempty"))

        operator.request_body = RequestBody(content_type, struct_schema)

    # -------------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------------

    def scan_returns(self, operator: Operator, decl: ClassDecl):
        output = decl.find_method(self.program, self.vocabulary.output_method)
        if output is None:
            return

        self._scan_success(operator, output)

        operator.status_errors = self.status_err_scanner.status_errors_in_func(output)
        if operator.status_errors:
            operator.status_error_schema = self.status_error_schema()

    def status_error_schema(self) -> SchemaNode:
        formatter = self.error_formatter_scanner.scan()
        if formatter is not None:
            return self.definition_scanner.get_schema_by_type(Named(formatter))
        return SchemaNode.ref_to(self.definition_scanner.register_builtin(
            "statuserror.StatusErr", "StatusErr", "statuserror", default_status_err_schema()
        ))

    def _scan_success(self, operator: Operator, output: FunctionDecl):
        module = output.module
        local_names = output.local_names()
        names = {
            "with_schema": self.vocabulary.with_schema,
            "with_status_code": self.vocabulary.with_status_code,
            "with_content_type": self.vocabulary.with_content_type,
            "new_attachment": self.vocabulary.new_attachment,
        }

        facts: Dict[str, Any] = {"schema_expr": None, "status_code": None, "content_type": None, "attachment": False}
        returned_class: Optional[ClassDecl] = None
        has_value = False

        for expr in output.return_values():
            if isinstance(expr, ast.Constant) and expr.value is None:
                continue
            has_value = True
            for candidate in self._response_expressions(output, expr):
                found = ResponseBuilderAnalyzer.analyze(
                    candidate, lambda e: self.fold(module, e, local_names), names
                )
                for key, value in found.items():
                    if value and not facts[key]:
                        facts[key] = value
                if isinstance(candidate, ast.Call) and returned_class is None:
                    callee = self.resolve_in(output, module, candidate.func, local_names)
                    if isinstance(callee, ClassDecl):
                        returned_class = callee

        success_type = self._declared_success_type(output)
        if facts["schema_expr"] is not None:
            success_type = self._schema_expr_type(module, facts["schema_expr"])
        elif facts["attachment"]:
            success_type = None
            operator.success_schema = SchemaNode.binary()
            operator.success_type = Interface()
        elif success_type is None and returned_class is not None:
            success_type = Named(returned_class)
        elif success_type is None and has_value:
            success_type = Interface()

        if success_type is not None:
            if isinstance(success_type, Pointer):
                success_type = success_type.elem
            operator.success_type = success_type
            operator.success_schema = self.definition_scanner.get_schema_by_type(success_type)

        if operator.success_type is None:
            return

        content_type = facts["content_type"] or ""
        status = facts["status_code"] or 0

        if isinstance(success_type, Named) and isinstance(success_type.decl, ClassDecl):
            target = success_type.decl
            if target.find_method(self.program, self.vocabulary.content_type_query) is not None:
                value = self.single_return_of(target, self.vocabulary.content_type_query)
                content_type = value if isinstance(value, str) and value else "*"
            value = self.single_return_of(target, self.vocabulary.status_code_query)
            if isinstance(value, int):
                status = value

        if not status:
            status = DocstringParser.response_status(output.doc) or 0

        operator.success_content_type = content_type or CONTENT_TYPE_JSON
        operator.success_status = status

    def _declared_success_type(self, output: FunctionDecl) -> Optional[TypeNode]:
        if output.returns is None:
            return None
        type_node = resolve_annotation(self.program, output.module, output.returns)
        if getattr(type_node, "name", "") == "None":
            return None
        return type_node

    def _schema_expr_type(self, module, expr: ast.AST) -> TypeNode:
        if isinstance(expr, ast.Call):
            expr = expr.func
        if isinstance(expr, (ast.List, ast.Tuple)) and len(expr.elts) == 1:
            return Slice(self._schema_expr_type(module, expr.elts[0]))
        if isinstance(expr, (ast.Name, ast.Attribute)):
            decl = self.program.resolve_expr(module, expr)
            return type_of_declaration(self.program, decl, ast.unparse(expr))
        return resolve_annotation(self.program, module, expr)

    def _response_expressions(self, output: FunctionDecl, expr: ast.AST) -> List[ast.AST]:
        """``expr`` itself, or the values assigned to a returned local name."""
        if not isinstance(expr, ast.Name):
            return [expr]
        values = []
        for node in output.iter_body_nodes():
            if isinstance(node, ast.Assign) and any(
                isinstance(t, ast.Name) and t.id == expr.id for t in node.targets
            ):
                values.append(node.value)
            elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name) \
                    and node.target.id == expr.id and node.value is not None:
                values.append(node.value)
        return values or [expr]

    # -------------------------------------------------------------------------
    # Binding
    # -------------------------------------------------------------------------

    def bind_security_schemes(self, document):
        for name in sorted(self.security_schemes):
            document.add_security_scheme(name, self.security_schemes[name])


def default_status_err_schema() -> SchemaNode:
    schema = SchemaNode.object()
    schema.set_property("key", SchemaNode("string"), required=True)
    schema.set_property("code", SchemaNode("integer", "int64"), required=True)
    schema.set_property("msg", SchemaNode("string"), required=True)
    schema.set_property("desc", SchemaNode("string"))
    return schema


def _schema_description(schema: SchemaNode) -> str:
    if schema.all_of:
        return schema.all_of[-1].description
    return schema.description
