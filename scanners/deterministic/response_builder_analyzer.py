#!/usr/bin/env python3
"""
Response Builder Analyzer
==========================
Recognizes the response-builder calls an ``output()`` method returns:

- with_schema(T)            → response type override
- with_status_code(201)     → success status
- with_content_type("...")  → content type
- new_attachment(name, ct)  → attachment, content type from the 2nd argument

The rule table is closed: calls outside it are ignored.
"""

import ast
import logging
from typing import Any, Callable, Dict, Optional

from typeindex import UNRESOLVED

logger = logging.getLogger("routescan.deterministic.response_builder_analyzer")

OCTET_STREAM = "application/octet-stream"


class ResponseBuilderAnalyzer:
    """
    Apply the response-builder rules to a returned expression.
    """

    RULES = ("with_schema", "with_status_code", "with_content_type", "new_attachment")

    @staticmethod
    def callee_name(call: ast.Call) -> str:
        func = call.func
        if isinstance(func, ast.Name):
            return func.id
        if isinstance(func, ast.Attribute):
            return func.attr
        return ""

    @staticmethod
    def analyze(expr: ast.AST, evaluate: Callable[[ast.AST], Any],
                names: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """
        Collect builder facts from ``expr``.

        Args:
            expr: Returned expression (or the value bound to a returned name)
            evaluate: Constant folder for call arguments
            names: Rule → callee name overrides from the framework vocabulary

        Returns:
            Dictionary with schema_expr, status_code, content_type and attachment
        """
        names = names or {}
        lookup = {names.get(rule, rule): rule for rule in ResponseBuilderAnalyzer.RULES}
        facts: Dict[str, Any] = {
            "schema_expr": None,
            "status_code": None,
            "content_type": None,
            "attachment": False,
        }

        for node in ast.walk(expr):
            if not isinstance(node, ast.Call):
                continue
            rule = lookup.get(ResponseBuilderAnalyzer.callee_name(node))
            if rule is None:
                continue

            if rule == "with_schema" and node.args and facts["schema_expr"] is None:
                facts["schema_expr"] = node.args[0]

            elif rule == "with_status_code" and node.args and facts["status_code"] is None:
                value = evaluate(node.args[0])
                if isinstance(value, int) and not isinstance(value, bool):
                    facts["status_code"] = value
                else:
                    logger.debug("Status code argument is not a constant")

            elif rule == "with_content_type" and node.args and facts["content_type"] is None:
                value = evaluate(node.args[0])
                if isinstance(value, str):
                    facts["content_type"] = value

            elif rule == "new_attachment":
                facts["attachment"] = True
                if facts["content_type"] is None:
                    value = evaluate(node.args[1]) if len(node.args) > 1 else UNRESOLVED
                    facts["content_type"] = value if isinstance(value, str) and value else OCTET_STREAM

        return facts
