#!/usr/bin/env python3
"""
Deterministic Analyzers Module
================================
Table- and pattern-driven helpers shared by the scanners:

- Docstring → summary, description and generator directives
- Primitive type → OpenAPI (type, format)
- Status code rules and standard descriptions
- Response-builder call rules
"""

from .docstring_parser import DocstringParser
from .response_builder_analyzer import ResponseBuilderAnalyzer
from .status_code_analyzer import StatusCodeAnalyzer
from .type_hint_analyzer import TypeHintAnalyzer

__all__ = [
    'DocstringParser',
    'ResponseBuilderAnalyzer',
    'StatusCodeAnalyzer',
    'TypeHintAnalyzer',
]
