"""
Scanner package for the OpenAPI generator.

Exports the scanners that turn an indexed program into an OpenAPI document,
plus the shared data models.
"""

from .base import (
    ParameterLocation,
    SecurityType,
    StatusErr,
    BaseScanner,
)
from .config import GeneratorConfig, Vocabulary
from .errors import (
    RouteScanError,
    FatalConfigError,
    UnsupportedTypeError,
    UnsupportedMapKeyError,
    DuplicateOperationIDError,
    OperatorError,
    MissingLocationTagError,
)
from .oas import Document, Definition, SchemaNode

from .definition_scanner import DefinitionScanner
from .enum_scanner import EnumScanner
from .status_err_scanner import StatusErrScanner
from .error_formatter_scanner import ErrorFormatterScanner
from .operator_scanner import Operator, OperatorScanner
from .router_scanner import Route, Router, RouterScanner
from .openapi_generator import OpenAPIGenerator, generate

__all__ = [
    # Data models
    "ParameterLocation",
    "SecurityType",
    "StatusErr",
    "BaseScanner",
    "Document",
    "Definition",
    "SchemaNode",
    # Configuration
    "GeneratorConfig",
    "Vocabulary",
    # Errors
    "RouteScanError",
    "FatalConfigError",
    "UnsupportedTypeError",
    "UnsupportedMapKeyError",
    "DuplicateOperationIDError",
    "OperatorError",
    "MissingLocationTagError",
    # Scanners
    "DefinitionScanner",
    "EnumScanner",
    "StatusErrScanner",
    "ErrorFormatterScanner",
    "Operator",
    "OperatorScanner",
    "Route",
    "Router",
    "RouterScanner",
    "OpenAPIGenerator",
    "generate",
]
