"""
Shared data models and BaseScanner for the OpenAPI generator.

All scanners import from this module.
"""

from __future__ import annotations

import ast
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from typeindex import UNRESOLVED, FunctionDecl, Module, Program, constant_value

from .config import Vocabulary


# =============================================================================
# ENUMS
# =============================================================================

class ParameterLocation(Enum):
    QUERY = "query"
    PATH = "path"
    COOKIE = "cookie"
    HEADER = "header"
    BODY = "body"
    FORM = "form"
    URLENCODED = "urlencoded"
    MULTIPART = "multipart"

    @property
    def is_form(self) -> bool:
        return self in (ParameterLocation.FORM, ParameterLocation.URLENCODED, ParameterLocation.MULTIPART)


class SecurityType(Enum):
    API_KEY = "apiKey"
    BASIC_AUTH = "basicAuth"
    BEARER_JWT = "bearerJWT"


# =============================================================================
# VENDOR EXTENSIONS
# =============================================================================

X_STRUCT_NAME = "x-py-struct-name"
X_VENDOR_TYPE = "x-py-vendor-type"
X_STAR_LEVEL = "x-py-star-level"
X_FIELD_NAME = "x-py-field-name"
X_TAG_VALIDATE = "x-tag-validate"
X_ENUM_LABELS = "x-enum-labels"
X_STATUS_ERRORS = "x-status-errors"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "multipart/form-data"
CONTENT_TYPE_URLENCODED = "application/x-www-form-urlencoded"


# =============================================================================
# DATA MODELS
# =============================================================================

@dataclass
class StatusErr:
    """A declared or literal application error."""
    key: str
    code: int
    messages: Dict[str, str] = field(default_factory=dict)

    def status_code(self) -> int:
        """HTTP status: the leading three digits of the code."""
        digits = str(abs(self.code))
        if len(digits) < 3:
            return self.code
        return int(digits[:3])

    def summary(self) -> str:
        return f"[{self.key}][{self.code}]"

    def identity(self) -> Tuple[str, int]:
        return (self.key, self.code)


def dedupe_status_errors(errors: List[StatusErr]) -> List[StatusErr]:
    """Unique by (key, code), ordered by code then key."""
    unique: Dict[Tuple[str, int], StatusErr] = {}
    for err in errors:
        existing = unique.get(err.identity())
        if existing is None:
            unique[err.identity()] = StatusErr(err.key, err.code, dict(err.messages))
        else:
            for lang, message in err.messages.items():
                existing.messages.setdefault(lang, message)
    return sorted(unique.values(), key=lambda e: (e.code, e.key))


def tag_value_and_flags(tag: str) -> Tuple[str, Dict[str, bool]]:
    """Split ``"name,omitempty"`` into the value and its flags."""
    parts = [p.strip() for p in (tag or "").split(",")]
    flags = {p: True for p in parts[1:] if p}
    return parts[0], flags


_CAMEL_SPLIT = re.compile(r"[^0-9A-Za-z]+")


def upper_camel(value: str) -> str:
    """``"app.user_apis"`` -> ``"AppUserApis"``."""
    return "".join(w[:1].upper() + w[1:] for w in _CAMEL_SPLIT.split(value) if w)


class BaseScanner:
    """
    Base for every scanner: holds the program and the framework vocabulary.
    """

    def __init__(self, program: Program, vocabulary: Optional[Vocabulary] = None):
        self.program = program
        self.vocabulary = vocabulary or Vocabulary()
        self.stats: Dict[str, int] = {}

    def bump(self, key: str, amount: int = 1):
        self.stats[key] = self.stats.get(key, 0) + amount

    def resolve_in(self, func: Optional[FunctionDecl], module: Module, expr: ast.AST,
                   local_names: Optional[Set[str]] = None):
        """
        Resolve a Name/Attribute chain as seen from inside ``func``.

        ``self``/``cls`` resolve to the owning class; any other local name is
        opaque. Without ``func`` the module scope is used.
        """
        root = expr
        while isinstance(root, ast.Attribute):
            root = root.value
        if not isinstance(root, ast.Name):
            return None

        if func is not None:
            if local_names is None:
                local_names = func.local_names()
            if root.id in local_names:
                receiver = self_name(func)
                if receiver is None or root.id != receiver:
                    return None
                resolved = func.owner
                attrs = []
                node = expr
                while isinstance(node, ast.Attribute):
                    attrs.append(node.attr)
                    node = node.value
                for attr in reversed(attrs):
                    resolved = self.program.member(resolved, attr)
                return resolved
        return self.program.resolve_expr(module, expr)

    def fold(self, module: Module, expr: Optional[ast.AST], local_names: Optional[Set[str]] = None) -> Any:
        """Constant value of ``expr``; expressions touching locals are unresolved."""
        if expr is None:
            return UNRESOLVED
        if local_names:
            for node in ast.walk(expr):
                if isinstance(node, ast.Name) and node.id in local_names:
                    return UNRESOLVED
        return constant_value(self.program, module, expr)


def self_name(func: FunctionDecl) -> Optional[str]:
    """Name bound to the instance or class inside a method."""
    if func.owner is None or not func.node.args.args:
        return None
    for decorator in func.node.decorator_list:
        if isinstance(decorator, ast.Name) and decorator.id == "staticmethod":
            return None
    return func.node.args.args[0].arg


def callee_name(call: ast.Call) -> str:
    func = call.func
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return ""
