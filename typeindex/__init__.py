"""
Type Index
==========
Static view of a Python source tree: modules, declarations, comments,
name resolution, annotation types and constant folding.
"""

from .decls import (
    NESTED_SCOPES,
    NO_DEFAULT,
    AliasDecl,
    ClassDecl,
    Declaration,
    ExternalDecl,
    Field,
    FunctionDecl,
    MemberDecl,
    NewTypeDecl,
    VariableDecl,
)
from .evaluate import UNRESOLVED, constant_value
from .program import DEFAULT_IGNORE_DIRS, Module, ModuleRef, Program, load_program
from .types import (
    Array,
    Basic,
    Interface,
    Map,
    Named,
    Pointer,
    Slice,
    Struct,
    TypeNode,
    resolve_annotation,
    type_of_declaration,
    underlying,
)

__all__ = [
    "NESTED_SCOPES",
    "NO_DEFAULT",
    "UNRESOLVED",
    "DEFAULT_IGNORE_DIRS",
    "AliasDecl",
    "Array",
    "Basic",
    "ClassDecl",
    "Declaration",
    "ExternalDecl",
    "Field",
    "FunctionDecl",
    "Interface",
    "Map",
    "MemberDecl",
    "Module",
    "ModuleRef",
    "Named",
    "NewTypeDecl",
    "Pointer",
    "Program",
    "Slice",
    "Struct",
    "TypeNode",
    "VariableDecl",
    "constant_value",
    "load_program",
    "resolve_annotation",
    "type_of_declaration",
    "underlying",
]
