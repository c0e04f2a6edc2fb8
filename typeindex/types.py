"""
Type nodes and annotation resolution.

Annotations are turned into a small closed set of shapes so that schema
compilation never has to look at raw AST again.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING, List, Optional

from .decls import AliasDecl, ClassDecl, Declaration, ExternalDecl, Field, NewTypeDecl, VariableDecl

if TYPE_CHECKING:
    from .program import Module, Program

logger = logging.getLogger("routescan.typeindex.types")

# =============================================================================
# TYPE NODES
# =============================================================================


class TypeNode:
    kind = "type"

    def key(self) -> str:
        return str(self)

    def __eq__(self, other) -> bool:
        return isinstance(other, TypeNode) and self.key() == other.key()

    def __hash__(self) -> int:
        return hash(self.key())


class Basic(TypeNode):
    kind = "basic"

    def __init__(self, name: str):
        self.name = name

    def __str__(self) -> str:
        return self.name


class Named(TypeNode):
    kind = "named"

    def __init__(self, decl: Declaration):
        self.decl = decl

    def __str__(self) -> str:
        return self.decl.qualname


class Pointer(TypeNode):
    """Optional value; nesting counts optional levels."""
    kind = "pointer"

    def __init__(self, elem: TypeNode):
        self.elem = elem

    def __str__(self) -> str:
        return f"*{self.elem}"


class Map(TypeNode):
    kind = "map"

    def __init__(self, key: TypeNode, elem: TypeNode):
        self.key_type = key
        self.elem = elem

    def __str__(self) -> str:
        return f"map[{self.key_type}]{self.elem}"


class Slice(TypeNode):
    kind = "slice"

    def __init__(self, elem: TypeNode):
        self.elem = elem

    def __str__(self) -> str:
        return f"[]{self.elem}"


class Array(TypeNode):
    kind = "array"

    def __init__(self, elem: TypeNode, length: int):
        self.elem = elem
        self.length = length

    def __str__(self) -> str:
        return f"[{self.length}]{self.elem}"


class Interface(TypeNode):
    """Any value."""
    kind = "interface"

    def __str__(self) -> str:
        return "interface{}"


class Struct(TypeNode):
    kind = "struct"

    def __init__(self, owner: ClassDecl, fields: List[Field], embedded: List[Declaration]):
        self.owner = owner
        self.fields = fields
        self.embedded = embedded

    def __str__(self) -> str:
        return f"struct {self.owner.qualname}"


# =============================================================================
# ANNOTATION RESOLUTION
# =============================================================================

OPTIONAL_NAMES = {"typing.Optional", "typing_extensions.Optional"}
UNION_NAMES = {"typing.Union", "typing_extensions.Union"}
SEQUENCE_NAMES = {
    "list", "set", "frozenset",
    "typing.List", "typing.Set", "typing.FrozenSet", "typing.Sequence",
    "typing.MutableSequence", "typing.Iterable", "typing.Collection",
    "typing.AbstractSet", "typing.Deque", "collections.deque",
    "collections.abc.Sequence", "collections.abc.Iterable",
    "collections.abc.Collection", "collections.abc.Set",
}
MAPPING_NAMES = {
    "dict", "typing.Dict", "typing.Mapping", "typing.MutableMapping",
    "typing.DefaultDict", "typing.OrderedDict", "collections.OrderedDict",
    "collections.defaultdict", "collections.abc.Mapping",
    "collections.abc.MutableMapping",
}
TUPLE_NAMES = {"tuple", "typing.Tuple"}
PASSTHROUGH_NAMES = {
    "typing.Annotated", "typing_extensions.Annotated",
    "typing.Final", "typing_extensions.Final",
    "typing.Required", "typing.NotRequired",
    "typing_extensions.Required", "typing_extensions.NotRequired",
}
ANY_NAMES = {"typing.Any", "object", "typing_extensions.Any"}


def resolve_annotation(program: "Program", module: "Module", expr: Optional[ast.AST]) -> TypeNode:
    """
    Convert an annotation expression into a TypeNode.

    Args:
        program: Program the annotation belongs to
        module: Module scope used for name resolution
        expr: Annotation AST; ``None`` means no annotation

    Returns:
        TypeNode; unknown names become Basic nodes carrying the qualified name
    """
    if expr is None:
        return Interface()

    if isinstance(expr, ast.Constant):
        if expr.value is None:
            return Basic("None")
        if isinstance(expr.value, str):
            try:
                parsed = ast.parse(expr.value, mode="eval").body
            except SyntaxError:
                logger.debug(f"Unparseable forward reference {expr.value!r} in {module.name}")
                return Interface()
            return resolve_annotation(program, module, parsed)
        return Interface()

    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        members = _flatten_pep604(expr)
        return _union(program, module, members)

    if isinstance(expr, ast.Subscript):
        return _resolve_subscript(program, module, expr)

    if isinstance(expr, (ast.Name, ast.Attribute)):
        decl = program.resolve_expr(module, expr)
        return type_of_declaration(program, decl, _dotted(expr))

    return Interface()


def type_of_declaration(program: "Program", decl, fallback_name: str = "") -> TypeNode:
    """TypeNode for a name that resolved to ``decl``."""
    if decl is None:
        return Basic(fallback_name)
    if isinstance(decl, (ClassDecl, NewTypeDecl)):
        if isinstance(decl, ClassDecl) and _is_protocol(program, decl):
            return Interface()
        return Named(decl)
    if isinstance(decl, AliasDecl):
        return resolve_annotation(program, decl.module, decl.target)
    if isinstance(decl, VariableDecl):
        # bare assignment alias: ``UserID = int`` or ``T = TypeVar("T")``
        value = decl.value
        if isinstance(value, ast.Call) and _call_name(value) == "TypeVar":
            return Interface()
        if isinstance(value, (ast.Name, ast.Attribute, ast.Subscript)):
            return resolve_annotation(program, decl.module, value)
        return Interface()
    if isinstance(decl, ExternalDecl):
        name = decl.qualname
        if name in ANY_NAMES:
            return Interface()
        if name in SEQUENCE_NAMES or name in TUPLE_NAMES:
            return Slice(Interface())
        if name in MAPPING_NAMES:
            return Map(Basic("str"), Interface())
        return Basic(name)
    return Basic(fallback_name or decl.qualname)


def underlying(program: "Program", named: Named) -> TypeNode:
    """The structural type behind a Named node."""
    decl = named.decl
    if isinstance(decl, NewTypeDecl):
        return resolve_annotation(program, decl.module, decl.base)
    if isinstance(decl, ClassDecl):
        if decl.is_enum(program):
            return Basic(enum_value_type(program, decl))
        return Struct(decl, decl.own_fields(program), decl.bases(program))
    return Basic(decl.qualname)


def enum_value_type(program: "Program", decl: ClassDecl) -> str:
    """Builtin name of the values an enum class holds."""
    from .evaluate import constant_value

    names = {a.qualname for a in decl.ancestors(program)}
    if names & {"int", "enum.IntEnum", "enum.IntFlag"}:
        return "int"
    if names & {"str", "enum.StrEnum"}:
        return "str"
    if "float" in names:
        return "float"
    kinds = set()
    for member in decl.members.values():
        value = constant_value(program, decl.module, member.value)
        if isinstance(value, bool):
            kinds.add("bool")
        elif isinstance(value, int):
            kinds.add("int")
        elif isinstance(value, float):
            kinds.add("float")
        elif isinstance(value, str):
            kinds.add("str")
    if kinds == {"int"}:
        return "int"
    if kinds <= {"int", "float"} and kinds:
        return "float"
    return "str"


def _resolve_subscript(program, module, expr: ast.Subscript) -> TypeNode:
    origin = program.resolve_expr(module, expr.value)
    origin_name = origin.qualname if isinstance(origin, ExternalDecl) else ""
    args = _subscript_args(expr)

    if origin_name in OPTIONAL_NAMES and args:
        return Pointer(resolve_annotation(program, module, args[0]))
    if origin_name in UNION_NAMES:
        return _union(program, module, args)
    if origin_name in PASSTHROUGH_NAMES and args:
        return resolve_annotation(program, module, args[0])
    if origin_name == "typing.ClassVar" and args:
        return resolve_annotation(program, module, args[0])
    if origin_name in SEQUENCE_NAMES:
        return Slice(resolve_annotation(program, module, args[0]) if args else Interface())
    if origin_name in MAPPING_NAMES:
        if len(args) != 2:
            return Map(Basic("str"), Interface())
        return Map(resolve_annotation(program, module, args[0]),
                   resolve_annotation(program, module, args[1]))
    if origin_name in TUPLE_NAMES:
        if len(args) == 2 and isinstance(args[1], ast.Constant) and args[1].value is Ellipsis:
            return Slice(resolve_annotation(program, module, args[0]))
        elems = [resolve_annotation(program, module, a) for a in args]
        if not elems:
            return Slice(Interface())
        first = elems[0]
        if all(e == first for e in elems):
            return Array(first, len(elems))
        return Array(Interface(), len(elems))
    if origin_name in {"typing.Literal", "typing_extensions.Literal"}:
        return _literal_type(args)

    # user generics: Page[User] -> Page
    return type_of_declaration(program, origin, _dotted(expr.value))


def _union(program, module, members: List[ast.AST]) -> TypeNode:
    non_null = [m for m in members if not (isinstance(m, ast.Constant) and m.value is None)
                and not (isinstance(m, ast.Name) and m.id == "None")]
    if len(non_null) == 1:
        inner = resolve_annotation(program, module, non_null[0])
        if len(non_null) < len(members):
            return Pointer(inner)
        return inner
    return Interface()


def _literal_type(args: List[ast.AST]) -> TypeNode:
    """``Literal[...]`` by the kind of its values; a None member makes it optional."""
    values = [a for a in args if not (isinstance(a, ast.Constant) and a.value is None)]
    if not values:
        return Basic("None")
    kinds = {type(a.value).__name__ for a in values if isinstance(a, ast.Constant)}
    if len(kinds) != 1:
        return Interface()
    inner = Basic(kinds.pop())
    if len(values) < len(args):
        return Pointer(inner)
    return inner


def _flatten_pep604(expr: ast.AST) -> List[ast.AST]:
    if isinstance(expr, ast.BinOp) and isinstance(expr.op, ast.BitOr):
        return _flatten_pep604(expr.left) + _flatten_pep604(expr.right)
    return [expr]


def _subscript_args(expr: ast.Subscript) -> List[ast.AST]:
    slice_node = expr.slice
    if isinstance(slice_node, ast.Tuple):
        return list(slice_node.elts)
    return [slice_node]


def _is_protocol(program, decl: ClassDecl) -> bool:
    names = {a.qualname for a in decl.ancestors(program)}
    return bool(names & {"typing.Protocol", "typing_extensions.Protocol"})


def _call_name(call: ast.Call) -> str:
    func = call.func
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return ""


def _dotted(expr: ast.AST) -> str:
    if isinstance(expr, ast.Name):
        return expr.id
    if isinstance(expr, ast.Attribute):
        return f"{_dotted(expr.value)}.{expr.attr}"
    return ""

