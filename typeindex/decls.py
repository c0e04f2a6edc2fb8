"""
Declarations found in analyzed modules.

Every declaration knows its module, its name and the AST node that introduced
it. ``ExternalDecl`` stands for anything imported from outside the tree.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set

if TYPE_CHECKING:
    from .program import Module, Program

# Marks an absent default value
NO_DEFAULT = object()

ENUM_BASES = {
    "enum.Enum", "enum.IntEnum", "enum.StrEnum", "enum.Flag", "enum.IntFlag",
}

# Bases that never contribute fields
OPAQUE_BASES = {
    "object", "typing.Generic", "typing.Protocol", "typing_extensions.Protocol",
    "abc.ABC", "typing.NamedTuple", "typing.TypedDict",
}

FIELD_FACTORIES = {"field", "Field"}

# Nodes that open a scope of their own
NESTED_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)


class Declaration:
    """Base declaration."""

    def __init__(self, module: Optional["Module"], name: str, node: Optional[ast.AST]):
        self.module = module
        self.name = name
        self.node = node

    @property
    def qualname(self) -> str:
        if self.module is None:
            return self.name
        return f"{self.module.name}.{self.name}"

    @property
    def module_name(self) -> str:
        return self.module.name if self.module is not None else ""

    @property
    def doc(self) -> str:
        if self.module is None or self.node is None:
            return ""
        return self.module.doc_comment(self.node)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.qualname})"


class ExternalDecl(Declaration):
    """A name imported from outside the analyzed tree, e.g. ``datetime.datetime``."""

    def __init__(self, qualname: str):
        module_path, _, name = qualname.rpartition(".")
        super().__init__(None, name, None)
        self.external_module = module_path
        self._qualname = qualname

    @property
    def qualname(self) -> str:
        return self._qualname

    @property
    def module_name(self) -> str:
        return self.external_module


class VariableDecl(Declaration):
    """Module-level assignment."""

    def __init__(self, module, name, node, value: Optional[ast.AST], annotation: Optional[ast.AST] = None):
        super().__init__(module, name, node)
        self.value = value
        self.annotation = annotation


class NewTypeDecl(Declaration):
    """``Name = NewType("Name", base)``."""

    def __init__(self, module, name, node, base: ast.AST):
        super().__init__(module, name, node)
        self.base = base


class AliasDecl(Declaration):
    """``Name: TypeAlias = target``."""

    def __init__(self, module, name, node, target: ast.AST):
        super().__init__(module, name, node)
        self.target = target


class MemberDecl(Declaration):
    """Class-level constant such as an enum member."""

    def __init__(self, module, name, node, owner: "ClassDecl", value: ast.AST):
        super().__init__(module, name, node)
        self.owner = owner
        self.value = value

    @property
    def qualname(self) -> str:
        return f"{self.owner.qualname}.{self.name}"


class FunctionDecl(Declaration):
    """Module function or method."""

    def __init__(self, module, name, node, owner: Optional["ClassDecl"] = None):
        super().__init__(module, name, node)
        self.owner = owner

    @property
    def qualname(self) -> str:
        if self.owner is not None:
            return f"{self.owner.qualname}.{self.name}"
        return super().qualname

    @property
    def doc(self) -> str:
        return ast.get_docstring(self.node) or ""

    @property
    def params(self) -> List[str]:
        args = self.node.args
        names = [a.arg for a in args.posonlyargs + args.args]
        if self.owner is not None and names and not _is_staticmethod(self.node):
            names = names[1:]
        return names

    @property
    def kwonly_params(self) -> List[str]:
        return [a.arg for a in self.node.args.kwonlyargs]

    @property
    def returns(self) -> Optional[ast.AST]:
        return self.node.returns

    def return_values(self) -> List[ast.AST]:
        """Expressions of ``return`` statements, nested scopes excluded."""
        return [stmt.value for stmt in self.iter_body_nodes()
                if isinstance(stmt, ast.Return) and stmt.value is not None]

    def iter_body_nodes(self) -> Iterator[ast.AST]:
        stack = [n for n in reversed(self.node.body) if not isinstance(n, NESTED_SCOPES)]
        while stack:
            node = stack.pop()
            yield node
            children = [c for c in ast.iter_child_nodes(node) if not isinstance(c, NESTED_SCOPES)]
            stack.extend(reversed(children))

    def local_names(self) -> Set[str]:
        """Parameters and names assigned inside the body."""
        names = set(self.params) | set(self.kwonly_params)
        if self.owner is not None and self.node.args.args:
            names.add(self.node.args.args[0].arg)
        for node in self.iter_body_nodes():
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
                names.add(node.id)
        # nested functions and classes shadow module names too
        for node in ast.walk(self.node):
            if node is not self.node and isinstance(node, NESTED_SCOPES) and not isinstance(node, ast.Lambda):
                names.add(node.name)
        return names


@dataclass
class Field:
    """Annotated class attribute."""
    name: str
    annotation: ast.AST
    owner: "ClassDecl"
    node: ast.AnnAssign
    tags: Dict[str, Any] = field(default_factory=dict)
    default: Any = NO_DEFAULT
    doc: str = ""

    @property
    def exported(self) -> bool:
        return not self.name.startswith("_")

    def tag(self, key: str) -> str:
        value = self.tags.get(key)
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def has_tag(self, key: str) -> bool:
        return key in self.tags


class ClassDecl(Declaration):
    """Class definition with its methods, members and fields."""

    def __init__(self, module, name, node: ast.ClassDef):
        super().__init__(module, name, node)
        self.methods: Dict[str, FunctionDecl] = {}
        self.members: Dict[str, MemberDecl] = {}
        for stmt in node.body:
            if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
                self.methods[stmt.name] = FunctionDecl(module, stmt.name, stmt, owner=self)
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if isinstance(target, ast.Name):
                        self.members[target.id] = MemberDecl(module, target.id, stmt, self, stmt.value)
            elif isinstance(stmt, ast.AnnAssign) and stmt.value is not None and isinstance(stmt.target, ast.Name):
                if _is_classvar(stmt.annotation):
                    self.members[stmt.target.id] = MemberDecl(module, stmt.target.id, stmt, self, stmt.value)

    @property
    def doc(self) -> str:
        docstring = ast.get_docstring(self.node)
        if docstring:
            return docstring
        return "\n".join(self.module.comments_above(self.node.lineno))

    @property
    def base_exprs(self) -> List[ast.AST]:
        return list(self.node.bases)

    def bases(self, program: "Program") -> List[Declaration]:
        """Directly resolved bases; unresolvable expressions are dropped."""
        resolved = []
        for expr in self.node.bases:
            if isinstance(expr, ast.Subscript):
                expr = expr.value
            decl = program.resolve_expr(self.module, expr)
            if isinstance(decl, Declaration):
                resolved.append(decl)
        return resolved

    def ancestors(self, program: "Program") -> List[Declaration]:
        """All bases, depth first, each listed once."""
        seen: Set[str] = set()
        ordered: List[Declaration] = []

        def visit(cls: "ClassDecl"):
            for base in cls.bases(program):
                if base.qualname in seen:
                    continue
                seen.add(base.qualname)
                ordered.append(base)
                if isinstance(base, ClassDecl):
                    visit(base)

        visit(self)
        return ordered

    def ancestor_names(self, program: "Program") -> Set[str]:
        return {a.qualname for a in self.ancestors(program)}

    def has_ancestor_named(self, program: "Program", names: Set[str]) -> bool:
        """True when any ancestor's simple name is one of ``names``."""
        return any(a.name in names for a in self.ancestors(program))

    def is_enum(self, program: "Program") -> bool:
        return bool(self.ancestor_names(program) & ENUM_BASES)

    def find_method(self, program: "Program", name: str) -> Optional[FunctionDecl]:
        if name in self.methods:
            return self.methods[name]
        for base in self.ancestors(program):
            if isinstance(base, ClassDecl) and name in base.methods:
                return base.methods[name]
        return None

    def find_member(self, program: "Program", name: str):
        if name in self.members:
            return self.members[name]
        if name in self.methods:
            return self.methods[name]
        for base in self.ancestors(program):
            if isinstance(base, ClassDecl):
                if name in base.members:
                    return base.members[name]
                if name in base.methods:
                    return base.methods[name]
        return None

    def own_fields(self, program: "Program") -> List[Field]:
        """Annotated attributes declared directly in this class body."""
        from .evaluate import UNRESOLVED, constant_value

        fields = []
        for stmt in self.node.body:
            if not isinstance(stmt, ast.AnnAssign) or not isinstance(stmt.target, ast.Name):
                continue
            if _is_classvar(stmt.annotation):
                continue
            item = Field(
                name=stmt.target.id,
                annotation=stmt.annotation,
                owner=self,
                node=stmt,
                doc=self.module.doc_comment(stmt),
            )
            value = stmt.value
            if _is_field_call(value):
                for keyword in value.keywords:
                    if keyword.arg == "metadata":
                        metadata = constant_value(program, self.module, keyword.value)
                        if isinstance(metadata, dict):
                            item.tags = {str(k): v for k, v in metadata.items()}
                    elif keyword.arg == "default":
                        default = constant_value(program, self.module, keyword.value)
                        if default is not UNRESOLVED:
                            item.default = default
            elif value is not None:
                default = constant_value(program, self.module, value)
                if default is not UNRESOLVED:
                    item.default = default
            fields.append(item)
        return fields

    def all_fields(self, program: "Program") -> List[Field]:
        """Fields including those of in-tree bases, base fields first."""
        collected: Dict[str, Field] = {}
        for base in reversed(self.ancestors(program)):
            if isinstance(base, ClassDecl):
                for item in base.own_fields(program):
                    collected[item.name] = item
        for item in self.own_fields(program):
            collected[item.name] = item
        return list(collected.values())


def _is_classvar(annotation: ast.AST) -> bool:
    if isinstance(annotation, ast.Subscript):
        annotation = annotation.value
    name = annotation.id if isinstance(annotation, ast.Name) else getattr(annotation, "attr", None)
    return name == "ClassVar"


def _is_field_call(value: Optional[ast.AST]) -> bool:
    if not isinstance(value, ast.Call):
        return False
    func = value.func
    name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
    return name in FIELD_FACTORIES


def _is_staticmethod(node: ast.AST) -> bool:
    for decorator in getattr(node, "decorator_list", []):
        name = decorator.id if isinstance(decorator, ast.Name) else getattr(decorator, "attr", None)
        if name == "staticmethod":
            return True
    return False
