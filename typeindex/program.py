#!/usr/bin/env python3
"""
Program Index
=============
Loads a Python source tree into parsed modules and resolves names across them.

Nothing here imports or executes the analyzed code:
- ast parses each file
- tokenize collects the comments the AST drops
- imports are resolved against the loaded modules, anything else is external
"""

from __future__ import annotations

import ast
import io
import logging
import os
import tokenize
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Union

from .decls import (
    AliasDecl,
    ClassDecl,
    Declaration,
    ExternalDecl,
    FunctionDecl,
    MemberDecl,
    NewTypeDecl,
    VariableDecl,
)

logger = logging.getLogger("routescan.typeindex.program")

DEFAULT_IGNORE_DIRS = {
    ".git", ".hg", ".svn", "__pycache__", ".venv", "venv", "env",
    ".tox", ".nox", ".mypy_cache", ".pytest_cache", "node_modules",
    "build", "dist", "site-packages", ".eggs",
}

# Names usable without an import
BUILTIN_NAMES = {
    "int", "float", "bool", "str", "bytes", "bytearray", "complex",
    "list", "dict", "set", "frozenset", "tuple", "object", "type", "None",
}


class ModuleRef:
    """Result of resolving a name to a whole module."""

    def __init__(self, module: "Module"):
        self.module = module

    def __repr__(self) -> str:
        return f"ModuleRef({self.module.name})"


Resolved = Union[Declaration, ModuleRef]


class Module:
    """One parsed source file."""

    def __init__(self, name: str, path: Path, source: str, is_package: bool = False):
        self.name = name
        self.path = path
        self.source = source
        self.is_package = is_package
        self.tree = ast.parse(source, filename=str(path))
        self.lines = source.splitlines()
        # line number -> comment text without the leading '#'
        self.comments: Dict[int, str] = {}
        # lines that hold nothing but a comment
        self.comment_lines: Set[int] = set()
        self.imports: Dict[str, str] = {}
        self.decls: Dict[str, Declaration] = {}
        self._collect_comments()

    def __repr__(self) -> str:
        return f"Module({self.name})"

    @property
    def package(self) -> str:
        if self.is_package:
            return self.name
        return self.name.rpartition(".")[0]

    def _collect_comments(self):
        try:
            tokens = tokenize.generate_tokens(io.StringIO(self.source).readline)
            for tok in tokens:
                if tok.type != tokenize.COMMENT:
                    continue
                line = tok.start[0]
                self.comments[line] = tok.string[1:].strip()
                if tok.line.strip().startswith("#"):
                    self.comment_lines.add(line)
        except (tokenize.TokenError, IndentationError) as e:
            logger.debug(f"Comment scan failed for {self.path}: {e}")

    def comments_above(self, line: int) -> List[str]:
        """Contiguous comment-only lines directly above ``line``."""
        collected = []
        current = line - 1
        while current in self.comment_lines:
            collected.append(self.comments[current])
            current -= 1
        collected.reverse()
        return collected

    def trailing_comment(self, line: int) -> Optional[str]:
        if line in self.comments and line not in self.comment_lines:
            return self.comments[line]
        return None

    def doc_comment(self, node: ast.AST) -> str:
        """Comment block above a statement joined with its trailing comment."""
        parts = self.comments_above(node.lineno)
        trailing = self.trailing_comment(getattr(node, "end_lineno", node.lineno) or node.lineno)
        if trailing:
            parts.append(trailing)
        return "\n".join(parts)


class Program:
    """
    The whole analyzed tree.

    Module names are dotted paths relative to ``root``; when the root itself is
    a package its directory name becomes the root package.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        self.root_package = self.root.name if (self.root / "__init__.py").exists() else ""
        self.modules: Dict[str, Module] = {}
        self._externals: Dict[str, ExternalDecl] = {}

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def add_module(self, module: Module):
        self.modules[module.name] = module
        self._index_module(module)

    def _index_module(self, module: Module):
        for stmt in module.tree.body:
            self._index_statement(module, stmt)

    def _index_statement(self, module: Module, stmt: ast.stmt):
        if isinstance(stmt, ast.ClassDef):
            module.decls[stmt.name] = ClassDecl(module, stmt.name, stmt)
        elif isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            module.decls[stmt.name] = FunctionDecl(module, stmt.name, stmt)
        elif isinstance(stmt, ast.Import):
            for alias in stmt.names:
                if alias.asname:
                    module.imports[alias.asname] = alias.name
                else:
                    head = alias.name.split(".")[0]
                    module.imports[head] = head
        elif isinstance(stmt, ast.ImportFrom):
            base = self._absolute_import_base(module, stmt)
            for alias in stmt.names:
                if alias.name == "*":
                    continue
                target = f"{base}.{alias.name}" if base else alias.name
                module.imports[alias.asname or alias.name] = target
        elif isinstance(stmt, (ast.Assign, ast.AnnAssign)):
            self._index_assignment(module, stmt)
        elif isinstance(stmt, ast.If) and not _is_main_guard(stmt):
            # TYPE_CHECKING blocks and similar conditional declarations
            for inner in stmt.body:
                self._index_statement(module, inner)
        elif isinstance(stmt, ast.Try):
            for inner in stmt.body:
                self._index_statement(module, inner)

    def _index_assignment(self, module: Module, stmt: Union[ast.Assign, ast.AnnAssign]):
        if isinstance(stmt, ast.Assign):
            targets = [t for t in stmt.targets if isinstance(t, ast.Name)]
            annotation = None
        else:
            targets = [stmt.target] if isinstance(stmt.target, ast.Name) else []
            annotation = stmt.annotation
        value = stmt.value
        for target in targets:
            name = target.id
            if _is_newtype_call(value):
                module.decls[name] = NewTypeDecl(module, name, stmt, value.args[1])
            elif _is_type_alias(annotation):
                module.decls[name] = AliasDecl(module, name, stmt, value)
            else:
                module.decls[name] = VariableDecl(module, name, stmt, value, annotation)

    def _absolute_import_base(self, module: Module, stmt: ast.ImportFrom) -> str:
        if not stmt.level:
            return stmt.module or ""
        parts = module.package.split(".") if module.package else []
        if stmt.level > 1:
            parts = parts[: len(parts) - (stmt.level - 1)]
        base = ".".join(parts)
        if stmt.module:
            base = f"{base}.{stmt.module}" if base else stmt.module
        return base

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def external(self, qualname: str) -> ExternalDecl:
        if qualname not in self._externals:
            self._externals[qualname] = ExternalDecl(qualname)
        return self._externals[qualname]

    def lookup_qualname(self, qualname: str, _seen: Optional[Set[str]] = None) -> Optional[Resolved]:
        """Resolve a dotted name, following re-exports through imports."""
        seen = _seen if _seen is not None else set()
        if qualname in seen:
            return None
        seen.add(qualname)

        if qualname in self.modules:
            return ModuleRef(self.modules[qualname])

        parts = qualname.split(".")
        for cut in range(len(parts) - 1, 0, -1):
            module_name = ".".join(parts[:cut])
            module = self.modules.get(module_name)
            if module is None:
                continue
            current: Optional[Resolved] = self._lookup_in_module(module, parts[cut], seen)
            for attr in parts[cut + 1:]:
                current = self.member(current, attr)
            return current
        return self.external(qualname)

    def _lookup_in_module(self, module: Module, name: str, seen: Set[str]) -> Optional[Resolved]:
        if name in module.decls:
            return module.decls[name]
        if name in module.imports:
            return self.lookup_qualname(module.imports[name], seen)
        submodule = f"{module.name}.{name}"
        if submodule in self.modules:
            return ModuleRef(self.modules[submodule])
        return None

    def member(self, owner: Optional[Resolved], attr: str) -> Optional[Resolved]:
        if owner is None:
            return None
        if isinstance(owner, ModuleRef):
            return self._lookup_in_module(owner.module, attr, set())
        if isinstance(owner, ExternalDecl):
            return self.external(f"{owner.qualname}.{attr}")
        if isinstance(owner, ClassDecl):
            return owner.find_member(self, attr)
        if isinstance(owner, AliasDecl):
            return self.member(self.resolve_expr(owner.module, owner.target), attr)
        return None

    def resolve(self, module: Module, name: str) -> Optional[Resolved]:
        """Resolve a bare name as seen from module scope."""
        if name in module.decls:
            return module.decls[name]
        if name in module.imports:
            return self.lookup_qualname(module.imports[name])
        if name in BUILTIN_NAMES:
            return self.external(name)
        return None

    def resolve_expr(self, module: Module, expr: ast.AST) -> Optional[Resolved]:
        """Resolve a Name or an Attribute chain."""
        if isinstance(expr, ast.Name):
            return self.resolve(module, expr.id)
        if isinstance(expr, ast.Attribute):
            return self.member(self.resolve_expr(module, expr.value), expr.attr)
        return None

    # -------------------------------------------------------------------------
    # Iteration helpers
    # -------------------------------------------------------------------------

    def iter_modules(self) -> Iterator[Module]:
        for name in sorted(self.modules):
            yield self.modules[name]

    def iter_decls(self, kind=None) -> Iterator[Declaration]:
        for module in self.iter_modules():
            for decl in module.decls.values():
                if kind is None or isinstance(decl, kind):
                    yield decl

    def relative_module_name(self, module_name: str) -> str:
        """Module path without the root package prefix."""
        if self.root_package and module_name.startswith(self.root_package):
            rest = module_name[len(self.root_package):].lstrip(".")
            return rest or self.root_package
        return module_name

    def is_internal(self, decl: Declaration) -> bool:
        return not isinstance(decl, ExternalDecl)


def _is_main_guard(stmt: ast.If) -> bool:
    test = stmt.test
    return (
        isinstance(test, ast.Compare)
        and isinstance(test.left, ast.Name)
        and test.left.id == "__name__"
    )


def _is_newtype_call(value: Optional[ast.AST]) -> bool:
    if not isinstance(value, ast.Call) or len(value.args) != 2:
        return False
    func = value.func
    name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
    return name == "NewType"


def _is_type_alias(annotation: Optional[ast.AST]) -> bool:
    if annotation is None:
        return False
    name = annotation.id if isinstance(annotation, ast.Name) else getattr(annotation, "attr", None)
    return name == "TypeAlias"


def module_name_for(root: Path, path: Path, root_package: str) -> str:
    rel = path.relative_to(root).with_suffix("")
    parts = list(rel.parts)
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    if root_package:
        parts.insert(0, root_package)
    return ".".join(parts)


def load_program(root: Union[str, Path], ignore_dirs: Optional[Set[str]] = None) -> Program:
    """
    Parse every Python file under ``root``.

    Args:
        root: Directory of the analyzed project
        ignore_dirs: Directory names to skip while walking

    Returns:
        Program with all modules indexed
    """
    program = Program(root)
    ignore = DEFAULT_IGNORE_DIRS if ignore_dirs is None else set(ignore_dirs)

    for dirpath, dirnames, filenames in os.walk(program.root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignore and not d.startswith("."))
        for filename in sorted(filenames):
            if not filename.endswith(".py"):
                continue
            path = Path(dirpath) / filename
            name = module_name_for(program.root, path, program.root_package)
            if not name:
                continue
            try:
                source = path.read_text(encoding="utf-8")
                module = Module(name, path, source, is_package=filename == "__init__.py")
            except (SyntaxError, UnicodeDecodeError, ValueError) as e:
                logger.warning(f"Skipping {path}: {e}")
                continue
            program.add_module(module)
            logger.debug(f"Indexed module {name} ({len(module.decls)} declarations)")

    logger.info(f"Loaded {len(program.modules)} modules from {program.root}")
    return program
