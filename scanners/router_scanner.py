"""
Route tree reconstruction.

Router variables are ``Router(...)`` assignments at module level or inside a
function body. ``register`` calls link them into a tree; operators passed to
``register`` either extend the receiver (middlewares) or become anonymous
leaf routers (endpoints).
"""

from __future__ import annotations

import ast
import logging
import posixpath
import weakref
from typing import Dict, Iterator, List, NamedTuple, Optional, Set

from typeindex import NESTED_SCOPES, ClassDecl, FunctionDecl, Module, Program, VariableDecl

from .base import BaseScanner, callee_name
from .operator_scanner import Operator, OperatorScanner

logger = logging.getLogger("routescan.scanners.router_scanner")


def clean_path(path: str) -> str:
    """Canonical URL path: leading slash, no dot segments, trailing slash kept."""
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    trailing = len(path) > 1 and path.endswith("/")
    cleaned = posixpath.normpath(path)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    if trailing and cleaned != "/":
        cleaned += "/"
    return cleaned


def operator_label(operator: Operator) -> str:
    if operator.decl is None:
        return operator.id
    return f"{operator.decl.module_name.rpartition('.')[2]}.{operator.id}"


# =============================================================================
# ROUTER TREE
# =============================================================================


class Route:
    """Operators of one root-to-leaf chain, root first."""

    def __init__(self, operators: List[Operator], last: bool):
        self.operators = operators
        self.last = last

    def method(self) -> str:
        method = ""
        for operator in self.operators:
            if operator.method:
                method = operator.method
        return method

    def path(self) -> str:
        base_path = ""
        for operator in self.operators:
            if operator.path:
                base_path += clean_path(operator.path)
        return clean_path(base_path)

    def __str__(self) -> str:
        parts = [self.method(), self.path()] + [operator_label(o) for o in self.operators]
        return " ".join(parts)

    def __repr__(self) -> str:
        return f"Route({self})"


class Router:
    """Registration scope: own operators plus child routers."""

    def __init__(self, name: str = "Anonymous", operators: Optional[List[Operator]] = None):
        self.name = name
        self.operators: List[Operator] = list(operators or [])
        self.children: List["Router"] = []
        self._parent: Optional[weakref.ref] = None

    def __repr__(self) -> str:
        ops = ",".join(operator_label(o) for o in self.operators)
        children = ",".join(c.name for c in self.children)
        return f"{self.name}<{ops}>[{children}]"

    @property
    def parent(self) -> Optional["Router"]:
        return self._parent() if self._parent is not None else None

    def ancestors(self) -> Iterator["Router"]:
        parent = self.parent
        while parent is not None:
            yield parent
            parent = parent.parent

    def append_operators(self, *operators: Operator):
        self.operators.extend(operators)

    def with_(self, *operators: Operator) -> "Router":
        child = Router(operators=list(operators))
        self.register(child)
        return child

    def register(self, child: "Router"):
        if child is self or any(a is child for a in self.ancestors()):
            logger.warning(f"Ignoring registration of {child.name} into {self.name}: would form a cycle")
            return
        if any(c is child for c in self.children):
            return
        previous = child.parent
        if previous is not None:
            logger.warning(f"Router {child.name} moved from {previous.name} to {self.name}")
            previous.children = [c for c in previous.children if c is not child]
        child._parent = weakref.ref(self)
        self.children.append(child)

    def route(self) -> Route:
        operators = list(self.operators)
        for parent in self.ancestors():
            operators = parent.operators + operators
        return Route(operators, last=not self.children)

    def routes(self) -> List[Route]:
        routes: List[Route] = []
        for child in self.children:
            route = child.route()
            if route.last:
                routes.append(route)
            if child.children:
                routes.extend(child.routes())
        return sorted(routes, key=str)


# =============================================================================
# SCANNER
# =============================================================================


class _Context(NamedTuple):
    """Where an expression is evaluated."""
    module: Module
    func: Optional[FunctionDecl]
    local_names: Set[str]
    bindings: Dict[str, "_Bound"]


class _Bound(NamedTuple):
    expr: ast.AST
    context: _Context


class RouterScanner(BaseScanner):
    """
    Builds the router tree of the whole program.
    """

    def __init__(self, program: Program, operator_scanner: OperatorScanner, vocabulary=None):
        super().__init__(program, vocabulary)
        self.operator_scanner = operator_scanner
        # router variable qualname -> router; function locals as "<func qualname>.<name>"
        self.routers: Dict[str, Router] = {}
        self._init_routers()
        self._link_registrations()

    def router(self, decl: VariableDecl) -> Optional[Router]:
        return self.routers.get(decl.qualname)

    def local_router(self, func: Optional[FunctionDecl], name: str) -> Optional[Router]:
        if func is None:
            return None
        return self.routers.get(f"{func.qualname}.{name}")

    # -------------------------------------------------------------------------
    # Router variables
    # -------------------------------------------------------------------------

    def _is_router_constructor(self, module: Module, call: ast.AST) -> bool:
        return isinstance(call, ast.Call) and callee_name(call) in self.vocabulary.router_types

    def _init_routers(self):
        for decl in self.program.iter_decls(VariableDecl):
            if not self._is_router_constructor(decl.module, decl.value):
                continue
            context = _Context(decl.module, None, set(), {})
            name = f"{decl.module_name.rpartition('.')[2]}.{decl.name}"
            operators = self.operators_from_args(context, decl.value.args)
            self.routers[decl.qualname] = Router(name, operators)
            logger.debug(f"Router {name} with {len(operators)} operators")

        for module in self.program.iter_modules():
            for func in _functions_of(module):
                self._init_local_routers(func)
        self.bump("routers", len(self.routers))

    def _init_local_routers(self, func: FunctionDecl):
        context = _Context(func.module, func, func.local_names(), {})
        for node in func.iter_body_nodes():
            if isinstance(node, ast.Assign) and len(node.targets) == 1:
                target, value = node.targets[0], node.value
            elif isinstance(node, ast.AnnAssign) and node.value is not None:
                target, value = node.target, node.value
            else:
                continue
            if not isinstance(target, ast.Name) or not self._is_router_constructor(func.module, value):
                continue
            key = f"{func.qualname}.{target.id}"
            if key in self.routers:
                logger.debug(f"Router {key} assigned more than once; keeping the first")
                continue
            name = f"{func.module_name.rpartition('.')[2]}.{func.name}.{target.id}"
            operators = self.operators_from_args(context, value.args)
            self.routers[key] = Router(name, operators)
            logger.debug(f"Router {name} with {len(operators)} operators")

    # -------------------------------------------------------------------------
    # Registrations
    # -------------------------------------------------------------------------

    def _link_registrations(self):
        for module in self.program.iter_modules():
            context = _Context(module, None, set(), {})
            for node in _walk_scope(module.tree.body):
                if isinstance(node, ast.Call):
                    self._handle_register(context, node)

            for func in _functions_of(module):
                func_context = _Context(module, func, func.local_names(), {})
                for node in func.iter_body_nodes():
                    if isinstance(node, ast.Call):
                        self._handle_register(func_context, node)

        # wrappers called from module scope or the entry function
        for module in self.program.iter_modules():
            context = _Context(module, None, set(), {})
            for node in _walk_scope(module.tree.body):
                if isinstance(node, ast.Call):
                    self._expand_wrapper(context, node)

            entry = module.decls.get(self.vocabulary.entry_function)
            if isinstance(entry, FunctionDecl):
                entry_context = _Context(module, entry, entry.local_names(), {})
                for node in entry.iter_body_nodes():
                    if isinstance(node, ast.Call):
                        self._expand_wrapper(entry_context, node)

    def _handle_register(self, context: _Context, call: ast.Call, only_bound: bool = False):
        func = call.func
        if not isinstance(func, ast.Attribute) or func.attr != self.vocabulary.register_method:
            return
        if only_bound and not self._touches_bindings(context, call):
            return

        receiver = self.router_of(context, func.value)
        if receiver is None:
            return

        for arg in call.args:
            child = self.router_of(context, arg)
            if child is not None:
                receiver.register(child)
                continue
            for operator in self.operators_from_args(context, [arg]):
                if operator.is_middleware:
                    receiver.append_operators(operator)
                else:
                    receiver.with_(operator)

    def _touches_bindings(self, context: _Context, call: ast.Call) -> bool:
        for expr in [call.func] + list(call.args):
            root = _root_name(expr)
            if root is not None and root in context.bindings:
                return True
        return False

    def _expand_wrapper(self, context: _Context, call: ast.Call):
        """Follow one call into an in-tree function that receives a router."""
        callee = self.resolve_in(context.func, context.module, call.func, context.local_names)
        if not isinstance(callee, FunctionDecl) or callee.owner is not None:
            return
        if context.func is not None and callee.qualname == context.func.qualname:
            return

        bindings: Dict[str, _Bound] = {}
        for param, arg in zip(callee.params, call.args):
            bindings[param] = _Bound(arg, context)
        for keyword in call.keywords:
            if keyword.arg:
                bindings[keyword.arg] = _Bound(keyword.value, context)

        if not any(self.router_of(b.context, b.expr) is not None for b in bindings.values()):
            return

        logger.debug(f"Expanding wrapper {callee.qualname}")
        wrapper_context = _Context(callee.module, callee, callee.local_names(), bindings)
        for node in callee.iter_body_nodes():
            if isinstance(node, ast.Call):
                self._handle_register(wrapper_context, node, only_bound=True)

    # -------------------------------------------------------------------------
    # Expression helpers
    # -------------------------------------------------------------------------

    def _substitute(self, context: _Context, expr: ast.AST):
        if isinstance(expr, ast.Name) and expr.id in context.bindings:
            bound = context.bindings[expr.id]
            return bound.context, bound.expr
        return context, expr

    def router_of(self, context: _Context, expr: ast.AST) -> Optional[Router]:
        context, expr = self._substitute(context, expr)
        if not isinstance(expr, (ast.Name, ast.Attribute)):
            return None
        if isinstance(expr, ast.Name) and expr.id in context.local_names:
            return self.local_router(context.func, expr.id)
        decl = self.resolve_in(context.func, context.module, expr, context.local_names)
        if isinstance(decl, VariableDecl):
            return self.routers.get(decl.qualname)
        return None

    def operators_from_args(self, context: _Context, args) -> List[Operator]:
        operators = []
        for arg in args:
            arg_context, arg = self._substitute(context, arg)
            operator = self._operator_of(arg_context, arg)
            if operator is not None:
                operators.append(operator)
        return operators

    def _operator_of(self, context: _Context, expr: ast.AST) -> Optional[Operator]:
        if isinstance(expr, ast.Call):
            if callee_name(expr) == self.vocabulary.group_function:
                path = self.fold(context.module, expr.args[0], context.local_names) if expr.args else ""
                return self.operator_scanner.group_operator(path if isinstance(path, str) else "")
            target = expr.func
        else:
            target = expr

        if not isinstance(target, (ast.Name, ast.Attribute)):
            return None
        decl = self.resolve_in(context.func, context.module, target, context.local_names)
        if isinstance(decl, VariableDecl) and isinstance(decl.value, ast.Call):
            if self._is_router_constructor(decl.module, decl.value):
                return None
            decl = self.program.resolve_expr(decl.module, decl.value.func)
        if isinstance(decl, ClassDecl):
            return self.operator_scanner.operator(decl)
        return None


def _root_name(expr: ast.AST) -> Optional[str]:
    while isinstance(expr, (ast.Attribute, ast.Call)):
        expr = expr.value if isinstance(expr, ast.Attribute) else expr.func
    return expr.id if isinstance(expr, ast.Name) else None


def _walk_scope(body) -> Iterator[ast.AST]:
    """Nodes of a statement list without entering function or class bodies."""
    stack = [n for n in reversed(body) if not isinstance(n, NESTED_SCOPES)]
    while stack:
        node = stack.pop()
        yield node
        children = [c for c in ast.iter_child_nodes(node) if not isinstance(c, NESTED_SCOPES)]
        stack.extend(reversed(children))


def _functions_of(module: Module) -> Iterator[FunctionDecl]:
    for decl in module.decls.values():
        if isinstance(decl, FunctionDecl):
            yield decl
        elif isinstance(decl, ClassDecl):
            yield from decl.methods.values()
