"""Tests for router tree reconstruction."""

import pytest

from scanners import OperatorScanner, RouterScanner
from scanners.router_scanner import Router, clean_path

APP = {
    "ops.py": """
        from courier import MethodGet, MethodPost, MiddlewareType

        class Logger(MiddlewareType):
            def output(self, ctx):
                return None

        class Auth(MiddlewareType):
            def output(self, ctx):
                return None

        class ListItems(MethodGet):
            def output(self, ctx) -> str:
                return ""

        class CreateItem(MethodPost):
            def output(self, ctx) -> str:
                return ""

        class GetItem(MethodGet):
            def path(self):
                return "/:id"

            def output(self, ctx) -> str:
                return ""

        class Outer(MethodGet):
            def path(self):
                return "/outer"

            def output(self, ctx) -> str:
                return ""

        class Inner(MethodGet):
            def path(self):
                return "/inner"

            def output(self, ctx) -> str:
                return ""
    """,
    "routes.py": """
        from courier import Group, Router

        from ops import Auth, CreateItem, GetItem, Inner, ListItems, Logger, Outer

        RootRouter = Router(Group("/api"))
        ItemsRouter = Router(Group("/items"), Logger)

        RootRouter.register(Auth, ItemsRouter)
        ItemsRouter.register(ListItems, CreateItem())


        def register_inner(router):
            router.register(Inner)


        def register_outer(router):
            router.register(Outer)
            register_inner(router)


        def setup():
            ItemsRouter.register(GetItem)


        register_outer(ItemsRouter)
    """,
}


@pytest.fixture
def routers(load_project):
    program = load_project(APP)
    return RouterScanner(program, OperatorScanner(program))


def router_named(scanner, name):
    return scanner.router(scanner.program.modules["routes"].decls[name])


class TestCleanPath:
    @pytest.mark.parametrize("raw,expected", [
        ("", "/"),
        ("/", "/"),
        ("users", "/users"),
        ("/a/./b", "/a/b"),
        ("/a/../b/", "/b/"),
        ("//a", "/a"),
        ("/users/:id", "/users/:id"),
    ])
    def test_clean_path(self, raw, expected):
        assert clean_path(raw) == expected


class TestRouterTree:
    def test_register_links_parent_and_child(self):
        parent, child = Router("parent"), Router("child")
        parent.register(child)
        parent.register(child)
        assert parent.children == [child]
        assert child.parent is parent

    def test_cycles_are_ignored(self):
        a, b = Router("a"), Router("b")
        a.register(b)
        b.register(a)
        a.register(a)
        assert a.children == [b]
        assert b.children == []
        assert a.parent is None

    def test_reparenting_moves_the_child(self):
        a, b, child = Router("a"), Router("b"), Router("child")
        a.register(child)
        b.register(child)
        assert a.children == []
        assert child.parent is b


class TestRouterScanner:
    def test_router_variables(self, routers):
        root = router_named(routers, "RootRouter")
        items = router_named(routers, "ItemsRouter")
        assert root.name == "routes.RootRouter"
        assert [o.id for o in items.operators] == ["Group", "Logger"]
        assert items.operators[0].path == "/items"
        assert items.parent is root

    def test_middlewares_extend_the_receiver(self, routers):
        root = router_named(routers, "RootRouter")
        assert [o.id for o in root.operators] == ["Group", "Auth"]
        assert root.children == [router_named(routers, "ItemsRouter")]

    def test_routes_are_sorted_leaf_chains(self, routers):
        routes = router_named(routers, "RootRouter").routes()
        assert [str(r) for r in routes] == [
            "GET /api/items Group ops.Auth Group ops.Logger ops.ListItems",
            "GET /api/items/:id Group ops.Auth Group ops.Logger ops.GetItem",
            "GET /api/items/outer Group ops.Auth Group ops.Logger ops.Outer",
            "POST /api/items Group ops.Auth Group ops.Logger ops.CreateItem",
        ]
        assert all(r.last for r in routes)

    def test_wrappers_expand_one_level(self, routers):
        leaves = [r.operators[-1].id for r in router_named(routers, "RootRouter").routes()]
        assert "Outer" in leaves
        assert "Inner" not in leaves

    def test_registration_inside_functions(self, routers):
        leaves = [r.operators[-1].id for r in router_named(routers, "ItemsRouter").routes()]
        assert "GetItem" in leaves


LOCAL = {
    "ops.py": """
        from courier import MethodGet

        class Ping(MethodGet):
            def path(self):
                return "/ping"

            def output(self, ctx) -> str:
                return "pong"

        class Health(MethodGet):
            def path(self):
                return "/health"

            def output(self, ctx) -> str:
                return "ok"
    """,
    "routes.py": """
        from courier import Group, Router, run_server

        from ops import Health, Ping


        def register_health(router):
            router.register(Health)


        def main():
            root = Router(Group("/api"))
            v1: Router = Router(Group("/v1"))
            root.register(v1)
            v1.register(Ping)
            register_health(root)
            run_server(root)
    """,
}


class TestLocalRouters:
    def test_routers_assigned_in_functions(self, load_project):
        program = load_project(LOCAL)
        scanner = RouterScanner(program, OperatorScanner(program))
        main = program.modules["routes"].decls["main"]
        root = scanner.local_router(main, "root")
        assert root.name == "routes.main.root"
        assert scanner.local_router(main, "v1").parent is root
        assert scanner.local_router(main, "missing") is None
        assert scanner.local_router(None, "root") is None
        assert [str(r) for r in root.routes()] == [
            "GET /api/health Group ops.Health",
            "GET /api/v1/ping Group Group ops.Ping",
        ]
