"""Tests for the program index, annotation resolution and constant folding."""

import ast

from typeindex import (
    NO_DEFAULT,
    UNRESOLVED,
    Array,
    Basic,
    ClassDecl,
    ExternalDecl,
    FunctionDecl,
    Interface,
    Map,
    MemberDecl,
    ModuleRef,
    Named,
    NewTypeDecl,
    Pointer,
    Slice,
    Struct,
    VariableDecl,
    constant_value,
    resolve_annotation,
    underlying,
)


def annotation_of(program, module_name, source):
    module = program.modules[module_name]
    return resolve_annotation(program, module, ast.parse(source, mode="eval").body)


def fold(program, module_name, source):
    module = program.modules[module_name]
    return constant_value(program, module, ast.parse(source, mode="eval").body)


class TestLoading:
    def test_module_names_without_root_package(self, load_project):
        program = load_project({
            "main.py": "x = 1\n",
            "pkg/__init__.py": "",
            "pkg/models.py": "y = 2\n",
        })
        assert program.root_package == ""
        assert set(program.modules) == {"main", "pkg", "pkg.models"}

    def test_root_package_prefixes_module_names(self, load_project):
        program = load_project({
            "__init__.py": "",
            "models.py": "y = 2\n",
        }, name="shop")
        assert program.root_package == "shop"
        assert set(program.modules) == {"shop", "shop.models"}
        assert program.relative_module_name("shop.models") == "models"

    def test_unparseable_files_are_skipped(self, load_project):
        program = load_project({
            "good.py": "x = 1\n",
            "bad.py": "def broken(:\n",
        })
        assert "good" in program.modules
        assert "bad" not in program.modules

    def test_ignored_directories(self, load_project):
        program = load_project({
            "main.py": "",
            "venv/lib.py": "",
            "build/gen.py": "",
        })
        assert set(program.modules) == {"main"}

    def test_comments_are_collected(self, load_project):
        program = load_project({
            "consts.py": """
                # first line
                # second line
                LIMIT = 10  # trailing
            """,
        })
        decl = program.modules["consts"].decls["LIMIT"]
        assert decl.doc == "first line\nsecond line\ntrailing"


class TestResolution:
    def test_from_import_and_relative_import(self, load_project):
        program = load_project({
            "__init__.py": "",
            "models.py": "class User:\n    pass\n",
            "api/__init__.py": "",
            "api/views.py": "from ..models import User\nfrom shop.models import User as U2\n",
        }, name="shop")
        views = program.modules["shop.api.views"]
        user = program.resolve(views, "User")
        assert isinstance(user, ClassDecl)
        assert user.qualname == "shop.models.User"
        assert program.resolve(views, "U2") is user

    def test_module_import_attribute_chain(self, load_project):
        program = load_project({
            "models.py": "class User:\n    pass\n",
            "views.py": "import models\n",
        })
        views = program.modules["views"]
        assert isinstance(program.resolve(views, "models"), ModuleRef)
        expr = ast.parse("models.User", mode="eval").body
        assert program.resolve_expr(views, expr).qualname == "models.User"

    def test_unknown_imports_are_external(self, load_project):
        program = load_project({"views.py": "from datetime import datetime\nimport uuid\n"})
        views = program.modules["views"]
        decl = program.resolve(views, "datetime")
        assert isinstance(decl, ExternalDecl)
        assert decl.qualname == "datetime.datetime"
        expr = ast.parse("uuid.UUID", mode="eval").body
        assert program.resolve_expr(views, expr).qualname == "uuid.UUID"

    def test_class_members_and_methods(self, load_project):
        program = load_project({
            "errors.py": """
                class Base:
                    def hello(self):
                        return 1

                class Errors(Base):
                    NotFound = 404000001
            """,
        })
        errors = program.modules["errors"]
        member = program.resolve_expr(errors, ast.parse("Errors.NotFound", mode="eval").body)
        assert isinstance(member, MemberDecl)
        assert member.qualname == "errors.Errors.NotFound"
        method = program.resolve_expr(errors, ast.parse("Errors.hello", mode="eval").body)
        assert isinstance(method, FunctionDecl)
        assert method.qualname == "errors.Base.hello"

    def test_newtype_and_variable_declarations(self, load_project):
        program = load_project({
            "kinds.py": """
                from typing import NewType
                UserID = NewType("UserID", int)
                LIMIT = 10
            """,
        })
        decls = program.modules["kinds"].decls
        assert isinstance(decls["UserID"], NewTypeDecl)
        assert isinstance(decls["LIMIT"], VariableDecl)


class TestAnnotations:
    SOURCE = {
        "models.py": """
            from typing import Any, Dict, List, Literal, NewType, Optional, Tuple, Union

            UserID = NewType("UserID", int)
            Names = List[str]

            class User:
                id: UserID
        """,
    }

    def test_primitives_and_externals(self, load_project):
        program = load_project(self.SOURCE)
        assert annotation_of(program, "models", "int") == Basic("int")
        assert annotation_of(program, "models", "Any") == Interface()

    def test_optional_levels(self, load_project):
        program = load_project(self.SOURCE)
        assert annotation_of(program, "models", "Optional[int]") == Pointer(Basic("int"))
        assert annotation_of(program, "models", "int | None") == Pointer(Basic("int"))
        assert annotation_of(program, "models", "Optional[Optional[int]]") == Pointer(Pointer(Basic("int")))

    def test_unions_of_several_types_are_interfaces(self, load_project):
        program = load_project(self.SOURCE)
        assert annotation_of(program, "models", "Union[int, str]") == Interface()

    def test_literals_by_value_kind(self, load_project):
        program = load_project(self.SOURCE)
        assert annotation_of(program, "models", "Literal['a', 'b']") == Basic("str")
        assert annotation_of(program, "models", "Literal[1, None]") == Pointer(Basic("int"))
        assert annotation_of(program, "models", "Literal[None]") == Basic("None")
        assert annotation_of(program, "models", "Literal[1, 'a']") == Interface()

    def test_containers(self, load_project):
        program = load_project(self.SOURCE)
        assert annotation_of(program, "models", "List[int]") == Slice(Basic("int"))
        assert annotation_of(program, "models", "list[str]") == Slice(Basic("str"))
        assert annotation_of(program, "models", "Dict[str, int]") == Map(Basic("str"), Basic("int"))
        assert annotation_of(program, "models", "Tuple[int, ...]") == Slice(Basic("int"))
        assert annotation_of(program, "models", "Tuple[int, int]") == Array(Basic("int"), 2)

    def test_named_alias_and_forward_reference(self, load_project):
        program = load_project(self.SOURCE)
        user = program.modules["models"].decls["User"]
        assert annotation_of(program, "models", "User") == Named(user)
        assert annotation_of(program, "models", "'User'") == Named(user)
        assert annotation_of(program, "models", "Names") == Slice(Basic("str"))

    def test_underlying_types(self, load_project):
        program = load_project(self.SOURCE)
        decls = program.modules["models"].decls
        assert underlying(program, Named(decls["UserID"])) == Basic("int")
        struct = underlying(program, Named(decls["User"]))
        assert isinstance(struct, Struct)
        assert [f.name for f in struct.fields] == ["id"]


class TestConstantFolding:
    SOURCE = {
        "consts.py": """
            import http
            from enum import IntEnum
            from typing import NewType

            Code = NewType("Code", int)
            BASE = 400 * 10 ** 6
            NOT_FOUND = BASE + 4000001
            PREFIX = "user" + "."
            LOOP = LOOP

            class Codes(IntEnum):
                OK = 200
        """,
    }

    def test_arithmetic_and_names(self, load_project):
        program = load_project(self.SOURCE)
        assert fold(program, "consts", "NOT_FOUND") == 404000001
        assert fold(program, "consts", "-BASE") == -400000000
        assert fold(program, "consts", "PREFIX + 'name'") == "user.name"

    def test_members_calls_and_stdlib_status(self, load_project):
        program = load_project(self.SOURCE)
        assert fold(program, "consts", "Codes.OK") == 200
        assert fold(program, "consts", "Code(7)") == 7
        assert fold(program, "consts", "int('12')") == 12
        assert fold(program, "consts", "http.HTTPStatus.CREATED") == 201

    def test_literals(self, load_project):
        program = load_project(self.SOURCE)
        assert fold(program, "consts", "{1: 'a', 'b': [1, 2]}") == {1: "a", "b": [1, 2]}

    def test_unresolved_forms(self, load_project):
        program = load_project(self.SOURCE)
        assert fold(program, "consts", "LOOP") is UNRESOLVED
        assert fold(program, "consts", "unknown_name") is UNRESOLVED
        assert fold(program, "consts", "f'{BASE}'") is UNRESOLVED
        assert fold(program, "consts", "2 ** 100") is UNRESOLVED

    def test_growth_is_bounded(self, load_project):
        program = load_project(self.SOURCE)
        assert fold(program, "consts", "1 << 10 ** 9") is UNRESOLVED
        assert fold(program, "consts", "1 << 4097") is UNRESOLVED
        assert fold(program, "consts", "'x' * 2 ** 40") is UNRESOLVED
        assert fold(program, "consts", "[0] * 10 ** 6") is UNRESOLVED
        assert fold(program, "consts", "(2 ** 64) ** 64") is UNRESOLVED
        assert fold(program, "consts", "1.5e300 ** 2") is UNRESOLVED
        assert fold(program, "consts", "1 << 4") == 16
        assert fold(program, "consts", "'ab' * 3") == "ababab"


class TestFields:
    def test_tags_defaults_and_docs(self, load_project):
        program = load_project({
            "ops.py": """
                from dataclasses import field
                from typing import ClassVar

                LOCATION = "query"

                class Base:
                    # the page size
                    size: int = field(default=10, metadata={"in": LOCATION, "name": "size,omitempty"})

                class ListUsers(Base):
                    kind: ClassVar[str] = "list"
                    name: str = "bob"  # user name
                    _hidden: int = 0
            """,
        })
        decl = program.modules["ops"].decls["ListUsers"]
        fields = {f.name: f for f in decl.all_fields(program)}
        assert list(fields) == ["size", "name", "_hidden"]

        size = fields["size"]
        assert size.tag("in") == "query"
        assert size.tag("name") == "size,omitempty"
        assert size.default == 10
        assert size.doc == "the page size"

        assert fields["name"].default == "bob"
        assert fields["name"].doc == "user name"
        assert fields["name"].tags == {}
        assert fields["name"].tag("in") == ""
        assert not fields["_hidden"].exported

    def test_default_without_value(self, load_project):
        program = load_project({"m.py": "class A:\n    x: int\n"})
        (item,) = program.modules["m"].decls["A"].own_fields(program)
        assert item.default is NO_DEFAULT

    def test_function_body_helpers(self, load_project):
        program = load_project({
            "m.py": """
                class A:
                    def output(self, ctx):
                        value = 1

                        def inner():
                            return 2

                        return value
            """,
        })
        method = program.modules["m"].decls["A"].methods["output"]
        assert method.params == ["ctx"]
        assert {"self", "ctx", "value"} <= method.local_names()
        returns = method.return_values()
        assert len(returns) == 1
        assert isinstance(returns[0], ast.Name)
