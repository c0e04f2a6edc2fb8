"""Tests for schema compilation, enums and component naming."""

import pytest

from scanners import DefinitionScanner, Document, UnsupportedMapKeyError, UnsupportedTypeError
from scanners.enum_scanner import EnumScanner
from typeindex import Named

MODELS = {
    "models.py": """
        import io
        from dataclasses import dataclass, field
        from datetime import datetime
        from enum import Enum, auto
        from typing import Dict, List, NewType, Optional

        class Color(Enum):
            \"\"\"Paint color.\"\"\"
            RED = 3  # red paint
            # green paint
            GREEN = 1
            BLUE = 2

        class Size(str, Enum):
            SMALL = auto()
            LARGE = auto()

        Level = NewType("Level", int)

        # the lowest level
        LEVEL_LOW: Level = 1
        LEVEL_HIGH = Level(9)  # the highest level
        LEVEL_HIDDEN: Level = 5

        class Node:
            \"\"\"Tree node.\"\"\"
            value: int = field(metadata={"json": "value", "validate": "required"})
            children: List["Node"] = field(default_factory=list, metadata={"json": "children,omitempty"})
            parent: Optional["Node"] = None

        class Audit:
            created_at: datetime = field(metadata={"json": "createdAt"})

        class Item(Audit):
            # item name
            name: str = field(default="thing", metadata={"json": "name"})
            color: Color = field(metadata={"json": "color"})
            ignored: int = field(metadata={"json": "-"})
            counts: Dict[str, int] = field(default_factory=dict)
            pair: tuple[int, int] = (0, 0)
            _private: str = ""

        class Blob(io.BytesIO):
            pass

        class Token:
            \"\"\"Opaque token.

            openapi:strfmt password
            \"\"\"
            raw: str

        class BadKey:
            by_id: Dict[int, str]

        class BadType:
            value: complex
    """,
}


@pytest.fixture
def scanner(load_project):
    program = load_project(MODELS)
    return DefinitionScanner(program)


def schema_of(scanner, name):
    module = scanner.program.modules["models"]
    return scanner.def_(module.decls[name]).schema.to_dict()


class TestStructs:
    def test_fields_names_and_required(self, scanner):
        schema = schema_of(scanner, "Node")
        assert schema["type"] == "object"
        assert schema["description"] == "Tree node."
        assert list(schema["properties"]) == ["value", "children", "parent"]
        assert schema["required"] == ["value"]
        assert schema["properties"]["value"] == {
            "type": "integer", "format": "int64", "x-tag-validate": "required",
        }

    def test_self_reference_compiles_to_ref(self, scanner):
        schema = schema_of(scanner, "Node")
        children = schema["properties"]["children"]
        assert children["type"] == "array"
        assert children["items"] == {"$ref": "#/components/schemas/models.Node"}
        assert schema["properties"]["parent"] == {
            "allOf": [{"$ref": "#/components/schemas/models.Node"}, {"x-py-star-level": 1}],
        }

    def test_embedded_base_and_field_metadata(self, scanner):
        schema = schema_of(scanner, "Item")
        base, own = schema["allOf"]
        assert base == {"$ref": "#/components/schemas/models.Audit"}
        props = own["properties"]
        assert list(props) == ["name", "color", "counts", "pair"]
        assert props["name"] == {"type": "string", "description": "item name", "default": "thing"}
        assert props["color"] == {"$ref": "#/components/schemas/models.Color"}
        assert props["counts"] == {"type": "object", "additionalProperties": {"type": "integer", "format": "int64"}}
        assert props["pair"]["minItems"] == 2
        assert props["pair"]["maxItems"] == 2

        audit = schema_of(scanner, "Audit")
        assert audit["properties"]["createdAt"] == {
            "type": "string", "format": "date-time", "x-py-field-name": "created_at",
        }

    def test_binary_and_strfmt(self, scanner):
        assert schema_of(scanner, "Blob") == {"type": "string", "format": "binary"}
        token = schema_of(scanner, "Token")
        assert token["type"] == "string"
        assert token["format"] == "password"
        assert token["description"] == "Opaque token."

    def test_unsupported_map_key(self, scanner):
        with pytest.raises(UnsupportedMapKeyError) as exc:
            schema_of(scanner, "BadKey")
        assert exc.value.declaration == "models.BadKey.by_id"
        assert "models.BadKey" not in scanner.definitions

    def test_unsupported_type(self, scanner):
        with pytest.raises(UnsupportedTypeError):
            schema_of(scanner, "BadType")

    def test_definitions_are_cached(self, scanner):
        module = scanner.program.modules["models"]
        first = scanner.def_(module.decls["Item"])
        assert scanner.def_(module.decls["Item"]) is first


class TestEnums:
    def test_enum_class_is_ordered_by_value(self, scanner):
        schema = schema_of(scanner, "Color")
        assert schema["type"] == "integer"
        assert schema["enum"] == [1, 2, 3]
        assert schema["x-enum-labels"] == {"1": "green paint", "2": "BLUE", "3": "red paint"}
        assert schema["description"] == ">\n* `1` - green paint\n* `2` - BLUE\n* `3` - red paint\n"

    def test_auto_string_enum(self, scanner):
        schema = schema_of(scanner, "Size")
        assert schema["type"] == "string"
        assert schema["enum"] == ["large", "small"]

    def test_newtype_constants_need_a_label(self, scanner):
        schema = schema_of(scanner, "Level")
        assert schema["enum"] == [1, 9]
        assert schema["x-enum-labels"] == {"1": "the lowest level", "9": "the highest level"}

    def test_non_enum(self, load_project):
        program = load_project(MODELS)
        enums = EnumScanner(program)
        assert enums.enum_of(program.modules["models"].decls["Node"]) is None


class TestBinding:
    def test_component_names_and_extensions(self, scanner):
        module = scanner.program.modules["models"]
        scanner.get_schema_by_type(Named(module.decls["Item"]))
        document = Document()
        scanner.bind_schemas(document)
        data = document.to_dict()["components"]["schemas"]
        assert sorted(data) == ["Audit", "Color", "Item"]
        assert data["Item"]["allOf"][0] == {"$ref": "#/components/schemas/Audit"}
        assert data["Item"]["allOf"][-1]["x-py-struct-name"] == "Item"
        assert data["Color"]["x-py-struct-name"] == "Color"

    def test_colliding_names_get_module_prefix(self, load_project):
        program = load_project({
            "v1/models.py": "class Pet:\n    name: str\n",
            "v2/models.py": "class Pet:\n    name: str\n",
        })
        scanner = DefinitionScanner(program)
        for module_name in ("v2.models", "v1.models"):
            scanner.def_(program.modules[module_name].decls["Pet"])
        document = Document()
        scanner.bind_schemas(document)
        assert sorted(document.schemas) == ["ModelsPet", "Pet"]
        assert scanner.definitions["v1.models.Pet"].name == "Pet"
        assert scanner.definitions["v2.models.Pet"].name == "ModelsPet"

    def test_builtin_definition_naming(self, load_project):
        from scanners.operator_scanner import default_status_err_schema

        scanner = DefinitionScanner(load_project({"m.py": ""}))
        scanner.register_builtin("statuserror.StatusErr", "StatusErr", "statuserror", default_status_err_schema())
        document = Document()
        scanner.bind_schemas(document)
        schema = document.schemas["StatuserrorStatusErr"].to_dict()
        assert schema["x-py-vendor-type"] == "statuserror.StatusErr"
        assert schema["required"] == ["key", "code", "msg"]
