"""
Schema compilation for named types.

``DefinitionScanner.get_schema_by_type`` turns a TypeNode into a SchemaNode.
Named types go through ``def_`` which registers one component definition per
declaration; a placeholder is registered before recursing so self-referential
types compile to references instead of looping.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from typeindex import (
    NO_DEFAULT,
    UNRESOLVED,
    Array,
    Basic,
    ClassDecl,
    Declaration,
    ExternalDecl,
    Field,
    Interface,
    Map,
    Named,
    Pointer,
    Program,
    Slice,
    Struct,
    TypeNode,
    constant_value,
    resolve_annotation,
    underlying,
)

from .base import (
    X_ENUM_LABELS,
    X_FIELD_NAME,
    X_STAR_LEVEL,
    X_STRUCT_NAME,
    X_TAG_VALIDATE,
    X_VENDOR_TYPE,
    BaseScanner,
    tag_value_and_flags,
    upper_camel,
)
from .deterministic import DocstringParser, TypeHintAnalyzer
from .enum_scanner import EnumScanner
from .errors import FatalConfigError, UnsupportedMapKeyError, UnsupportedTypeError
from .oas import Definition, Document, SchemaNode

logger = logging.getLogger("routescan.scanners.definition_scanner")

SCHEMA_TYPE_QUERY = "openapi_schema_type"
SCHEMA_FORMAT_QUERY = "openapi_schema_format"


def add_extension(schema: Optional[SchemaNode], key: str, value):
    """Extensions of an allOf schema land on its last part."""
    if schema is None:
        return
    if schema.all_of:
        schema.all_of[-1].add_extension(key, value)
    else:
        schema.add_extension(key, value)


def set_meta_from_doc(schema: Optional[SchemaNode], doc: str):
    if schema is None:
        return
    if DocstringParser.is_deprecated(doc):
        schema.deprecated = True
    description = DocstringParser.description(doc)
    if not description:
        return
    if schema.all_of:
        schema.all_of[-1].description = description
    else:
        schema.description = description


class DefinitionScanner(BaseScanner):
    """
    Compiles types into schemas and owns the component definition table.
    """

    def __init__(self, program: Program, vocabulary=None):
        super().__init__(program, vocabulary)
        self.definitions: Dict[str, Definition] = {}
        self.enum_scanner = EnumScanner(program, vocabulary)

    # -------------------------------------------------------------------------
    # Definitions
    # -------------------------------------------------------------------------

    def def_(self, decl: Declaration) -> Definition:
        """Definition for ``decl``, compiling it on first use."""
        key = decl.qualname
        if key in self.definitions:
            return self.definitions[key]

        logger.debug(f"Scanning type {key}")
        definition = Definition(key, decl.name, decl.module_name)
        # registered before compiling so recursive references resolve to it
        self.definitions[key] = definition

        doc = decl.doc
        try:
            schema = self._schema_of_decl(decl, doc)
            set_meta_from_doc(schema, doc)
            self._apply_enum(decl, schema)
        except Exception:
            del self.definitions[key]
            raise

        definition.resolve(schema)
        self.bump("definitions")
        return definition

    def register_builtin(self, key: str, simple_name: str, module_path: str, schema: SchemaNode) -> Definition:
        """Definition for a type that lives outside the analyzed tree."""
        if key not in self.definitions:
            definition = Definition(key, simple_name, module_path, external=True)
            definition.resolve(schema)
            self.definitions[key] = definition
        return self.definitions[key]

    def _schema_of_decl(self, decl: Declaration, doc: str) -> SchemaNode:
        fmt = DocstringParser.strfmt(doc)
        if fmt:
            return SchemaNode("string", fmt)

        typ = DocstringParser.schema_type(doc)
        if typ:
            return SchemaNode(typ)

        if isinstance(decl, ClassDecl):
            if self._is_binary_class(decl):
                return SchemaNode.binary()
            overridden = self._schema_from_methods(decl)
            if overridden is not None:
                return overridden

        return self.get_schema_by_type(underlying(self.program, Named(decl)))

    def _schema_from_methods(self, decl: ClassDecl) -> Optional[SchemaNode]:
        schema = SchemaNode("string")
        defined = False
        for query, attr in ((SCHEMA_TYPE_QUERY, "type"), (SCHEMA_FORMAT_QUERY, "format")):
            method = decl.find_method(self.program, query)
            if method is None:
                continue
            for value_expr in method.return_values():
                value = constant_value(self.program, method.module, value_expr)
                if isinstance(value, (list, tuple)) and value:
                    value = value[0]
                if isinstance(value, str):
                    setattr(schema, attr, value)
                    defined = True
                    break
        return schema if defined else None

    def _is_binary_class(self, decl: ClassDecl) -> bool:
        return any(TypeHintAnalyzer.is_binary_base(a.qualname) for a in decl.ancestors(self.program))

    def _apply_enum(self, decl: Declaration, schema: SchemaNode):
        values = self.enum_scanner.enum_of(decl)
        if not values:
            return
        labels: Dict[str, str] = {}
        lines = [">"]
        schema.enum = []
        for item in values:
            schema.enum.append(item.value)
            labels[_enum_key(item.value)] = item.label
            lines.append(f"* `{_enum_key(item.value)}` - {item.label}")
        schema.type = TypeHintAnalyzer.schema_type_of_value(values[0].value)
        schema.add_extension(X_ENUM_LABELS, labels)
        schema.description = "\n".join(lines) + "\n"

    # -------------------------------------------------------------------------
    # Type compilation
    # -------------------------------------------------------------------------

    def get_schema_by_type(self, type_node: TypeNode) -> SchemaNode:
        """
        Compile a type node.

        Raises:
            UnsupportedTypeError: primitive outside the known table
            UnsupportedMapKeyError: mapping keyed by anything but strings
        """
        if isinstance(type_node, Named):
            return SchemaNode.ref_to(self.def_(type_node.decl))

        if isinstance(type_node, Interface):
            return SchemaNode()

        if isinstance(type_node, Basic):
            return self._basic_schema(type_node.name)

        if isinstance(type_node, Pointer):
            count = 1
            elem = type_node.elem
            while isinstance(elem, Pointer):
                elem = elem.elem
                count += 1
            schema = self.get_schema_by_type(elem)
            schema.add_extension(X_STAR_LEVEL, count)
            return schema

        if isinstance(type_node, Map):
            key_schema = self.get_schema_by_type(type_node.key_type)
            if key_schema.type and key_schema.type != "string":
                raise UnsupportedMapKeyError(
                    f"only string-keyed mappings are supported, got key type {type_node.key_type}"
                )
            return SchemaNode.map_of(self.get_schema_by_type(type_node.elem))

        if isinstance(type_node, Slice):
            return SchemaNode.array_of(self.get_schema_by_type(type_node.elem))

        if isinstance(type_node, Array):
            schema = SchemaNode.array_of(self.get_schema_by_type(type_node.elem))
            schema.min_items = type_node.length
            schema.max_items = type_node.length
            return schema

        if isinstance(type_node, Struct):
            return self._struct_schema(type_node)

        raise UnsupportedTypeError(f"unsupported type {type_node}")

    def _basic_schema(self, name: str) -> SchemaNode:
        if name == "None":
            return SchemaNode()
        if TypeHintAnalyzer.is_binary(name):
            return SchemaNode.binary()
        mapped = TypeHintAnalyzer.schema_type(name)
        if mapped is None:
            raise UnsupportedTypeError(f"unsupported type {name}")
        return SchemaNode(*mapped)

    def _struct_schema(self, struct: Struct) -> SchemaNode:
        struct_schema = SchemaNode.object()
        schemas: List[SchemaNode] = []

        for base in struct.embedded:
            if isinstance(base, ExternalDecl):
                if TypeHintAnalyzer.is_binary_base(base.qualname):
                    return SchemaNode.binary()
                continue
            if not isinstance(base, ClassDecl) or self._is_framework_class(base):
                continue
            if self._is_binary_class(base):
                return SchemaNode.binary()
            schemas.append(self.get_schema_by_type(Named(base)))

        for item in struct.fields:
            if not item.exported:
                continue
            name, flags = tag_value_and_flags(item.tag("json") or item.tag("name"))
            if name == "-":
                continue
            if not name:
                name = item.name

            type_node = resolve_annotation(self.program, item.owner.module, item.annotation)
            try:
                prop = self.prop_schema_by_field(item, type_node, name, flags)
            except FatalConfigError as e:
                if e.declaration is None:
                    e.declaration = f"{item.owner.qualname}.{item.name}"
                raise
            struct_schema.set_property(name, prop, required=self.is_required(item))

        if schemas:
            return SchemaNode.all_of_schemas(*schemas, struct_schema)
        return struct_schema

    def _is_framework_class(self, decl: ClassDecl) -> bool:
        vocabulary = self.vocabulary
        names: Set[str] = set(vocabulary.method_mixins) | set(vocabulary.type_mixins)
        names |= set(vocabulary.status_error_bases)
        return decl.name in names or decl.is_enum(self.program)

    @staticmethod
    def is_required(item: Field) -> bool:
        value, flags = tag_value_and_flags(item.tag("validate"))
        if value == "required" or flags.get("required"):
            return True
        return item.tags.get("required") is True

    def prop_schema_by_field(self, item: Optional[Field], type_node: TypeNode, name: str = "",
                             flags: Optional[Dict[str, bool]] = None) -> SchemaNode:
        """
        Property schema with field-level metadata.

        References cannot carry siblings, so a referenced type becomes
        ``allOf[ref, {description, default, ...}]`` when there is metadata.
        """
        prop = self.get_schema_by_type(type_node)
        ref_schema = None
        if prop.ref is not None:
            ref_schema = prop
            prop = SchemaNode()
            prop.extensions = ref_schema.extensions
            ref_schema.extensions = {}

        if flags and flags.get("string"):
            prop.type = "string"

        if item is not None:
            default = item.tags.get("default", item.default)
            if default is not NO_DEFAULT and default is not None and default is not UNRESOLVED and default != "":
                prop.default = default
            if name and name != item.name:
                prop.add_extension(X_FIELD_NAME, item.name)
            if item.tag("validate"):
                prop.add_extension(X_TAG_VALIDATE, item.tag("validate"))
            set_meta_from_doc(prop, item.doc)

        if ref_schema is not None:
            if prop.is_empty():
                return ref_schema
            return SchemaNode.all_of_schemas(ref_schema, prop)
        return prop

    # -------------------------------------------------------------------------
    # Binding
    # -------------------------------------------------------------------------

    def assign_names(self):
        """Give every definition a unique, deterministic component name."""
        taken: Set[str] = set()
        ordered = sorted(self.definitions.values(), key=lambda d: (d.external, d.key))
        for definition in ordered:
            if definition.external:
                name = upper_camel(definition.module_path) + definition.simple_name
            else:
                name = definition.simple_name
                parts = [p for p in definition.module_path.split(".") if p]
                count = 1
                while name in taken:
                    if count <= len(parts):
                        name = upper_camel(parts[-count]) + name
                    else:
                        name = f"{name}{count}"
                    count += 1
            taken.add(name)
            definition.name = name

    def bind_schemas(self, document: Document):
        self.assign_names()
        for definition in self.definitions.values():
            schema = definition.schema
            add_extension(schema, X_STRUCT_NAME, definition.name)
            if definition.external:
                add_extension(schema, X_VENDOR_TYPE, definition.key)
            document.add_schema(definition.name, schema)
        logger.info(f"Bound {len(self.definitions)} schemas")


def _enum_key(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    return str(value)
