"""
OpenAPI 3 document model.

Plain objects that are filled in by the scanners and serialized with
``to_dict()``. Schema references point at ``Definition`` holders so that
component names can be chosen after every type has been seen.
"""

from typing import Any, Dict, List, Optional

from typeindex import NO_DEFAULT

OPENAPI_VERSION = "3.0.3"

METHOD_ORDER = ["get", "put", "post", "delete", "options", "head", "patch", "trace"]

# =============================================================================
# SCHEMAS
# =============================================================================


class SchemaNode:
    """One JSON schema object."""

    def __init__(self, type: str = "", format: str = ""):
        self.type = type
        self.format = format
        self.description = ""
        self.default: Any = NO_DEFAULT
        self.deprecated = False
        self.properties: Dict[str, "SchemaNode"] = {}
        self.required: List[str] = []
        self.items: Optional["SchemaNode"] = None
        self.additional_properties: Optional["SchemaNode"] = None
        self.enum: List[Any] = []
        self.all_of: List["SchemaNode"] = []
        self.ref: Optional["Definition"] = None
        self.min_items: Optional[int] = None
        self.max_items: Optional[int] = None
        self.extensions: Dict[str, Any] = {}

    @classmethod
    def ref_to(cls, definition: "Definition") -> "SchemaNode":
        node = cls()
        node.ref = definition
        return node

    @classmethod
    def object(cls) -> "SchemaNode":
        return cls("object")

    @classmethod
    def binary(cls) -> "SchemaNode":
        return cls("string", "binary")

    @classmethod
    def array_of(cls, items: "SchemaNode") -> "SchemaNode":
        node = cls("array")
        node.items = items
        return node

    @classmethod
    def map_of(cls, elem: "SchemaNode") -> "SchemaNode":
        node = cls("object")
        node.additional_properties = elem
        return node

    @classmethod
    def all_of_schemas(cls, *schemas: "SchemaNode") -> "SchemaNode":
        node = cls()
        node.all_of = [s for s in schemas if s is not None]
        return node

    def set_property(self, name: str, schema: "SchemaNode", required: bool = False):
        self.properties[name] = schema
        if required and name not in self.required:
            self.required.append(name)

    def add_extension(self, key: str, value: Any):
        self.extensions[key] = value

    def update_from(self, other: "SchemaNode"):
        """Take over every attribute of ``other``."""
        self.__dict__.update(other.__dict__)

    def is_empty(self) -> bool:
        return self.to_dict() == {}

    def to_dict(self) -> Dict[str, Any]:
        if self.ref is not None:
            data: Dict[str, Any] = {"$ref": self.ref.ref_string()}
            data.update(self.extensions)
            return data

        data = {}
        if self.type:
            data["type"] = self.type
        if self.format:
            data["format"] = self.format
        if self.description:
            data["description"] = self.description
        if self.deprecated:
            data["deprecated"] = True
        if self.all_of:
            data["allOf"] = [s.to_dict() for s in self.all_of]
        if self.properties:
            data["properties"] = {k: v.to_dict() for k, v in self.properties.items()}
        if self.required:
            data["required"] = list(self.required)
        if self.items is not None:
            data["items"] = self.items.to_dict()
        if self.min_items is not None:
            data["minItems"] = self.min_items
        if self.max_items is not None:
            data["maxItems"] = self.max_items
        if self.additional_properties is not None:
            data["additionalProperties"] = self.additional_properties.to_dict()
        if self.enum:
            data["enum"] = list(self.enum)
        if self.default is not NO_DEFAULT:
            data["default"] = self.default
        data.update(self.extensions)
        return data


class Definition:
    """
    Component schema for one named type.

    ``schema`` is a placeholder until the type has been compiled; references
    created during compilation keep pointing at this holder.
    """

    def __init__(self, key: str, simple_name: str, module_path: str, external: bool = False):
        self.key = key
        self.simple_name = simple_name
        self.module_path = module_path
        self.schema = SchemaNode()
        self.external = external
        self.resolved = False
        self.name = ""

    def resolve(self, schema: SchemaNode):
        self.schema.update_from(schema)
        self.resolved = True

    def ref_string(self) -> str:
        return f"#/components/schemas/{self.name or self.key}"

    def __repr__(self) -> str:
        return f"Definition({self.key}, name={self.name!r})"


# =============================================================================
# OPERATIONS
# =============================================================================


class Parameter:
    def __init__(self, name: str, location: str, schema: SchemaNode, required: bool = False,
                 description: str = ""):
        self.name = name
        self.location = location
        self.schema = schema
        self.required = required
        self.description = description
        self.extensions: Dict[str, Any] = {}

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "in": self.location}
        if self.description:
            data["description"] = self.description
        if self.required:
            data["required"] = True
        data["schema"] = self.schema.to_dict()
        data.update(self.extensions)
        return data


class RequestBody:
    def __init__(self, content_type: str, schema: SchemaNode, required: bool = True):
        self.content: Dict[str, SchemaNode] = {content_type: schema}
        self.required = required

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.required:
            data["required"] = True
        data["content"] = {ct: {"schema": s.to_dict()} for ct, s in self.content.items()}
        return data


class Response:
    def __init__(self, description: str = ""):
        self.description = description
        self.content: Dict[str, SchemaNode] = {}
        self.extensions: Dict[str, Any] = {}

    def add_content(self, content_type: str, schema: SchemaNode):
        self.content[content_type] = schema

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"description": self.description}
        if self.content:
            data["content"] = {ct: {"schema": s.to_dict()} for ct, s in self.content.items()}
        data.update(self.extensions)
        return data


class Operation:
    def __init__(self):
        self.operation_id = ""
        self.summary = ""
        self.description = ""
        self.tags: List[str] = []
        self.deprecated = False
        self.parameters: Dict[str, Parameter] = {}
        self.request_body: Optional[RequestBody] = None
        self.responses: Dict[str, Response] = {}

    def add_parameter(self, parameter: Parameter) -> bool:
        """Add unless a parameter of the same name exists."""
        if parameter.name in self.parameters:
            return False
        self.parameters[parameter.name] = parameter
        return True

    def has_path_parameter(self, name: str) -> bool:
        parameter = self.parameters.get(name)
        return parameter is not None and parameter.location == "path"

    def response(self, status: int) -> Optional[Response]:
        return self.responses.get(str(status))

    def set_response(self, status: int, response: Response):
        self.responses[str(status)] = response

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.tags:
            data["tags"] = list(self.tags)
        if self.summary:
            data["summary"] = self.summary
        if self.description:
            data["description"] = self.description
        data["operationId"] = self.operation_id
        if self.parameters:
            data["parameters"] = [p.to_dict() for p in self.parameters.values()]
        if self.request_body is not None:
            data["requestBody"] = self.request_body.to_dict()
        data["responses"] = {k: self.responses[k].to_dict() for k in sorted(self.responses)}
        if self.deprecated:
            data["deprecated"] = True
        return data


# =============================================================================
# DOCUMENT
# =============================================================================


class SecurityScheme:
    def __init__(self, type: str, scheme: str = "", bearer_format: str = "",
                 name: str = "", location: str = ""):
        self.type = type
        self.scheme = scheme
        self.bearer_format = bearer_format
        self.name = name
        self.location = location

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type}
        if self.scheme:
            data["scheme"] = self.scheme
        if self.bearer_format:
            data["bearerFormat"] = self.bearer_format
        if self.name:
            data["name"] = self.name
        if self.location:
            data["in"] = self.location
        return data


class Document:
    def __init__(self, title: str = "API", version: str = "1.0.0"):
        self.title = title
        self.version = version
        self.servers: List[str] = []
        self.paths: Dict[str, Dict[str, Operation]] = {}
        self.schemas: Dict[str, SchemaNode] = {}
        self.security_schemes: Dict[str, SecurityScheme] = {}
        self.security: List[str] = []

    def add_server(self, url: str):
        if url not in self.servers:
            self.servers.append(url)

    def add_operation(self, method: str, path: str, operation: Operation):
        self.paths.setdefault(path, {})[method.lower()] = operation

    def add_schema(self, name: str, schema: SchemaNode):
        self.schemas[name] = schema

    def add_security_scheme(self, name: str, scheme: SecurityScheme):
        self.security_schemes[name] = scheme
        if name not in self.security:
            self.security.append(name)

    def operations(self):
        for path in sorted(self.paths):
            for method, operation in self.paths[path].items():
                yield method, path, operation

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "openapi": OPENAPI_VERSION,
            "info": {"title": self.title, "version": self.version},
        }
        if self.servers:
            data["servers"] = [{"url": url} for url in self.servers]

        paths: Dict[str, Any] = {}
        for path in sorted(self.paths):
            methods = self.paths[path]
            ordered = sorted(methods, key=lambda m: METHOD_ORDER.index(m) if m in METHOD_ORDER else len(METHOD_ORDER))
            paths[path] = {m: methods[m].to_dict() for m in ordered}
        data["paths"] = paths

        components: Dict[str, Any] = {}
        if self.schemas:
            components["schemas"] = {name: self.schemas[name].to_dict() for name in sorted(self.schemas)}
        if self.security_schemes:
            components["securitySchemes"] = {
                name: self.security_schemes[name].to_dict() for name in sorted(self.security_schemes)
            }
        if components:
            data["components"] = components
        if self.security:
            data["security"] = [{name: []} for name in sorted(self.security)]
        return data
