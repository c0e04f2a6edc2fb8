#!/usr/bin/env python3
"""
Type Hint Analyzer
===================
Maps primitive Python types to OpenAPI (type, format) pairs.

- int → {"type": "integer", "format": "int64"}
- str → {"type": "string"}
- datetime.datetime → {"type": "string", "format": "date-time"}

Anything outside the table is not a primitive the generator can describe.
"""

import logging
from typing import Optional, Tuple

logger = logging.getLogger("routescan.deterministic.type_hint_analyzer")


class TypeHintAnalyzer:
    """
    Primitive type table keyed by qualified name.
    """

    TYPE_MAPPINGS = {
        # Built-in types
        "bool": ("boolean", ""),
        "int": ("integer", "int64"),
        "float": ("number", "double"),
        "str": ("string", ""),
        "bytes": ("string", "binary"),
        "bytearray": ("string", "binary"),

        # datetime types
        "datetime.datetime": ("string", "date-time"),
        "datetime.date": ("string", "date"),
        "datetime.time": ("string", "time"),
        "datetime.timedelta": ("string", "duration"),

        # Identifiers and numbers
        "uuid.UUID": ("string", "uuid"),
        "decimal.Decimal": ("number", ""),
        "ipaddress.IPv4Address": ("string", "ipv4"),
        "ipaddress.IPv6Address": ("string", "ipv6"),

        # Pydantic types
        "pydantic.EmailStr": ("string", "email"),
        "pydantic.HttpUrl": ("string", "uri"),
        "pydantic.AnyUrl": ("string", "uri"),
        "pydantic.SecretStr": ("string", "password"),
    }

    # Types that hold raw bytes
    BINARY_TYPES = {
        "typing.BinaryIO",
        "typing.IO",
        "io.BytesIO",
        "fastapi.UploadFile",
        "starlette.datastructures.UploadFile",
        "werkzeug.datastructures.FileStorage",
    }

    # Subclassing one of these turns a class into a binary payload
    BINARY_BASES = {
        "io.BytesIO",
        "io.IOBase",
        "io.RawIOBase",
        "io.BufferedIOBase",
        "typing.BinaryIO",
    }

    @staticmethod
    def schema_type(name: str) -> Optional[Tuple[str, str]]:
        """
        Look up a primitive.

        Args:
            name: Qualified type name (``int``, ``datetime.datetime``)

        Returns:
            (type, format) tuple or None for unknown names
        """
        return TypeHintAnalyzer.TYPE_MAPPINGS.get(name)

    @staticmethod
    def is_binary(name: str) -> bool:
        return name in TypeHintAnalyzer.BINARY_TYPES

    @staticmethod
    def is_binary_base(name: str) -> bool:
        return name in TypeHintAnalyzer.BINARY_BASES

    @staticmethod
    def schema_type_of_value(value) -> str:
        """OpenAPI type for a constant value."""
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, int):
            return "integer"
        if isinstance(value, float):
            return "number"
        return "string"
