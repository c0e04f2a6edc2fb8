"""
Exceptions raised while generating a document.

Fatal errors abort the whole run; operator errors only drop one endpoint.
"""

from typing import Optional


class RouteScanError(Exception):
    """Base class for generator errors."""

    def __init__(self, message: str, declaration: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.declaration = declaration

    def __str__(self) -> str:
        if self.declaration:
            return f"{self.message} (at {self.declaration})"
        return self.message


class FatalConfigError(RouteScanError):
    """The analyzed code cannot be described; no document is written."""


class UnsupportedTypeError(FatalConfigError):
    pass


class UnsupportedMapKeyError(FatalConfigError):
    pass


class DuplicateOperationIDError(FatalConfigError):
    pass


class OperatorError(RouteScanError):
    """A single operator could not be compiled."""


class MissingLocationTagError(OperatorError):
    pass
