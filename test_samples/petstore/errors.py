from dataclasses import dataclass, field

from courier import register_error_formatter


@dataclass
class ErrorResponse:
    """Error payload returned by every endpoint."""
    code: int = field(metadata={"json": "code", "error": "code"})
    message: str = field(metadata={"json": "message"})

    def status_code_map(self):
        return {400000001: 422}


register_error_formatter(ErrorResponse())
