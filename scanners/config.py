"""
Generator configuration.

Loaded from environment variables, a JSON/YAML file, or CLI arguments, in the
same layered way the scanner CLI has always worked.
"""

import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Set

import yaml

from typeindex import DEFAULT_IGNORE_DIRS

ENV_PREFIX = "ROUTESCAN_"


@dataclass
class Vocabulary:
    """Names the analyzed framework uses for its building blocks."""
    router_types: List[str] = field(default_factory=lambda: ["Router"])
    group_function: str = "Group"
    register_method: str = "register"
    serve_functions: List[str] = field(default_factory=lambda: ["run_server", "start"])
    entry_function: str = "main"

    output_method: str = "output"
    method_query: str = "method"
    path_query: str = "path"
    type_query: str = "type"
    content_type_query: str = "content_type"
    status_code_query: str = "status_code"

    method_mixins: Dict[str, str] = field(default_factory=lambda: {
        "MethodGet": "GET",
        "MethodPost": "POST",
        "MethodPut": "PUT",
        "MethodPatch": "PATCH",
        "MethodDelete": "DELETE",
        "MethodOptions": "OPTIONS",
        "MethodHead": "HEAD",
    })
    type_mixins: Dict[str, str] = field(default_factory=lambda: {
        "MiddlewareType": "middleware",
        "APIKeySecurityType": "apiKey",
        "HTTPBasicAuthSecurityType": "basicAuth",
        "HTTPBearerJWTSecurityType": "bearerJWT",
    })

    status_error_bases: List[str] = field(default_factory=lambda: ["StatusError"])
    wrap_function: str = "wrap"
    error_formatter_register: str = "register_error_formatter"
    status_code_map_method: str = "status_code_map"

    with_schema: str = "with_schema"
    with_status_code: str = "with_status_code"
    with_content_type: str = "with_content_type"
    new_attachment: str = "new_attachment"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Vocabulary":
        vocabulary = cls()
        for key, value in (data or {}).items():
            if hasattr(vocabulary, key):
                setattr(vocabulary, key, value)
        return vocabulary


@dataclass
class GeneratorConfig:
    """
    Generator configuration with sensible defaults.
    Can be loaded from environment variables, config file, or CLI args.
    """
    title: str = "API"
    version: str = "1.0.0"
    servers: List[str] = field(default_factory=list)

    # Output options
    output_file: str = "openapi.json"
    output_format: str = "json"  # json, yaml

    # Scanning options
    entry_module: Optional[str] = None
    ignore_dirs: Set[str] = field(default_factory=set)
    default_locale: str = "zh"
    fail_on_skipped: bool = False

    log_level: str = "INFO"
    log_file: Optional[str] = None

    vocabulary: Vocabulary = field(default_factory=Vocabulary)

    def __post_init__(self):
        """Apply default ignore dirs if not set."""
        if not self.ignore_dirs:
            self.ignore_dirs = set(DEFAULT_IGNORE_DIRS)
        if isinstance(self.vocabulary, dict):
            self.vocabulary = Vocabulary.from_dict(self.vocabulary)

    @classmethod
    def from_env(cls) -> "GeneratorConfig":
        """Load configuration from environment variables."""
        servers = os.getenv(f"{ENV_PREFIX}SERVERS", "")
        return cls(
            title=os.getenv(f"{ENV_PREFIX}TITLE", "API"),
            version=os.getenv(f"{ENV_PREFIX}VERSION", "1.0.0"),
            servers=[s.strip() for s in servers.split(",") if s.strip()],
            output_file=os.getenv(f"{ENV_PREFIX}OUTPUT", "openapi.json"),
            output_format=os.getenv(f"{ENV_PREFIX}FORMAT", "json"),
            entry_module=os.getenv(f"{ENV_PREFIX}ENTRY_MODULE"),
            default_locale=os.getenv(f"{ENV_PREFIX}LOCALE", "zh"),
            fail_on_skipped=os.getenv(f"{ENV_PREFIX}FAIL_ON_SKIPPED", "false").lower() == "true",
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
            log_file=os.getenv(f"{ENV_PREFIX}LOG_FILE"),
        )

    @classmethod
    def from_file(cls, path: str) -> "GeneratorConfig":
        """Load configuration from JSON or YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            if path.endswith((".yaml", ".yml")):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)

        if "ignore_dirs" in data and isinstance(data["ignore_dirs"], list):
            data["ignore_dirs"] = set(data["ignore_dirs"])
        if "vocabulary" in data:
            data["vocabulary"] = Vocabulary.from_dict(data["vocabulary"])

        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        data = asdict(self)
        data["ignore_dirs"] = sorted(self.ignore_dirs)
        return data
