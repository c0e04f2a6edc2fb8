#!/usr/bin/env python3
"""
Status Code Analyzer
=====================
Standard HTTP status descriptions and the status rules the generator applies:
- default success status per method
- application error code → HTTP status bucket
"""

import logging
from typing import Dict, Optional

logger = logging.getLogger("routescan.deterministic.status_code_analyzer")


class StatusCodeAnalyzer:
    """
    Status code rules for generated responses.
    """

    # Standard HTTP reason phrases (RFC 7231 + common extensions)
    STANDARD_CODES: Dict[int, str] = {
        # 1xx Informational
        100: "Continue",
        101: "Switching Protocols",

        # 2xx Success
        200: "OK",
        201: "Created",
        202: "Accepted",
        204: "No Content",
        206: "Partial Content",

        # 3xx Redirection
        301: "Moved Permanently",
        302: "Found",
        303: "See Other",
        304: "Not Modified",
        307: "Temporary Redirect",
        308: "Permanent Redirect",

        # 4xx Client Errors
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        406: "Not Acceptable",
        409: "Conflict",
        410: "Gone",
        422: "Unprocessable Entity",
        429: "Too Many Requests",

        # 5xx Server Errors
        500: "Internal Server Error",
        501: "Not Implemented",
        502: "Bad Gateway",
        503: "Service Unavailable",
        504: "Gateway Timeout",
    }

    @staticmethod
    def get_standard_description(status_code: int) -> str:
        return StatusCodeAnalyzer.STANDARD_CODES.get(status_code, f"HTTP {status_code}")

    @staticmethod
    def default_success_status(method: str) -> int:
        """201 for POST, otherwise 200."""
        return 201 if (method or "").upper() == "POST" else 200

    @staticmethod
    def is_redirect(status_code: int) -> bool:
        return 300 <= status_code < 400

    @staticmethod
    def error_status(status_code: int, code: int, status_map: Optional[Dict[int, int]] = None) -> int:
        """
        HTTP status an application error is reported under.

        Args:
            status_code: Status derived from the error code itself
            code: Full application error code
            status_map: Optional code → status override from a custom formatter

        Returns:
            Status code, never below 400
        """
        if status_map and code in status_map:
            status_code = status_map[code]
        if status_code < 400:
            return 500
        return status_code
