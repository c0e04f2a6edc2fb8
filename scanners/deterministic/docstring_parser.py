#!/usr/bin/env python3
"""
Docstring Parser
=================
Extract summaries, descriptions and generator directives from docstrings and
comment blocks.

Directives are lines starting with ``@`` (``@deprecated``, ``@err[...]``,
``@errzh ...``, ``@response 202``) or ``openapi:`` markers. They never show up
in summaries or descriptions.
"""

import logging
import re
from typing import Any, Dict, List, Optional

logger = logging.getLogger("routescan.deterministic.docstring_parser")


class DocstringParser:
    """
    Extract structured information from docstrings and comment blocks.
    """

    # @err[UserNotFound][404000001][user not found]
    STATUS_ERR_PATTERN = re.compile(r"\[([^\[\]]+)\]\[(-?\d+)\]\[([^\[\]]*)\](!)?")

    # @errzh 用户不存在 / @erren user not found
    ERR_MESSAGE_PATTERN = re.compile(r"^@err([A-Za-z_-]*)\s+(.+)$")

    STRFMT_PATTERN = re.compile(r"open-?api:strfmt\s+(\S+)")
    TYPE_PATTERN = re.compile(r"open-?api:type\s+(\S+)")
    RESPONSE_PATTERN = re.compile(r"^@response\s+(\d{3})\b")

    @staticmethod
    def lines(doc: Optional[str]) -> List[str]:
        return [line.strip() for line in (doc or "").splitlines()]

    @staticmethod
    def filter_marked_lines(lines: List[str]) -> List[str]:
        """Drop directive lines."""
        return [
            line for line in lines
            if not line.startswith("@") and not DocstringParser.STRFMT_PATTERN.search(line)
            and not DocstringParser.TYPE_PATTERN.search(line)
        ]

    @staticmethod
    def parse(doc: Optional[str]) -> Dict[str, Any]:
        """
        Split a docstring into summary and description.

        Returns:
            Dictionary with summary, description and deprecated
        """
        lines = DocstringParser.lines(doc)
        deprecated = any("@deprecated" in line for line in lines)
        text = DocstringParser.filter_marked_lines(lines)
        while text and not text[0]:
            text.pop(0)
        while text and not text[-1]:
            text.pop()

        summary = text[0] if text else ""
        rest = text[1:]
        while rest and not rest[0]:
            rest.pop(0)

        return {
            "summary": summary,
            "description": "\n".join(rest),
            "deprecated": deprecated,
        }

    @staticmethod
    def description(doc: Optional[str]) -> str:
        """Whole doc text without directive lines."""
        text = DocstringParser.filter_marked_lines(DocstringParser.lines(doc))
        return "\n".join(text).strip()

    @staticmethod
    def is_deprecated(doc: Optional[str]) -> bool:
        return "@deprecated" in (doc or "")

    @staticmethod
    def strfmt(doc: Optional[str]) -> str:
        match = DocstringParser.STRFMT_PATTERN.search(doc or "")
        return match.group(1) if match else ""

    @staticmethod
    def schema_type(doc: Optional[str]) -> str:
        match = DocstringParser.TYPE_PATTERN.search(doc or "")
        return match.group(1) if match else ""

    @staticmethod
    def response_status(doc: Optional[str]) -> Optional[int]:
        """Status code from an explicit ``@response <code>`` line."""
        for line in DocstringParser.lines(doc):
            match = DocstringParser.RESPONSE_PATTERN.match(line)
            if match:
                return int(match.group(1))
        return None

    @staticmethod
    def status_error_summaries(doc: Optional[str], locale: str = "zh") -> List[Dict[str, Any]]:
        """
        Pick ``[key][code][message]`` triples out of doc lines.

        Returns:
            List of dicts with key, code and messages
        """
        found = []
        for line in DocstringParser.lines(doc):
            if not line:
                continue
            match = DocstringParser.STATUS_ERR_PATTERN.search(line)
            if match:
                found.append({
                    "key": match.group(1),
                    "code": int(match.group(2)),
                    "messages": {locale: match.group(3)},
                })
        return found

    @staticmethod
    def error_messages(doc: Optional[str], default_locale: str = "zh") -> Dict[str, str]:
        """``@err<lang> message`` lines as a locale map."""
        messages = {}
        for line in DocstringParser.lines(doc):
            match = DocstringParser.ERR_MESSAGE_PATTERN.match(line)
            if match and not line.startswith("@err["):
                messages[match.group(1) or default_locale] = match.group(2).strip()
        return messages
