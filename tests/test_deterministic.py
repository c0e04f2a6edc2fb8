"""Tests for the table- and pattern-driven helpers."""

import ast

import pytest

from scanners.deterministic import (
    DocstringParser,
    ResponseBuilderAnalyzer,
    StatusCodeAnalyzer,
    TypeHintAnalyzer,
)
from typeindex import UNRESOLVED


class TestDocstringParser:
    def test_summary_and_description(self):
        doc = "List users\n\nReturns a page of users.\nSorted by name.\n"
        parsed = DocstringParser.parse(doc)
        assert parsed["summary"] == "List users"
        assert parsed["description"] == "Returns a page of users.\nSorted by name."
        assert parsed["deprecated"] is False

    def test_directives_are_dropped(self):
        doc = "Delete a user\n\n@deprecated\n@err[NotFound][404000001][missing]\nopenapi:strfmt uuid"
        parsed = DocstringParser.parse(doc)
        assert parsed["summary"] == "Delete a user"
        assert parsed["description"] == ""
        assert parsed["deprecated"] is True

    def test_empty_doc(self):
        assert DocstringParser.parse(None) == {"summary": "", "description": "", "deprecated": False}
        assert DocstringParser.description("") == ""

    def test_schema_directives(self):
        assert DocstringParser.strfmt("ID of a user\nopenapi:strfmt uuid") == "uuid"
        assert DocstringParser.strfmt("open-api:strfmt date") == "date"
        assert DocstringParser.schema_type("openapi:type string") == "string"
        assert DocstringParser.strfmt("plain text") == ""

    def test_response_status(self):
        assert DocstringParser.response_status("Accepted\n@response 202") == 202
        assert DocstringParser.response_status("no directive") is None

    def test_status_error_summaries(self):
        doc = "@err[NotFound][404000001][user not found]\n@err[Conflict][409000002][]"
        found = DocstringParser.status_error_summaries(doc, "en")
        assert found == [
            {"key": "NotFound", "code": 404000001, "messages": {"en": "user not found"}},
            {"key": "Conflict", "code": 409000002, "messages": {"en": ""}},
        ]

    def test_error_messages(self):
        doc = "@errzh 用户不存在\n@erren user not found\n@err[X][1][y]"
        assert DocstringParser.error_messages(doc) == {"zh": "用户不存在", "en": "user not found"}
        assert DocstringParser.error_messages("@err missing user", "zh") == {"zh": "missing user"}


class TestTypeHintAnalyzer:
    @pytest.mark.parametrize("name,expected", [
        ("int", ("integer", "int64")),
        ("float", ("number", "double")),
        ("bool", ("boolean", "")),
        ("str", ("string", "")),
        ("datetime.datetime", ("string", "date-time")),
        ("uuid.UUID", ("string", "uuid")),
    ])
    def test_primitive_table(self, name, expected):
        assert TypeHintAnalyzer.schema_type(name) == expected

    def test_unknown_primitive(self):
        assert TypeHintAnalyzer.schema_type("complex") is None

    def test_binary_types(self):
        assert TypeHintAnalyzer.is_binary("typing.BinaryIO")
        assert TypeHintAnalyzer.is_binary_base("io.BytesIO")
        assert not TypeHintAnalyzer.is_binary("str")

    def test_schema_type_of_value(self):
        assert TypeHintAnalyzer.schema_type_of_value(True) == "boolean"
        assert TypeHintAnalyzer.schema_type_of_value(3) == "integer"
        assert TypeHintAnalyzer.schema_type_of_value(1.5) == "number"
        assert TypeHintAnalyzer.schema_type_of_value("a") == "string"


class TestStatusCodeAnalyzer:
    def test_default_success_status(self):
        assert StatusCodeAnalyzer.default_success_status("POST") == 201
        assert StatusCodeAnalyzer.default_success_status("get") == 200

    def test_error_status(self):
        assert StatusCodeAnalyzer.error_status(404, 404000001) == 404
        assert StatusCodeAnalyzer.error_status(200, 200000001) == 500
        assert StatusCodeAnalyzer.error_status(400, 400000001, {400000001: 422}) == 422

    def test_descriptions(self):
        assert StatusCodeAnalyzer.get_standard_description(204) == "No Content"
        assert StatusCodeAnalyzer.get_standard_description(299) == "HTTP 299"
        assert StatusCodeAnalyzer.is_redirect(302)
        assert not StatusCodeAnalyzer.is_redirect(200)

    def test_reason_phrase_table(self):
        assert StatusCodeAnalyzer.STANDARD_CODES[404] == "Not Found"
        assert all(isinstance(v, str) for v in StatusCodeAnalyzer.STANDARD_CODES.values())


class TestResponseBuilderAnalyzer:
    @staticmethod
    def analyze(source, names=None):
        expr = ast.parse(source, mode="eval").body

        def evaluate(node):
            if isinstance(node, ast.Constant):
                return node.value
            return UNRESOLVED

        return ResponseBuilderAnalyzer.analyze(expr, evaluate, names)

    def test_builders(self):
        facts = self.analyze("with_status_code(202, with_content_type('text/csv', with_schema(Report)))")
        assert facts["status_code"] == 202
        assert facts["content_type"] == "text/csv"
        assert isinstance(facts["schema_expr"], ast.Name)
        assert facts["schema_expr"].id == "Report"
        assert facts["attachment"] is False

    def test_attachment_content_type(self):
        facts = self.analyze("new_attachment('a.png', 'image/png')")
        assert facts["attachment"] is True
        assert facts["content_type"] == "image/png"

        facts = self.analyze("new_attachment(name, kind)")
        assert facts["content_type"] == "application/octet-stream"

    def test_non_constant_status_is_ignored(self):
        assert self.analyze("with_status_code(code)")["status_code"] is None

    def test_renamed_builders(self):
        facts = self.analyze("respond_with(201)", {"with_status_code": "respond_with"})
        assert facts["status_code"] == 201
        assert self.analyze("with_status_code(201)", {"with_status_code": "respond_with"})["status_code"] is None
