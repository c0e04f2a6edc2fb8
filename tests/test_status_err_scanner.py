"""Tests for error reachability and custom error formatters."""

import pytest

from scanners import ErrorFormatterScanner, StatusErr, StatusErrScanner
from scanners.base import dedupe_status_errors

SERVICE = {
    "errors.py": """
        from courier.statuserror import StatusError

        class UserError(StatusError):
            # @errzh 用户不存在
            # @erren user not found
            UserNotFound = 404000001
            # @errzh 参数错误
            BadRequest = 400000001
            _internal = 1
    """,
    "service.py": """
        from courier.statuserror import wrap

        from errors import UserError

        def find_user(user_id):
            if user_id is None:
                raise UserError.UserNotFound.as_error()
            return user_id

        def check(user):
            find_user(user.id)
            if not user.name:
                raise wrap(ValueError(), 400, "EmptyName", "name is empty", "fill in a name")
            if user.age < 0:
                raise wrap(ValueError(), user.age, "BadAge", "bad age")
            raise UserError.BadRequest.as_error()

        def save(user):
            \"\"\"
            @err[Conflict][409000001][user exists]
            \"\"\"
            check(user)
            find_user(user.id)
            return save(user)

        class Repo:
            def load(self, user_id):
                return self.lookup(user_id)

            def lookup(self, user_id):
                return find_user(user_id)
    """,
}

CYCLE = {
    "flow.py": """
        from courier.statuserror import wrap

        def first(step):
            if step > 3:
                raise wrap(ValueError(), 400, "First", "first failed")
            return second(step + 1)

        def second(step):
            if step > 3:
                raise wrap(ValueError(), 404, "Second", "second failed")
            return first(step + 1)

        def handler(step):
            return second(step)
    """,
}


def scanner_for(load_project, files=SERVICE):
    program = load_project(files)
    return program, StatusErrScanner(program)


class TestStatusErrorDeclarations:
    def test_members_and_messages(self, load_project):
        _, scanner = scanner_for(load_project)
        assert scanner.status_errors["errors.UserError.UserNotFound"] == StatusErr(
            "UserNotFound", 404000001, {"zh": "用户不存在", "en": "user not found"}
        )
        assert scanner.status_errors["errors.UserError.BadRequest"].messages == {"zh": "参数错误"}
        assert "errors.UserError._internal" not in scanner.status_errors

    def test_status_code_and_summary(self):
        err = StatusErr("UserNotFound", 404000001)
        assert err.status_code() == 404
        assert err.summary() == "[UserNotFound][404000001]"


class TestReachability:
    def test_transitive_errors_are_deduplicated_and_sorted(self, load_project):
        program, scanner = scanner_for(load_project)
        save = program.modules["service"].decls["save"]
        errors = scanner.status_errors_in_func(save)
        assert [e.summary() for e in errors] == [
            "[EmptyName][400000000]",
            "[BadRequest][400000001]",
            "[UserNotFound][404000001]",
            "[Conflict][409000001]",
        ]

    def test_wrap_messages(self, load_project):
        program, scanner = scanner_for(load_project)
        check = program.modules["service"].decls["check"]
        (empty_name,) = [e for e in scanner.status_errors_in_func(check) if e.key == "EmptyName"]
        assert empty_name.messages == {"zh": "name is empty\nfill in a name"}

    def test_non_literal_wrap_is_skipped(self, load_project):
        program, scanner = scanner_for(load_project)
        check = program.modules["service"].decls["check"]
        assert "BadAge" not in {e.key for e in scanner.status_errors_in_func(check)}

    def test_results_are_memoized(self, load_project):
        program, scanner = scanner_for(load_project)
        find_user = program.modules["service"].decls["find_user"]
        first = scanner.status_errors_in_func(find_user)
        assert scanner.status_errors_in_func(find_user) is first
        assert scanner.errors_used["service.find_user"] is first

    def test_methods_through_self(self, load_project):
        program, scanner = scanner_for(load_project)
        load = program.modules["service"].decls["Repo"].methods["load"]
        assert [e.key for e in scanner.status_errors_in_func(load)] == ["UserNotFound"]

    @pytest.mark.parametrize("order", [
        ["first", "second", "handler"],
        ["handler", "first", "second"],
        ["second", "handler", "first"],
    ])
    def test_call_cycles_share_one_result(self, load_project, order):
        program, scanner = scanner_for(load_project, CYCLE)
        decls = program.modules["flow"].decls
        results = {name: scanner.status_errors_in_func(decls[name]) for name in order}
        for name in order:
            assert [e.key for e in results[name]] == ["First", "Second"]

    def test_dedupe_keeps_first_messages(self):
        errors = dedupe_status_errors([
            StatusErr("B", 2, {"zh": "b"}),
            StatusErr("A", 1, {"zh": "a"}),
            StatusErr("A", 1, {"zh": "other", "en": "a"}),
        ])
        assert [e.identity() for e in errors] == [("A", 1), ("B", 2)]
        assert errors[0].messages == {"zh": "a", "en": "a"}


class TestErrorFormatter:
    def test_formatter_with_error_field_and_status_map(self, load_project):
        program = load_project({
            "formatters.py": """
                from dataclasses import dataclass, field

                from courier import register_error_formatter

                class Plain:
                    code: int

                @dataclass
                class ErrorBody:
                    code: int = field(metadata={"json": "code", "error": "code"})
                    message: str = field(metadata={"json": "message"})

                    def status_code_map(self):
                        return {400000001: 422, 404000002: 410}

                register_error_formatter(Plain())
                register_error_formatter(ErrorBody())
            """,
        })
        scanner = ErrorFormatterScanner(program)
        formatter = scanner.scan()
        assert formatter.qualname == "formatters.ErrorBody"
        assert scanner.status_code_map == {400000001: 422, 404000002: 410}
        assert scanner.scan() is formatter

    def test_no_formatter(self, load_project):
        scanner = ErrorFormatterScanner(load_project({"m.py": "x = 1\n"}))
        assert scanner.scan() is None
        assert scanner.status_code_map == {}
