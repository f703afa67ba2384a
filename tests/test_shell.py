"""Tests for utils/shell.py and utils/paths.py."""

from __future__ import annotations

from ruby_spec_runner.utils.paths import PathRewriteRule, remap_path
from ruby_spec_runner.utils.shell import (
    ShellDialect,
    change_directory,
    cmd_join,
    double_quote,
    echo_to_file,
    output_redirect,
    quote,
    stringify_envs,
)

POSIX = ShellDialect.POSIX
FISH = ShellDialect.FISH
CMD = ShellDialect.CMD


class TestShellDialect:
    def test_parse_is_case_insensitive(self) -> None:
        assert ShellDialect.parse("Fish") is FISH
        assert ShellDialect.parse(" posix ") is POSIX

    def test_parse_unknown(self) -> None:
        assert ShellDialect.parse("tcsh") is None

    def test_separators(self) -> None:
        assert POSIX.separator == " && "
        assert FISH.separator == "; "
        assert CMD.separator == " && "


class TestQuote:
    def test_posix_plain(self) -> None:
        assert quote("/proj/spec/a_spec.rb") == "'/proj/spec/a_spec.rb'"

    def test_posix_single_quote(self) -> None:
        assert quote("it's", POSIX) == "'it'\\''s'"

    def test_fish_escapes_backslash_and_quote(self) -> None:
        assert quote("a'b\\c", FISH) == "'a\\'b\\\\c'"

    def test_cmd_doubles_double_quotes(self) -> None:
        assert quote('a"b', CMD) == '"a""b"'


class TestCmdJoin:
    def test_skips_empty_commands(self) -> None:
        assert cmd_join("a", "", "b") == "a && b"

    def test_fish(self) -> None:
        assert cmd_join("a", "b", dialect=FISH) == "a; b"

    def test_nothing_to_join(self) -> None:
        assert cmd_join("", "") == ""


class TestStringifyEnvs:
    def test_empty(self) -> None:
        assert stringify_envs({}) == ""
        assert stringify_envs(None) == ""

    def test_posix_quotes_only_when_needed(self) -> None:
        envs = {"RAILS_ENV": "test", "GREETING": "hello world"}
        assert stringify_envs(envs) == "RAILS_ENV=test GREETING='hello world'"

    def test_fish_uses_assignments(self) -> None:
        assert stringify_envs({"A": "1"}, FISH) == "A=1"

    def test_cmd_uses_set(self) -> None:
        envs = {"A": "1", "B": "two words"}
        assert stringify_envs(envs, CMD) == 'set "A=1" && set "B=two words" &&'


class TestRedirection:
    def test_tee_append(self) -> None:
        assert output_redirect("/tmp/out.txt") == "| tee -a '/tmp/out.txt'"

    def test_tee_truncate(self) -> None:
        assert output_redirect("/tmp/out.txt", append=False) == "| tee '/tmp/out.txt'"

    def test_cmd_redirect(self) -> None:
        assert output_redirect("C:\\out.txt", CMD) == '>> "C:\\out.txt"'

    def test_echo_truncates_by_default(self) -> None:
        assert echo_to_file("/proj/a.rb", "/tmp/o") == "echo '/proj/a.rb' > '/tmp/o'"

    def test_echo_append(self) -> None:
        assert echo_to_file("[1,2]", "/tmp/o", append=True) == "echo '[1,2]' >> '/tmp/o'"

    def test_cmd_echo_escapes_metacharacters(self) -> None:
        assert echo_to_file("a&b", "o.txt", CMD) == 'echo a^&b> "o.txt"'


class TestChangeDirectory:
    def test_posix(self) -> None:
        assert change_directory("run", "/proj") == "cd '/proj' && run"

    def test_posix_isolated(self) -> None:
        assert change_directory("run", "/proj", isolate=True) == "(cd '/proj' && run)"

    def test_fish_never_uses_parentheses(self) -> None:
        assert change_directory("run", "/proj", FISH, isolate=True) == "cd '/proj'; run"

    def test_cmd(self) -> None:
        assert change_directory("run", "C:\\proj", CMD) == 'cd /d "C:\\proj" && run'

    def test_cmd_isolated(self) -> None:
        result = change_directory("run", "C:\\proj", CMD, isolate=True)
        assert result == 'pushd "C:\\proj" && run & popd'


class TestRemapPath:
    def test_first_matching_rule_applies(self) -> None:
        rules = [
            PathRewriteRule("/host/proj", "/container/proj"),
            PathRewriteRule("/host", "/other"),
        ]
        assert remap_path("/host/proj/spec/a_spec.rb", rules) == "/container/proj/spec/a_spec.rb"

    def test_no_rule_matches(self) -> None:
        rules = [PathRewriteRule("/elsewhere", "/x")]
        assert remap_path("/host/proj/a.rb", rules) == "/host/proj/a.rb"

    def test_no_rules(self) -> None:
        assert remap_path("/host/proj/a.rb", []) == "/host/proj/a.rb"

    def test_only_first_occurrence_is_replaced(self) -> None:
        rules = [PathRewriteRule("proj", "app")]
        assert remap_path("/proj/proj/a.rb", rules) == "/app/proj/a.rb"

    def test_empty_from_is_ignored(self) -> None:
        rules = [PathRewriteRule("", "/x")]
        assert remap_path("/a.rb", rules) == "/a.rb"


class TestDoubleQuote:
    def test_escapes_unescaped_quotes(self) -> None:
        assert double_quote('say "hi"') == '"say \\"hi\\""'

    def test_posix_escapes_expansions(self) -> None:
        assert double_quote("$HOME `id` a\\b") == '"\\$HOME \\`id\\` a\\\\b"'

    def test_fish_leaves_backticks(self) -> None:
        assert double_quote("$HOME `id`", FISH) == '"\\$HOME `id`"'

    def test_cmd_only_escapes_quotes(self) -> None:
        assert double_quote('$x "y"', CMD) == '"$x \\"y\\""'

    def test_pre_escaped_quote_is_kept(self) -> None:
        assert double_quote('a\\"b') == '"a\\"b"'
