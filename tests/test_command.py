"""
Tests for exec command parsing.

Tests cover:
- Command.parse for shell-like strings
- parse_exec_query for the repeated-key query encoding
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from wasilet.exceptions import ParseError
from wasilet.modules.exec import Command, CommandOptions, parse_exec_query


class TestCommandParse:
    """Tests for Command.parse."""

    def test_function_and_args(self):
        command = Command.parse("add 1 2")
        assert command.function == "add"
        assert command.args == ("1", "2")

    def test_function_only(self):
        command = Command.parse("start")
        assert command.function == "start"
        assert command.args == ()

    def test_extra_whitespace_is_ignored(self):
        assert Command.parse("  add\t1   2 \n") == Command(function="add", args=("1", "2"))

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_empty_string_fails(self, text):
        with pytest.raises(ParseError):
            Command.parse(text)

    def test_str_joins_tokens(self):
        assert str(Command(function="add", args=("1", "2"))) == "add 1 2"

    def test_command_is_immutable(self):
        command = Command.parse("add 1 2")
        with pytest.raises(Exception):
            command.function = "sub"


class TestParseExecQuery:
    """Tests for parse_exec_query."""

    def test_repeated_command_keys(self):
        options = parse_exec_query("command=add&command=1&command=2")
        assert isinstance(options, CommandOptions)
        assert options.command == Command(function="add", args=("1", "2"))

    def test_flags_stay_at_defaults(self):
        options = parse_exec_query("command=add&stdout=true&tty=true")
        assert options.stdin is False
        assert options.stdout is False
        assert options.stderr is False
        assert options.tty is False

    def test_other_keys_are_ignored(self):
        options = parse_exec_query("stdout=1&command=add&container=x&command=7")
        assert options.command == Command(function="add", args=("7",))

    def test_duplicate_values_are_kept(self):
        options = parse_exec_query("command=add&command=1&command=1")
        assert options.command.args == ("1", "1")

    def test_values_are_percent_decoded(self):
        options = parse_exec_query("command=echo&command=hello%20world")
        assert options.command.args == ("hello world",)

    def test_no_command_key_fails(self):
        with pytest.raises(ParseError):
            parse_exec_query("foo=bar")

    def test_missing_separator_fails(self):
        with pytest.raises(ParseError):
            parse_exec_query("command")

    def test_missing_value_fails(self):
        with pytest.raises(ParseError):
            parse_exec_query("command=add&command=")

    def test_missing_key_fails(self):
        with pytest.raises(ParseError):
            parse_exec_query("=add")

    def test_empty_query_fails(self):
        with pytest.raises(ParseError):
            parse_exec_query("")
