"""
Exec command models.

Kubernetes clients send exec requests as a raw query string with the
``command`` key repeated, e.g. ``?command=add&command=1&command=2``. The first
value names the exported function, every later value is one positional
argument.
"""

from typing import Tuple
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field

from wasilet.exceptions import ParseError


class Command(BaseModel):
    """A function invocation request: export name plus string arguments."""

    model_config = ConfigDict(frozen=True)

    function: str = Field(..., description="Name of the exported function to execute")
    args: Tuple[str, ...] = Field(default=(), description="Positional arguments, in order")

    @classmethod
    def parse(cls, text: str) -> "Command":
        """
        Parse a shell-like command string.

        Args:
            text: Whitespace separated command, e.g. "add 1 2"

        Returns:
            Command with the first token as function name

        Raises:
            ParseError: If the string holds no tokens
        """
        tokens = text.split()
        if not tokens:
            raise ParseError("Cannot parse an empty command")
        return cls(function=tokens[0], args=tuple(tokens[1:]))

    def __str__(self) -> str:
        return " ".join((self.function,) + self.args)


class CommandOptions(BaseModel):
    """
    Exec query options.

    The stdio/tty flags are accepted for protocol compatibility and are
    reserved: nothing enforces them yet.
    """

    model_config = ConfigDict(frozen=True)

    command: Command
    stdin: bool = False
    stderr: bool = False
    stdout: bool = False
    tty: bool = False


def parse_exec_query(query: str) -> CommandOptions:
    """
    Parse a raw exec query string.

    Pairs are not de-duplicated. Keys other than ``command`` are ignored.

    Args:
        query: Raw query string without the leading "?"

    Returns:
        CommandOptions with all stdio/tty flags left at their defaults

    Raises:
        ParseError: If a pair lacks a key or value, or no command key is present
    """
    function = None
    args = []

    for pair in query.split("&"):
        key, separator, value = pair.partition("=")
        if not key:
            raise ParseError("Cannot get the query key")
        if not separator or not value:
            raise ParseError(f"Cannot get the query value for key {key}")

        # TODO: honour stdin/stdout/stderr/tty once streaming exec is supported
        if key != "command":
            continue

        value = unquote(value.split("=")[0])
        if function is None:
            function = value
        else:
            args.append(value)

    if function is None:
        raise ParseError("Error while parsing the exec query string")

    return CommandOptions(command=Command(function=function, args=tuple(args)))
