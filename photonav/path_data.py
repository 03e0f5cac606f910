"""
Path data interpreter: tokenize an SVG path ``d`` string and evaluate it
into absolute coordinates.

Only the straight-line commands are evaluated (M, L, H, V, Z and their
relative forms).  Curve commands are tokenized so their arguments are
skipped correctly, but they produce no coordinate and leave the cursor
where it was.
"""

import re
from dataclasses import dataclass

# Number of arguments consumed by one repetition of each command.
ARGUMENT_COUNTS = {
    "M": 2, "L": 2, "T": 2,
    "H": 1, "V": 1,
    "C": 6,
    "Q": 4, "S": 4,
    "A": 7,
    "Z": 0,
}

_WHITESPACE = re.compile(r"^[\s,]+")
_COMMAND = re.compile(r"^[a-zA-Z]?")
_NUMBER = re.compile(r"^-?([0-9]*\.)?[0-9]+")

# How much of the remaining input to quote in error messages.
_CONTEXT_CHARS = 32


class PathDataError(ValueError):
    """Base class for path data failures."""


class ParseError(PathDataError):
    """The path string is malformed."""

    def __init__(self, message: str, near: str = ""):
        self.near = near[:_CONTEXT_CHARS]
        if near:
            message = f"{message} near “{self.near}”"
        super().__init__(message)


class UnsupportedCommandError(PathDataError):
    """The path uses a command letter outside the SVG path grammar."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Unsupported SVG path data command: {command}")


@dataclass(frozen=True)
class PathCommand:
    command: str
    args: tuple = ()


def _argument_count(command: str) -> int:
    try:
        return ARGUMENT_COUNTS[command.upper()]
    except KeyError:
        raise UnsupportedCommandError(command) from None


def parse_path_commands(d: str) -> list[PathCommand]:
    """
    Split path data into commands, keeping each argument as the exact
    substring it was written as.

    A missing command letter repeats the previous command, as the SVG
    grammar allows (``l1 2 3 4`` is two ``l`` commands).
    """
    commands: list[PathCommand] = []
    current = ""
    rest = d
    while True:
        rest = _WHITESPACE.sub("", rest)
        if not rest:
            break

        letter = _COMMAND.match(rest).group(0)
        rest = rest[len(letter):]
        current = letter or current
        if not current:
            raise ParseError("Expected command", rest)

        count = _argument_count(current)
        # A repeated zero-argument command would never consume input.
        if not letter and count == 0:
            raise ParseError("Expected command", rest)

        args = []
        while len(args) < count:
            rest = _WHITESPACE.sub("", rest)
            if not rest:
                raise ParseError(f"Expected additional arguments for command {current}")
            match = _NUMBER.match(rest)
            if not match:
                raise ParseError(f"Expecting argument for {current}", rest)
            args.append(match.group(0))
            rest = rest[match.end():]

        commands.append(PathCommand(current, tuple(args)))
    return commands


def _number(token: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise ParseError("Not parsable as a float", token) from None


def path_coordinates(path) -> list[tuple[float, float]]:
    """
    Evaluate path data (a string or already parsed commands) into the
    sequence of absolute cursor positions, one per line command.

    ``Z``/``z`` returns the cursor to the start of the current subpath.
    """
    commands = parse_path_commands(path) if isinstance(path, str) else path

    coordinates = []
    start_x = start_y = 0.0
    x = y = 0.0
    for cmd in commands:
        code, args = cmd.command, cmd.args
        if code == "M":
            x, y = _number(args[0]), _number(args[1])
            start_x, start_y = x, y
        elif code == "m":
            x += _number(args[0])
            y += _number(args[1])
            start_x, start_y = x, y
        elif code == "L":
            x, y = _number(args[0]), _number(args[1])
        elif code == "l":
            x += _number(args[0])
            y += _number(args[1])
        elif code == "H":
            x = _number(args[0])
        elif code == "h":
            x += _number(args[0])
        elif code == "V":
            y = _number(args[0])
        elif code == "v":
            y += _number(args[0])
        elif code in "Zz":
            x, y = start_x, start_y
        else:
            # Curves are not evaluated; they leave no point behind.
            continue
        coordinates.append((x, y))
    return coordinates
