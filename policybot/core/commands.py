"""
Chat command grammar.

    <prefix> [<name> [<arg> ...]]

Prefixes match case-insensitively and must be followed by whitespace or
the end of the message ("!psx" is not "!ps x"). Arguments are split on
runs of whitespace; ParsedCommand.rest() recovers the raw text after
any number of positional arguments so free-text values keep their
inner spacing.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

DEFAULT_PREFIXES = ("!policyserv", "!ps")

_TOKEN_RE = re.compile(r"\S+")


@dataclass
class ParsedCommand:
    """
    A recognized command.

    Attributes:
        prefix: Prefix as configured (e.g. "!policyserv")
        name: Lower-cased command name ("" if only the prefix was sent)
        args: Whitespace-separated arguments after the name
    """
    prefix: str
    name: str
    args: List[str] = field(default_factory=list)
    _text: str = field(default="", repr=False)
    _spans: List[Tuple[int, int]] = field(default_factory=list, repr=False)

    def arg(self, index: int, default: Optional[str] = None) -> Optional[str]:
        """Positional argument, or ``default`` if absent."""
        return self.args[index] if index < len(self.args) else default

    def rest(self, skip: int = 0) -> str:
        """
        Raw text following the first ``skip`` arguments.

        Example:
            "!ps set keywords spam,  eggs" -> rest(1) == "spam,  eggs"
        """
        if skip >= len(self._spans):
            return ""
        return self._text[self._spans[skip][0]:].strip()


class CommandParser:
    """Recognizes command prefixes and tokenizes the remainder."""

    def __init__(self, prefixes: Sequence[str] = DEFAULT_PREFIXES):
        if not prefixes:
            raise ValueError("At least one command prefix is required")
        # Longest first so a prefix never shadows a longer one
        self.prefixes = sorted(prefixes, key=len, reverse=True)

    @property
    def primary_prefix(self) -> str:
        return self.prefixes[0]

    def parse(self, body: str) -> Optional[ParsedCommand]:
        """
        Parse a message body.

        Returns:
            ParsedCommand, or None if the body is not a command
        """
        lowered = body.lower()
        for prefix in self.prefixes:
            if not lowered.startswith(prefix.lower()):
                continue
            remainder = body[len(prefix):]
            if remainder and not remainder[0].isspace():
                continue

            matches = list(_TOKEN_RE.finditer(remainder))
            if not matches:
                return ParsedCommand(prefix=prefix, name="")
            name = matches[0].group().lower()
            args = matches[1:]
            return ParsedCommand(
                prefix=prefix,
                name=name,
                args=[m.group() for m in args],
                _text=remainder,
                _spans=[m.span() for m in args],
            )
        return None
