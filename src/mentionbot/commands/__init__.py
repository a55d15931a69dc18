"""Mention text parsing and command validation."""

from mentionbot.commands.parser import (
    DEFAULT_TOKENS,
    CommandError,
    CommandParser,
    ParseError,
    ValidationError,
    parse_command,
    validate_command,
)

__all__ = [
    "DEFAULT_TOKENS",
    "CommandError",
    "CommandParser",
    "ParseError",
    "ValidationError",
    "parse_command",
    "validate_command",
]
