"""Heuristic parser turning mention text into a trade command.

Supported grammar (case-insensitive, extra words are ignored):

    @bot swap 0.01 SOL for JUP     -> swap SOL into JUP
    @bot swap 5 USDC JUP           -> swap USDC into JUP
    @bot buy 0.1 SOL of JUP        -> spend SOL to buy JUP
    @bot sell 10 JUP for SOL       -> in=SOL, out=JUP (see ``_assign_roles``)

The parser only extracts structure. Whether the bot accepts the action and
tokens is decided by ``validate_command``.
"""

import re
from collections.abc import Iterable, Sequence

from mentionbot.models.command import CommandAction, ParsedCommand

DEFAULT_TOKENS: tuple[str, ...] = ("SOL", "USDC", "JUP")

_ACTION_RE = re.compile(r"\b(buy|sell|swap)\b", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"\b\d+(?:\.\d+)?\b")
_CONNECTOR_RE = re.compile(r"\b(of|for|to|with)\b", re.IGNORECASE)
_FOR_RE = re.compile(r"\bfor\b", re.IGNORECASE)


class CommandError(Exception):
    """Base class for commands that are rejected before execution."""


class ParseError(CommandError):
    """Raised when text does not match the command grammar."""


class ValidationError(CommandError):
    """Raised when a well-formed command is not allowed for the bot."""


class CommandParser:
    """Parses free-text mentions into ``ParsedCommand`` instances.

    Args:
        known_tokens: Token symbols recognised in text. Tokens outside this
            list are invisible to the parser.
    """

    def __init__(self, known_tokens: Iterable[str] = DEFAULT_TOKENS) -> None:
        symbols: list[str] = []
        for token in known_tokens:
            symbol = token.strip().upper()
            if symbol and symbol not in symbols:
                symbols.append(symbol)
        if not symbols:
            raise ValueError("At least one token symbol is required")
        self._known_tokens = tuple(symbols)
        # Longest first so that overlapping symbols prefer the longer match
        alternatives = "|".join(
            re.escape(s) for s in sorted(symbols, key=len, reverse=True)
        )
        self._token_re = re.compile(rf"\b({alternatives})\b", re.IGNORECASE)

    @property
    def known_tokens(self) -> tuple[str, ...]:
        return self._known_tokens

    def parse(self, text: str, bot_handle: str) -> ParsedCommand:
        """Parse ``text`` addressed to ``bot_handle``.

        Args:
            text: Raw mention text.
            bot_handle: Handle of the addressed bot, with or without ``@``.

        Returns:
            ParsedCommand with upper-case token symbols.

        Raises:
            ParseError: If the action, a positive amount or two distinct
                tokens cannot be found.
        """
        handle = bot_handle.strip().lstrip("@")
        if handle:
            text = re.sub(f"@{re.escape(handle)}", "", text, count=1, flags=re.IGNORECASE)
        text = text.strip()

        action_match = _ACTION_RE.search(text)
        if action_match is None:
            raise ParseError("No action found (expected buy, sell or swap)")
        action = CommandAction(action_match.group(1).lower())

        amount_match = _AMOUNT_RE.search(text)
        if amount_match is None:
            raise ParseError("No amount found")
        amount = float(amount_match.group(0))
        if amount <= 0:
            raise ParseError("Amount must be greater than 0")

        tokens = [(m.start(), m.group(1).upper()) for m in self._token_re.finditer(text)]
        if len({symbol for _, symbol in tokens}) < 2:
            raise ParseError(
                f"Expected two tokens, supported tokens: {', '.join(self._known_tokens)}"
            )

        in_token, out_token = _assign_roles(action, text, tokens)
        return ParsedCommand(
            action=action,
            in_token=in_token,
            out_token=out_token,
            amount=amount,
        )


def _positional(tokens: Sequence[tuple[int, str]]) -> tuple[str, str]:
    """First two distinct symbols in order of appearance."""
    first = tokens[0][1]
    second = next(symbol for _, symbol in tokens if symbol != first)
    return first, second


def _assign_roles(
    action: CommandAction, text: str, tokens: Sequence[tuple[int, str]]
) -> tuple[str, str]:
    """Decide which matched token is spent and which is received.

    ``sell`` reverses the positional order, so "sell 10 JUP for SOL" spends
    SOL and receives JUP. Existing users rely on this reading.
    """
    if action is CommandAction.SELL:
        first, second = _positional(tokens)
        return second, first

    if action is CommandAction.SWAP:
        for_match = _FOR_RE.search(text)
        if for_match is not None:
            before = [s for pos, s in tokens if pos < for_match.start()]
            after = [s for pos, s in tokens if pos >= for_match.end()]
            if before and after:
                return before[-1], after[0]
        return _positional(tokens)

    connector = _CONNECTOR_RE.search(text)
    if connector is not None:
        before = [s for pos, s in tokens if pos < connector.start()]
        after = [s for pos, s in tokens if pos >= connector.start()]
        if before and after:
            return before[0], after[0]
    return _positional(tokens)


def validate_command(
    command: ParsedCommand,
    supported_actions: Iterable[str],
    supported_tokens: Iterable[str],
) -> None:
    """Check ``command`` against a bot's whitelists.

    Raises:
        ValidationError: If the action or a token is not supported, the tokens
            are identical, or the amount is not positive.
    """
    actions = [
        a.value if isinstance(a, CommandAction) else str(a).lower()
        for a in supported_actions
    ]
    tokens = [t.upper() for t in supported_tokens]

    if command.amount <= 0:
        raise ValidationError("Amount must be greater than 0")
    if command.action.value not in actions:
        raise ValidationError(
            f'Unsupported action "{command.action.value}". '
            f"Supported actions: {', '.join(actions)}"
        )
    for token in (command.in_token, command.out_token):
        if token not in tokens:
            raise ValidationError(
                f'Unsupported token "{token}". Supported tokens: {", ".join(tokens)}'
            )
    if command.in_token == command.out_token:
        raise ValidationError(f"Cannot swap {command.in_token} into itself")


_default_parser = CommandParser()


def parse_command(text: str, bot_handle: str) -> ParsedCommand:
    """Parse ``text`` with the default token whitelist."""
    return _default_parser.parse(text, bot_handle)
