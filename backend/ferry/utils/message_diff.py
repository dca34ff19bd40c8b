"""
Terminal highlighting of monitor message changes.
"""

import re
from typing import List

import typer

_WHITESPACE_SPLIT = re.compile(r"(\s+)")


def _tokens(message: str) -> List[str]:
    """Split into words and the whitespace runs between them."""
    return [token for token in _WHITESPACE_SPLIT.split(message) if token]


def _words(message: str) -> set:
    return {token for token in _tokens(message) if not token.isspace()}


def highlight_additions(before: str, after: str) -> str:
    """Render ``after`` with the words that are not in ``before`` in green."""
    if before == after:
        return after
    previous = _words(before)
    return "".join(
        typer.style(token, fg=typer.colors.GREEN)
        if not token.isspace() and token not in previous
        else token
        for token in _tokens(after)
    )


def highlight_removals(before: str, after: str) -> str:
    """Render ``before`` with the ``@`` mentions missing from ``after`` in red."""
    if before == after:
        return before
    remaining = _words(after)
    return "".join(
        typer.style(token, fg=typer.colors.RED)
        if token.startswith("@") and token not in remaining
        else token
        for token in _tokens(before)
    )


def format_message_diff(before: str, after: str, operation: str) -> str:
    """
    Highlight a message change for display.

    Args:
        before: Original message
        after: New message
        operation: ``"add"`` highlights additions in ``after``; anything
            else highlights removals in ``before``
    """
    if operation == "add":
        return highlight_additions(before, after)
    return highlight_removals(before, after)
