"""
CONTEXT WINDOW MODULE
=====================

Picks the most recent turns of a conversation to send along with a new prompt.
The full history stays in the chat store; only the tail (at most
MAX_CONTEXT_MESSAGES turns, oldest first) goes to the model, so prompts stay
bounded no matter how long a chat gets.
"""

from typing import Any, Iterable, List, Mapping

from bruriah.models import ConversationTurn
from config import MAX_CONTEXT_MESSAGES


def _as_turn(message: Any) -> ConversationTurn:
    """Reduce a stored message, a turn or a plain dict to role + content."""
    if isinstance(message, Mapping):
        return ConversationTurn(role=message["role"], content=message["content"])
    return ConversationTurn(role=message.role, content=message.content)


def build_context_window(history: Iterable[Any], cap: int = MAX_CONTEXT_MESSAGES) -> List[ConversationTurn]:
    """
    Return the last `cap` turns of `history` in their original order.

    Every turn is stripped down to {role, content}. An empty history, or a cap
    of zero or less, gives an empty window.
    """
    if cap <= 0:
        return []
    recent = list(history)[-cap:]
    return [_as_turn(message) for message in recent]
