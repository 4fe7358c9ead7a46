"""
PROMPT ASSEMBLER MODULE
=======================

Builds the ordered message list (the prompt envelope) sent to the model:

  1. the fixed tutor system prompt
  2. a second system message describing the student's profile
  3. the context window, oldest turn first
  4. the new user prompt

Messages are LangChain message objects so the chat model can take them as-is.
"""

from typing import List, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from bruriah.models import ConversationTurn, ProfileContext
from config import PROFILE_PLACEHOLDERS


class PromptInputError(ValueError):
    """Raised when the prompt is missing or empty."""


_MESSAGE_TYPES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "assistant": AIMessage,
}


def build_profile_context_message(profile: Optional[ProfileContext]) -> SystemMessage:
    """Render the profile as a system message; missing fields get their placeholder."""
    profile = profile or ProfileContext()
    school = profile.school or PROFILE_PLACEHOLDERS["school"]
    city = profile.city or PROFILE_PLACEHOLDERS["city"]
    grade = profile.grade or PROFILE_PLACEHOLDERS["grade"]
    return SystemMessage(
        content=(
            "Here is the user's profile context for better understanding:\n"
            f"- School: {school}\n"
            f"- City: {city}\n"
            f"- Grade: {grade}"
        )
    )


def turn_to_message(turn: ConversationTurn) -> BaseMessage:
    return _MESSAGE_TYPES[turn.role](content=turn.content)


def assemble_prompt(
    system_prompt: str,
    profile: Optional[ProfileContext],
    window: Sequence[ConversationTurn],
    prompt: Optional[str],
) -> List[BaseMessage]:
    """
    Return [system, profile context, *window, user prompt].

    Raises PromptInputError if the prompt is missing or empty. Nothing here
    touches the network, so callers can validate before building a client.
    """
    if not prompt:
        raise PromptInputError("Prompt input is required")

    messages: List[BaseMessage] = [
        SystemMessage(content=system_prompt),
        build_profile_context_message(profile),
    ]
    messages.extend(turn_to_message(turn) for turn in window)
    messages.append(HumanMessage(content=prompt))
    return messages
