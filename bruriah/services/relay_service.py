"""
TUTOR RELAY SERVICE MODULE
==========================

Bridges one POST /openai request to one streaming chat completion. The API
layer (bruriah.main) validates the request and checks the API key; this
service assembles the prompt envelope and turns the model's token stream into
bytes for a StreamingResponse.

FLOW:
  1. build_messages(request): system prompt + profile context + context window + prompt.
  2. stream_reply(messages): call the chat model with astream() and yield each
     content fragment as UTF-8 bytes the moment it arrives.

FAILURE MID-STREAM:
  Fragments already yielded have been written to the client. When the model
  call fails we log and re-raise, so the server aborts the response body and
  the client sees a truncated stream. Nothing is retried or replayed.

One service (and one chat model) is created per request; nothing is shared
between requests.
"""

import logging
from typing import AsyncIterator, Callable, List

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage
from langchain_openai import ChatOpenAI

from bruriah.models import RelayRequest
from bruriah.services.context_window import build_context_window
from bruriah.services.prompt_assembler import assemble_prompt
from config import MAX_CONTEXT_MESSAGES, OPENAI_MODEL, TUTOR_SYSTEM_PROMPT

logger = logging.getLogger("Bruriah")

ChatModelFactory = Callable[[str], BaseChatModel]


def build_chat_model(api_key: str) -> BaseChatModel:
    """Create the OpenAI chat model used by the relay. No network call happens here."""
    return ChatOpenAI(api_key=api_key, model=OPENAI_MODEL, streaming=True)


def _fragment_text(chunk) -> str:
    """Text carried by one streamed chunk (content can be a string or a list of parts)."""
    content = getattr(chunk, "content", "")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return ""


# ==============================================================================
# TUTOR RELAY SERVICE CLASS
# ==============================================================================

class TutorRelayService:
    """Assembles the prompt envelope for one request and relays the model's stream."""

    def __init__(self, llm: BaseChatModel, system_prompt: str = TUTOR_SYSTEM_PROMPT):
        self.llm = llm
        self.system_prompt = system_prompt

    def build_messages(self, request: RelayRequest) -> List[BaseMessage]:
        """
        Build the prompt envelope for a validated request.

        The context the caller sent is capped to the most recent
        MAX_CONTEXT_MESSAGES turns before it reaches the model.
        """
        window = build_context_window(request.context, MAX_CONTEXT_MESSAGES)
        return assemble_prompt(self.system_prompt, request.profileData, window, request.prompt)

    async def stream_reply(self, messages: List[BaseMessage]) -> AsyncIterator[bytes]:
        """Yield each content fragment from the model as UTF-8 bytes, in arrival order."""
        fragments = 0
        try:
            logger.info("Initiating streaming completion (%s messages)...", len(messages))
            async for chunk in self.llm.astream(messages):
                text = _fragment_text(chunk)
                if not text:
                    continue
                fragments += 1
                yield text.encode("utf-8")
        except Exception as e:
            logger.error("Error streaming response after %s fragments: %s", fragments, e, exc_info=True)
            raise
        logger.info("Streaming completion finished (%s fragments)", fragments)
