"""
STREAM CONSUMER MODULE
======================

Client side of POST /openai. Sends a prompt with the recent context, reads the
streamed reply chunk by chunk, and keeps one in-progress assistant message up
to date while it grows. When the stream ends the full reply is saved to the
chat store as a single assistant message.

STATES (per send):
  idle -> awaiting_first_byte -> streaming -> completed
                                           -> failed

On failure (cannot connect, non-2xx status, body cut off mid-stream) the
in-progress message is replaced by FALLBACK_REPLY and that text is what gets
saved; partial text is discarded. Nothing is retried; the user sends again.
"""

import codecs
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional
from uuid import uuid4

import requests

from bruriah.models import ProfileContext
from bruriah.services.chat_store import ChatStore
from bruriah.services.context_window import build_context_window
from config import FALLBACK_REPLY, MAX_CONTEXT_MESSAGES, RELAY_API_KEY, RELAY_SCHEMA_VERSION, RELAY_URL

logger = logging.getLogger("Bruriah")


class RelayTransportError(Exception):
    """The relay answered with a non-success status."""

    def __init__(self, status_code: int, reason: str = ""):
        super().__init__(f"Error generating assistant response: {status_code} {reason}".strip())
        self.status_code = status_code
        self.reason = reason


class StreamState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_BYTE = "awaiting_first_byte"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StreamingReply:
    """
    The assistant message being built for one send.

    Text is only ever appended while streaming. A failed reply shows the
    fallback text instead of whatever had arrived.
    """
    chat_id: str
    id: str = field(default_factory=lambda: uuid4().hex)
    role: str = "assistant"
    state: StreamState = StreamState.IDLE
    _chunks: List[str] = field(default_factory=list, repr=False)
    _fallback: Optional[str] = field(default=None, repr=False)

    @property
    def content(self) -> str:
        if self._fallback is not None:
            return self._fallback
        return "".join(self._chunks)

    def append(self, text: str) -> None:
        if self.state in (StreamState.COMPLETED, StreamState.FAILED):
            raise RuntimeError(f"Cannot append to a {self.state.value} reply")
        self._chunks.append(text)
        self.state = StreamState.STREAMING

    def complete(self) -> None:
        self.state = StreamState.COMPLETED

    def fail(self, fallback: str = FALLBACK_REPLY) -> None:
        self._fallback = fallback
        self.state = StreamState.FAILED


ReplyListener = Callable[[StreamingReply], None]


# ==============================================================================
# STREAM CONSUMER CLASS
# ==============================================================================

class StreamConsumer:
    """
    Sends prompts to the relay and turns the streamed bytes back into text.

    Args:
        store: chat store used to save the user turn and the final assistant turn.
        relay_url: full URL of the /openai endpoint.
        session: requests.Session (or anything with the same post()); one is created if omitted.
        api_key: optional bearer token sent to the relay.
        on_update: called with the reply every time its displayed text changes.
    """

    def __init__(
        self,
        store: ChatStore,
        relay_url: str = RELAY_URL,
        session: Optional[requests.Session] = None,
        api_key: str = RELAY_API_KEY,
        on_update: Optional[ReplyListener] = None,
    ):
        self.store = store
        self.relay_url = relay_url
        self.session = session or requests.Session()
        self.api_key = api_key
        self.on_update = on_update

    def _notify(self, reply: StreamingReply) -> None:
        if self.on_update:
            self.on_update(reply)

    def _save(self, chat_id: str, role: str, content: str) -> None:
        # Losing a saved message must not stop the conversation on screen.
        try:
            self.store.add_message(chat_id, role, content)
        except (OSError, KeyError, ValueError) as e:
            logger.error("Error saving %s message to chat %s: %s", role, chat_id, e)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def send(
        self,
        chat_id: str,
        prompt: str,
        history: Iterable = (),
        profile: Optional[ProfileContext] = None,
    ) -> StreamingReply:
        """
        Send one prompt and stream the reply.

        `history` is the conversation before this prompt; its last
        MAX_CONTEXT_MESSAGES turns travel as context. Returns the finished
        (completed or failed) reply.
        """
        if not chat_id:
            raise ValueError("No active chat to send a message to.")
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("Message cannot be empty.")

        context = build_context_window(history, MAX_CONTEXT_MESSAGES)
        self._save(chat_id, "user", prompt)

        reply = StreamingReply(chat_id=chat_id, state=StreamState.AWAITING_FIRST_BYTE)
        self._notify(reply)

        body = {
            "version": RELAY_SCHEMA_VERSION,
            "prompt": prompt,
            "context": [turn.model_dump() for turn in context],
            "profileData": (profile or ProfileContext()).model_dump(exclude_none=True),
        }

        try:
            with self.session.post(self.relay_url, json=body, headers=self._headers(), stream=True) as response:
                if not response.ok:
                    raise RelayTransportError(response.status_code, response.reason or "")

                decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
                for chunk in response.iter_content(chunk_size=None):
                    if not chunk:
                        continue
                    text = decoder.decode(chunk)
                    if not text:
                        continue
                    reply.append(text)
                    self._notify(reply)

                tail = decoder.decode(b"", final=True)
                if tail:
                    reply.append(tail)
                    self._notify(reply)
        except (requests.RequestException, RelayTransportError) as e:
            logger.error("Error during message handling: %s", e)
            reply.fail()
            self._notify(reply)
            self._save(chat_id, reply.role, reply.content)
            return reply

        reply.complete()
        self._notify(reply)
        self._save(chat_id, reply.role, reply.content)
        return reply
