"""
BRURIAH CHAT CLIENT
===================

PURPOSE:
Command-line chat client for the Bruriah relay. It keeps the client-side state
(who is signed in, their chats, the active chat and its messages), sends each
prompt to POST /openai, and prints the tutor's reply as it streams in.

USAGE:
    python chat_cli.py [username]

    Make sure the server is running first: python run.py

COMMANDS:
    /login <name>    - Sign in (creates a profile on first use)
    /logout          - Sign out
    /new             - Start a new chat
    /chats           - List your chats
    /open <n>        - Open chat number n from /chats
    /title <text>    - Rename the active chat
    /history         - Show the active chat's messages
    /profile [school=..] [city=..] [grade=..] - Show or update your profile
    /quit or /exit   - Exit
"""

import logging
import sys
from typing import List, Optional

from bruriah.client.session import SIGNED_OUT, AuthSession, AuthUser
from bruriah.client.stream_consumer import StreamConsumer, StreamingReply, StreamState
from bruriah.models import Chat, Profile, StoredMessage
from bruriah.services.chat_store import ChatStore
from config import ASSISTANT_NAME

logger = logging.getLogger("Bruriah")


# -----------------------------------------------------------------------------
# CLIENT STATE
# -----------------------------------------------------------------------------

class ChatClient:
    """Everything the chat screen needs to know, plus the actions that change it."""

    def __init__(self, store: ChatStore, session: AuthSession, consumer: Optional[StreamConsumer] = None):
        self.store = store
        self.session = session
        self.consumer = consumer or StreamConsumer(store, on_update=self._render_reply)
        self.profile: Optional[Profile] = None
        self.chats: List[Chat] = []
        self.active_chat: Optional[Chat] = None
        self.messages: List[StoredMessage] = []
        self._printed = 0
        self._user_id: Optional[str] = None

    # -- session ----------------------------------------------------------------

    def on_session_change(self, event: str, user: Optional[AuthUser]) -> None:
        """Reload profile and chats whenever the signed-in user changes."""
        if event == SIGNED_OUT or user is None:
            self.profile = None
            self.chats = []
            self.active_chat = None
            self.messages = []
            self._user_id = None
            return
        if user.id != self._user_id:
            # A different user: the open chat belongs to someone else.
            self.active_chat = None
            self.messages = []
            self._user_id = user.id
        self.profile = self.store.get_profile_by_user(user.id)
        if self.profile is None:
            self.profile = self.store.save_profile(Profile(auth_user_id=user.id, username=user.username))
        self.chats = self.store.list_chats(self.profile.id)

    # -- chats ------------------------------------------------------------------

    def create_new_chat(self) -> Optional[Chat]:
        if not self.profile:
            print("❌ Please /login first.")
            return None
        chat = self.store.create_chat(self.profile.id)
        self.chats.insert(0, chat)
        self.active_chat = chat
        self.messages = []
        return chat

    def load_chat_history(self, chat: Chat) -> None:
        self.active_chat = chat
        try:
            self.messages = self.store.get_messages(chat.id)
        except (OSError, KeyError, ValueError) as e:
            logger.error("Error fetching chat history: %s", e)
            self.messages = []

    def save_chat_title(self, title: str) -> None:
        if not self.active_chat:
            print("❌ No active chat.")
            return
        try:
            self.active_chat = self.store.rename_chat(self.active_chat.id, title)
            self.chats = [self.active_chat if c.id == self.active_chat.id else c for c in self.chats]
        except (OSError, KeyError, ValueError) as e:
            logger.error("Error updating chat title: %s", e)

    def update_profile(self, **fields) -> None:
        if not self.profile:
            print("❌ Please /login first.")
            return
        self.profile = self.store.save_profile(self.profile.model_copy(update=fields))

    # -- sending ----------------------------------------------------------------

    def _render_reply(self, reply: StreamingReply) -> None:
        """Print only the text that is new since the last update."""
        if reply.state == StreamState.AWAITING_FIRST_BYTE:
            self._printed = 0
            print(f"🤖 {ASSISTANT_NAME}: ", end="", flush=True)
            return
        if reply.state == StreamState.FAILED:
            print(("\n" if self._printed else "") + reply.content, flush=True)
            return
        if reply.state == StreamState.COMPLETED:
            print(flush=True)
            return
        content = reply.content
        print(content[self._printed:], end="", flush=True)
        self._printed = len(content)

    def send_message(self, text: str) -> Optional[StreamingReply]:
        if not self.active_chat:
            print("❌ No active chat. Use /new or /open <n> first.")
            return None
        if not text.strip():
            return None
        history = list(self.messages)
        profile = self.profile.to_context() if self.profile else None
        reply = self.consumer.send(self.active_chat.id, text, history, profile)
        # Local view mirrors what was stored, even if storing failed.
        self.messages.append(StoredMessage(chat_id=self.active_chat.id, role="user", content=text.strip()))
        self.messages.append(StoredMessage(chat_id=self.active_chat.id, role="assistant", content=reply.content))
        return reply


# -----------------------------------------------------------------------------
# UI HELPERS
# -----------------------------------------------------------------------------

def print_header():
    print("\n" + "=" * 60)
    print(f"📚 {ASSISTANT_NAME} - your friendly tutor")
    print("=" * 60)
    print("\nCommands:")
    print("  /login <name>  /logout  /new  /chats  /open <n>")
    print("  /title <text>  /history  /profile [school=..] [city=..] [grade=..]  /quit")
    print("=" * 60 + "\n")


def format_history(client: ChatClient) -> str:
    if not client.active_chat:
        return "No active chat"
    if not client.messages:
        return "No messages in this chat"
    output = f"\n📜 {client.active_chat.title} ({len(client.messages)} messages):\n"
    output += "-" * 60 + "\n"
    for i, msg in enumerate(client.messages, 1):
        role = "You" if msg.role == "user" else ASSISTANT_NAME
        output += f"{i}. {role}: {msg.content}\n"
    output += "-" * 60 + "\n"
    return output


def parse_profile_fields(args: List[str]) -> dict:
    """Turn ["school=Oak Hill", "grade=4"] into {"school": "Oak Hill", "grade": "4"}."""
    fields = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        if sep and key in ("school", "city", "grade"):
            fields[key] = value.strip() or None
    return fields


def handle_command(client: ChatClient, line: str) -> bool:
    """Run one slash command. Returns False when the user asked to quit."""
    command, _, rest = line.partition(" ")
    rest = rest.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/login":
        if not rest:
            print("❌ Usage: /login <name>")
        else:
            client.session.sign_in(AuthUser(id=rest.lower(), username=rest))
            print(f"✅ Signed in as {rest}. You have {len(client.chats)} chats.")
    elif command == "/logout":
        client.session.sign_out()
        print("👋 Signed out.")
    elif command == "/new":
        if client.create_new_chat():
            print("✅ New chat started. What do you want to study today?")
    elif command == "/chats":
        if not client.chats:
            print("No chats yet.")
        for i, chat in enumerate(client.chats, 1):
            marker = "*" if client.active_chat and chat.id == client.active_chat.id else " "
            print(f"{marker} {i}. {chat.title}")
    elif command == "/open":
        try:
            chat = client.chats[int(rest) - 1]
        except (ValueError, IndexError):
            print("❌ Usage: /open <n> (see /chats)")
        else:
            client.load_chat_history(chat)
            print(format_history(client))
    elif command == "/title":
        if rest:
            client.save_chat_title(rest)
    elif command == "/history":
        print(format_history(client))
    elif command == "/profile":
        fields = parse_profile_fields(rest.split()) if rest else {}
        if fields:
            client.update_profile(**fields)
        if client.profile:
            p = client.profile
            print(f"School: {p.school or '-'} | City: {p.city or '-'} | Grade: {p.grade or '-'}")
        else:
            print("❌ Please /login first.")
    else:
        print(f"❌ Unknown command: {command}")
    return True


# -----------------------------------------------------------------------------
# MAIN LOOP
# -----------------------------------------------------------------------------

def main():
    print_header()
    store = ChatStore()
    session = AuthSession()
    client = ChatClient(store, session)

    with session.subscribe(client.on_session_change):
        if len(sys.argv) > 1:
            handle_command(client, f"/login {sys.argv[1]}")

        while True:
            try:
                line = input("\nYou: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n👋 Goodbye!")
                break
            if not line:
                continue
            if line.startswith("/"):
                if not handle_command(client, line):
                    print("\n👋 Goodbye!")
                    break
                continue
            client.send_message(line)


# Run the interactive loop when this file is executed (python chat_cli.py).
if __name__ == "__main__":
    main()
