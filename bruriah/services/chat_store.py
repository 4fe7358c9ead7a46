"""
CHAT STORE MODULE
=================

Stores chats, their messages, and user profiles as JSON files on disk:

  database/chats_data/<chat_id>.json     - {id, profile_id, title, created_at, messages: [...]}
  database/profiles/<profile_id>.json    - {id, auth_user_id, username, school, city, grade, avatar_url}

The chat client writes here (user turns, finished assistant turns, titles,
profiles); the admin endpoints read from here. Only finished assistant text
is ever saved, never the partial fragments of a stream.

Writes go to a temporary file first and are then moved into place, so a crash
mid-write never leaves a half-written chat behind.
"""

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

from bruriah.models import Chat, Profile, StoredMessage
from config import DATABASE_DIR, DEFAULT_CHAT_TITLE

logger = logging.getLogger("Bruriah")

# Ids end up in file names: letters, digits, dash and underscore only.
_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class ChatNotFoundError(KeyError):
    """Raised when a chat id has no file on disk."""


def validate_id(value: str, kind: str = "chat_id") -> str:
    if not isinstance(value, str) or not _ID_PATTERN.match(value):
        raise ValueError(f"Invalid {kind}: {value!r}")
    return value


# ==============================================================================
# CHAT STORE CLASS
# ==============================================================================

class ChatStore:
    """File-backed store for chats, messages and profiles."""

    def __init__(self, root: Optional[Path] = None):
        root = Path(root) if root is not None else DATABASE_DIR
        self.chats_dir = root / "chats_data"
        self.profiles_dir = root / "profiles"
        self.chats_dir.mkdir(parents=True, exist_ok=True)
        self.profiles_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # ------------------------------------------------------------------------------
    # FILE HELPERS
    # ------------------------------------------------------------------------------

    def _chat_path(self, chat_id: str) -> Path:
        return self.chats_dir / f"{validate_id(chat_id)}.json"

    def _profile_path(self, profile_id: str) -> Path:
        return self.profiles_dir / f"{validate_id(profile_id, 'profile_id')}.json"

    @staticmethod
    def _write_json(path: Path, data: dict) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _load_chat(self, chat_id: str) -> Chat:
        path = self._chat_path(chat_id)
        if not path.exists():
            raise ChatNotFoundError(chat_id)
        with open(path, "r", encoding="utf-8") as f:
            return Chat.model_validate(json.load(f))

    def _save_chat(self, chat: Chat) -> None:
        self._write_json(self._chat_path(chat.id), chat.model_dump())

    def _iter_chats(self) -> List[Chat]:
        chats = []
        for file_path in sorted(self.chats_dir.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    chats.append(Chat.model_validate(json.load(f)))
            except (OSError, ValueError) as e:
                logger.warning("Could not load chat file %s: %s", file_path, e)
        return chats

    # ------------------------------------------------------------------------------
    # CHATS AND MESSAGES
    # ------------------------------------------------------------------------------

    def create_chat(self, profile_id: str, title: str = DEFAULT_CHAT_TITLE) -> Chat:
        chat = Chat(profile_id=validate_id(profile_id, "profile_id"), title=title)
        with self._lock:
            self._save_chat(chat)
        logger.info("Created chat %s for profile %s", chat.id, profile_id)
        return chat

    def get_chat(self, chat_id: str) -> Chat:
        with self._lock:
            return self._load_chat(chat_id)

    def list_chats(self, profile_id: str) -> List[Chat]:
        """Chats owned by a profile, newest first."""
        with self._lock:
            chats = [c for c in self._iter_chats() if c.profile_id == profile_id]
        return sorted(chats, key=lambda c: c.created_at, reverse=True)

    def rename_chat(self, chat_id: str, title: str) -> Chat:
        with self._lock:
            chat = self._load_chat(chat_id)
            chat.title = title
            self._save_chat(chat)
        return chat

    def add_message(self, chat_id: str, role: str, content: str) -> StoredMessage:
        """Append one message to a chat and return the stored record."""
        with self._lock:
            chat = self._load_chat(chat_id)
            message = StoredMessage(chat_id=chat.id, role=role, content=content)
            chat.messages.append(message)
            self._save_chat(chat)
        return message

    def get_messages(self, chat_id: str) -> List[StoredMessage]:
        """Messages of a chat, oldest first."""
        with self._lock:
            return list(self._load_chat(chat_id).messages)

    def list_chats_by_user(self) -> List[Dict]:
        """
        All chats grouped by the auth user that owns them, newest chat first.
        Chats whose profile is missing are grouped under "Unknown User".
        """
        with self._lock:
            chats = sorted(self._iter_chats(), key=lambda c: c.created_at, reverse=True)
            profiles = {p.id: p for p in self._iter_profiles()}

        grouped: Dict[str, Dict] = {}
        for chat in chats:
            profile = profiles.get(chat.profile_id)
            user_id = profile.auth_user_id if profile else "Unknown User"
            username = profile.username if profile else "Unknown Username"
            entry = grouped.setdefault(user_id, {"userId": user_id, "username": username, "chats": []})
            entry["chats"].append({"id": chat.id, "title": chat.title, "created_at": chat.created_at})
        return list(grouped.values())

    # ------------------------------------------------------------------------------
    # PROFILES
    # ------------------------------------------------------------------------------

    def _iter_profiles(self) -> List[Profile]:
        profiles = []
        for file_path in sorted(self.profiles_dir.glob("*.json")):
            try:
                with open(file_path, "r", encoding="utf-8") as f:
                    profiles.append(Profile.model_validate(json.load(f)))
            except (OSError, ValueError) as e:
                logger.warning("Could not load profile file %s: %s", file_path, e)
        return profiles

    def get_profile_by_user(self, auth_user_id: str) -> Optional[Profile]:
        with self._lock:
            for profile in self._iter_profiles():
                if profile.auth_user_id == auth_user_id:
                    return profile
        return None

    def save_profile(self, profile: Profile) -> Profile:
        with self._lock:
            self._write_json(self._profile_path(profile.id), profile.model_dump())
        return profile
