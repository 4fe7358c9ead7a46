"""
CONFIGURATION MODULE
====================

PURPOSE:
  Central place for all Bruriah settings: API keys, paths, the model name,
  the context window cap, and the tutor system prompt.

WHAT THIS FILE DOES:
  - Loads environment variables from .env (so API keys stay out of code).
  - Defines paths to database/chats_data and database/profiles and creates them.
  - Exposes the OpenAI model, relay URL and admin key settings.
  - Holds the fixed tutor system prompt and the profile placeholder strings.

USAGE:
  Import what you need: `from config import OPENAI_MODEL, CHATS_DATA_DIR, TUTOR_SYSTEM_PROMPT`
  The OpenAI key is read per request through get_openai_api_key() so a missing
  key is reported on the request instead of at import time.
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# ENVIRONMENT
# -----------------------------------------------------------------------------
load_dotenv()


# -----------------------------------------------------------------------------
# BASE PATH
# -----------------------------------------------------------------------------
BASE_DIR = Path(__file__).parent

# ============================================================================
# DATABASE PATHS
# ============================================================================
# - chats_data: one JSON file per chat (title, owner profile, ordered messages)
# - profiles: one JSON file per profile (auth user, school, city, grade)
# DATABASE_DIR can be pointed elsewhere (tests use a temporary folder).

DATABASE_DIR = Path(os.getenv("BRURIAH_DATABASE_DIR", str(BASE_DIR / "database")))
CHATS_DATA_DIR = DATABASE_DIR / "chats_data"
PROFILES_DATA_DIR = DATABASE_DIR / "profiles"

CHATS_DATA_DIR.mkdir(parents=True, exist_ok=True)
PROFILES_DATA_DIR.mkdir(parents=True, exist_ok=True)

# ============================================================================
# OPENAI CONFIGURATION
# ============================================================================
# One provider, one model. Streaming is always on for the relay.

OPENAI_MODEL = "gpt-4o-mini"


def get_openai_api_key() -> str:
    """Return the OpenAI API key from the environment, or "" when it is not configured."""
    return os.getenv("OPENAI_API_KEY", "").strip()


# ============================================================================
# RELAY / CLIENT CONFIGURATION
# ============================================================================
# RELAY_URL: where the chat client posts prompts (the /openai endpoint).
# RELAY_API_KEY: optional bearer token the client sends along (kept for hosted relays).
# MAX_CONTEXT_MESSAGES: how many prior turns the client sends with each prompt.

RELAY_URL = os.getenv("RELAY_URL", "http://localhost:8000/openai")
RELAY_API_KEY = os.getenv("RELAY_API_KEY", "").strip()
RELAY_SCHEMA_VERSION = 1
MAX_CONTEXT_MESSAGES = 10

# Shown (and stored) in place of an assistant reply when a send fails.
FALLBACK_REPLY = "Oops! Something went wrong. Please try again."

DEFAULT_CHAT_TITLE = "New Chat"

# ============================================================================
# ADMIN CONFIGURATION
# ============================================================================
# The admin endpoints list every user's chats. They stay closed (403) until
# ADMIN_API_KEY is set; callers then send it as a bearer token.

ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "").strip()

# ============================================================================
# TUTOR PERSONALITY
# ============================================================================

ASSISTANT_NAME = "Bruriah"

TUTOR_SYSTEM_PROMPT = (
    f"You are {ASSISTANT_NAME}, a highly intelligent and kind tutor for children. "
    "Your purpose is to assist kids in learning their school subjects in a patient, supportive, "
    "and engaging manner. Always provide thorough explanations and examples, and encourage "
    "curiosity and critical thinking. Adapt your responses to the child's age and comprehension "
    "level, using language and tone that is appropriate for kids. Be encouraging and positive, "
    "ensuring that learning remains fun and rewarding."
)

# Placeholders used in the profile context message when a field is missing.
PROFILE_PLACEHOLDERS = {
    "school": "School not set",
    "city": "City not set",
    "grade": "Grade level not set",
}
