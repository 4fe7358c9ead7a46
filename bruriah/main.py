"""
BRURIAH MAIN API
================

This module defines the FastAPI application and its HTTP endpoints: the
streaming tutor relay and the two read-only admin views over stored chats.

ENDPOINTS:
  GET     /                       - Returns API name and list of endpoints.
  GET     /health                 - Returns whether the chat store is ready.
  POST    /openai                 - Streaming tutor relay. Body: {prompt, context?, profileData?}.
                                    Replies with the model's text as it is generated
                                    (text/event-stream), or a JSON {error} body.
  OPTIONS /openai                 - CORS preflight; answered without touching the body.
  GET     /admin-view             - All chats grouped by user (admin key required).
  GET     /admin-retrieve-chats   - Messages of one chat: ?chat_id=... (admin key required).

STATELESS RELAY:
  Each POST /openai builds its own prompt and its own model client. Nothing is
  shared between requests, retried, or replayed.

STARTUP:
  The lifespan function opens the chat store (database/ folder) used by the
  admin endpoints.
"""

import logging
import secrets
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from pydantic import ValidationError

from bruriah.models import ErrorResponse, RelayRequest
from bruriah.services.chat_store import ChatNotFoundError, ChatStore, validate_id
from bruriah.services.prompt_assembler import PromptInputError
from bruriah.services.relay_service import ChatModelFactory, TutorRelayService, build_chat_model
from config import ADMIN_API_KEY, RELAY_SCHEMA_VERSION, get_openai_api_key


# -----------------------------------------------------------------------------
# LOGGING
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger("Bruriah")


# -----------------------------------------------------------------------------
# CORS HEADERS
# -----------------------------------------------------------------------------
# Sent on every relay/admin response, including errors and preflights.
RELAY_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, apikey, x-client-info",
}
ADMIN_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

PROMPT_REQUIRED_MESSAGE = "Prompt input is required"
MISSING_API_KEY_MESSAGE = "OpenAI API key is not configured."


# -----------------------------------------------------------------------------
# GLOBAL SERVICE REFERENCES
# -----------------------------------------------------------------------------
# Set during startup (lifespan) and read by the admin endpoints.
chat_store: ChatStore = None


def _error(status_code: int, message: str, cors_headers: dict) -> JSONResponse:
    """JSON {error} response carrying the endpoint's CORS headers."""
    body = ErrorResponse(error=message).model_dump()
    return JSONResponse(status_code=status_code, content=body, headers=cors_headers)


# -------------------------------------------------------------------------
# DEPENDENCIES
# -------------------------------------------------------------------------
# Small accessors so tests can swap the model or the store via dependency_overrides.

def get_chat_model_factory() -> ChatModelFactory:
    return build_chat_model


def get_chat_store() -> Optional[ChatStore]:
    return chat_store


def get_admin_api_key() -> str:
    return ADMIN_API_KEY


# -------------------------------------------------------------------------
# LIFESPAN (STARTUP / SHUTDOWN)
# -------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the chat store on startup; nothing to flush on shutdown (every write is already on disk)."""
    global chat_store

    logger.info("=" * 60)
    logger.info("Bruriah - Starting Up...")
    logger.info("=" * 60)

    try:
        chat_store = ChatStore()
        logger.info("Chat store ready at %s", chat_store.chats_dir.parent)
        if not get_openai_api_key():
            logger.warning("OPENAI_API_KEY not set. /openai will answer 500 until it is configured.")
        logger.info("Bruriah is online and ready!")
        logger.info("=" * 60)

        yield

        logger.info("Shutting down Bruriah...")
    except Exception as e:
        logger.error(f"Fatal error during startup: {e}", exc_info=True)
        raise


# -------------------------------------------------------------------------
# FASTAPI APP AND CORS
# -------------------------------------------------------------------------
app = FastAPI(
    title="Bruriah API",
    description="Streaming tutor chat relay",
    lifespan=lifespan
)

# No CORSMiddleware: every route sends its own CORS headers (RELAY_CORS_HEADERS /
# ADMIN_CORS_HEADERS), so browser preflights reach relay_preflight / admin_preflight.


# =========================================================================
# API ENDPOINTS
# =========================================================================

@app.get("/")
async def root():
    """Return the API name and a short description of each endpoint (for discovery)."""
    return {
        "message": "Bruriah API",
        "endpoints": {
            "/openai": "Streaming tutor chat (POST)",
            "/admin-view": "All chats grouped by user (admin)",
            "/admin-retrieve-chats?chat_id=": "Messages of one chat (admin)",
            "/health": "System health check"
        }
    }


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "chat_store": chat_store is not None,
        "openai_configured": bool(get_openai_api_key()),
    }


@app.options("/openai")
async def relay_preflight():
    """CORS preflight: answer straight away, the body is never read."""
    return PlainTextResponse("ok", headers=RELAY_CORS_HEADERS)


@app.post("/openai")
async def relay(request: Request, model_factory: ChatModelFactory = Depends(get_chat_model_factory)):
    """
    Streaming tutor relay.

    HOW IT WORKS:
    1. Parse and validate the body (400 on bad JSON, bad schema, or empty prompt)
    2. Check the OpenAI key is configured (500 if not)
    3. Assemble [system, profile context, last 10 context turns, prompt]
    4. Stream the model's reply back fragment by fragment

    No provider call is made unless steps 1 and 2 pass. If the model fails
    partway through, whatever was already sent stays sent and the stream is
    cut off.

    REQUEST BODY:
    {
        "prompt": "What is photosynthesis?",
        "context": [{"role": "user", "content": "..."}, {"role": "assistant", "content": "..."}],
        "profileData": {"school": "...", "city": "...", "grade": "4"}
    }
    """
    try:
        try:
            body = await request.json()
        except ValueError:
            logger.warning("Rejected relay request: body is not valid JSON")
            return _error(400, "Request body must be valid JSON", RELAY_CORS_HEADERS)

        try:
            payload = RelayRequest.model_validate(body)
        except ValidationError as e:
            logger.warning("Rejected relay request: %s", e.errors()[0].get("msg") if e.errors() else e)
            return _error(400, "Invalid request body", RELAY_CORS_HEADERS)

        if payload.version != RELAY_SCHEMA_VERSION:
            return _error(400, f"Unsupported request version: {payload.version}", RELAY_CORS_HEADERS)

        if not payload.prompt:
            logger.error("Error: Prompt input is missing.")
            return _error(400, PROMPT_REQUIRED_MESSAGE, RELAY_CORS_HEADERS)

        api_key = get_openai_api_key()
        if not api_key:
            logger.error("Error: OPENAI_API_KEY environment variable is missing.")
            return _error(500, MISSING_API_KEY_MESSAGE, RELAY_CORS_HEADERS)

        logger.info(
            "Relay request: prompt_len=%s context_turns=%s",
            len(payload.prompt),
            len(payload.context),
        )
        service = TutorRelayService(model_factory(api_key))
        messages = service.build_messages(payload)

        return StreamingResponse(
            service.stream_reply(messages),
            media_type="text/event-stream",
            headers=RELAY_CORS_HEADERS,
        )
    except PromptInputError:
        return _error(400, PROMPT_REQUIRED_MESSAGE, RELAY_CORS_HEADERS)
    except Exception as e:
        logger.error(f"Error handling request: {e}", exc_info=True)
        return _error(500, f"Failed to handle request: {e}", RELAY_CORS_HEADERS)


# -------------------------------------------------------------------------
# ADMIN ENDPOINTS
# -------------------------------------------------------------------------

def _admin_denied(authorization: Optional[str], admin_api_key: str) -> Optional[JSONResponse]:
    """Return an error response unless the bearer token matches ADMIN_API_KEY."""
    if not admin_api_key:
        return _error(403, "Admin access is not configured", ADMIN_CORS_HEADERS)
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not secrets.compare_digest(token.strip(), admin_api_key):
        return _error(401, "Unauthorized", ADMIN_CORS_HEADERS)
    return None


@app.options("/admin-view")
@app.options("/admin-retrieve-chats")
async def admin_preflight():
    return PlainTextResponse("OK", headers=ADMIN_CORS_HEADERS)


@app.api_route("/admin-view", methods=["POST", "PUT", "PATCH", "DELETE"])
@app.api_route("/admin-retrieve-chats", methods=["POST", "PUT", "PATCH", "DELETE"])
async def admin_method_not_allowed():
    return _error(405, "Method not allowed", ADMIN_CORS_HEADERS)


@app.get("/admin-view")
async def admin_view(
    authorization: Optional[str] = Header(None),
    store: Optional[ChatStore] = Depends(get_chat_store),
    admin_api_key: str = Depends(get_admin_api_key),
):
    """Every chat, grouped by the user who owns it: [{userId, username, chats: [...]}]."""
    denied = _admin_denied(authorization, admin_api_key)
    if denied:
        return denied
    if store is None:
        return _error(503, "Chat store not initialized", ADMIN_CORS_HEADERS)

    try:
        data = store.list_chats_by_user()
        return JSONResponse(content={"success": True, "data": data}, headers=ADMIN_CORS_HEADERS)
    except Exception as e:
        logger.error(f"Error fetching chats: {e}", exc_info=True)
        return _error(500, "Internal Server Error", ADMIN_CORS_HEADERS)


@app.get("/admin-retrieve-chats")
async def admin_retrieve_chats(
    chat_id: Optional[str] = None,
    authorization: Optional[str] = Header(None),
    store: Optional[ChatStore] = Depends(get_chat_store),
    admin_api_key: str = Depends(get_admin_api_key),
):
    """Messages of one chat, oldest first. An unknown chat gives an empty list."""
    denied = _admin_denied(authorization, admin_api_key)
    if denied:
        return denied
    if not chat_id:
        return _error(400, "Missing required chat_id parameter", ADMIN_CORS_HEADERS)
    if store is None:
        return _error(503, "Chat store not initialized", ADMIN_CORS_HEADERS)

    try:
        validate_id(chat_id)
    except ValueError as e:
        logger.warning(f"Invalid chat_id: {e}")
        return _error(400, str(e), ADMIN_CORS_HEADERS)

    try:
        messages = store.get_messages(chat_id)
    except ChatNotFoundError:
        messages = []
    except Exception as e:
        logger.error(f"Error fetching messages: {e}", exc_info=True)
        return _error(500, "Internal Server Error", ADMIN_CORS_HEADERS)

    return JSONResponse(
        content={"success": True, "data": [m.model_dump() for m in messages]},
        headers=ADMIN_CORS_HEADERS,
    )


# -------------------------------------------------------------------------
# STANDALONE RUN (python -m bruriah.main)
# -------------------------------------------------------------------------
def run():
    """Start the uvicorn server (same as run.py); used if someone does python -m bruriah.main"""
    uvicorn.run(
        "bruriah.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

if __name__ == "__main__":
    run()
