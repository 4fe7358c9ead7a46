"""
BRURIAH APPLICATION PACKAGE
===========================

Main Python package for the Bruriah tutoring chat.

  from bruriah.main import app
  from bruriah.models import RelayRequest
  from bruriah.client.stream_consumer import StreamConsumer

FILE STRUCTURE:
  bruriah/
    __init__.py   - This file; marks 'bruriah' as a package.
    main.py       - FastAPI app: /openai streaming relay, admin views, /health.
    models.py     - Pydantic models for relay requests and chat storage.
    services/     - Context window, prompt assembly, relay stream, chat store.
    client/       - Chat client side: auth session and the stream consumer.
"""
