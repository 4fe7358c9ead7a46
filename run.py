"""
RUN SCRIPT - Start the Bruriah server
=====================================

PURPOSE:
  Single entry point to start the backend: the streaming tutor relay
  (POST /openai) and the admin chat views.

USAGE:
  python run.py

  Then point the chat client at it (python chat_cli.py) or call the API directly.
  API docs: http://localhost:8000/docs

NOTE:
  Before running, set OPENAI_API_KEY (and optionally ADMIN_API_KEY) in .env.
"""

import uvicorn

# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "bruriah.main:app",   # String path to the FastAPI app instance (module:variable).
        host="0.0.0.0",       # Listen on all network interfaces so other devices can connect.
        port=8000,            # HTTP port; change if 8000 is already in use.
        reload=True           # Auto-restart when .py files change (useful during development).
    )
