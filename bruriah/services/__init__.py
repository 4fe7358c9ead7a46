"""
SERVICES PACKAGE
=================

Business logic lives here. The API layer (bruriah.main) calls these services;
they don't handle HTTP, only prompt building, the model stream, and data.

MODULES:
    context_window   - last N turns of a conversation, oldest first
    prompt_assembler - system prompt + profile context + window + new prompt
    relay_service    - TutorRelayService: streams the model's reply as bytes
    chat_store       - ChatStore: chats, messages and profiles as JSON files
"""
