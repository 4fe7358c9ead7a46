"""
CLIENT PACKAGE
==============

Code that runs on the student's side of the relay (used by chat_cli.py):

  session         - AuthSession: who is signed in, with scoped listener registration.
  stream_consumer - StreamConsumer: posts to /openai and accumulates the streamed reply.
"""
