"""
Handlers for the voice session WebSocket and REST endpoints.

Key components:
- session_handlers: Connect validation (session id, agent lookup, duplicates)
  and disconnect cleanup.
- stream_handlers: Inbound audio frames into the state machine, outbound events
  back to the socket.
- chat_handlers: Closed-book text chat, one-shot voice replies, voice preview
  synthesis and synthesis voice listing.
"""

# Handlers module initialization
