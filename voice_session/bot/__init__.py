"""
Conversation logic for live voice sessions.

Key components:
- context_builder: Renders the system prompt, knowledge context, greeting and
  closed-book fallback for an agent. Pure and deterministic.
- session_state_machine: Owns one conversation and sequences each turn through
  transcription, completion and synthesis, emitting outbound events in order.
"""

from voice_session.bot.context_builder import (
    ConversationContext,
    build_conversation_context,
    validate_closed_book_response,
)
from voice_session.bot.session_state_machine import SessionStateMachine

__all__ = [
    "ConversationContext",
    "SessionStateMachine",
    "build_conversation_context",
    "validate_closed_book_response",
]
