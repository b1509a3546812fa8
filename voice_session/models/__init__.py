"""
Data models and session state for the voice pipeline.

Key components:
- agent: Agent records and knowledge documents read from the agent directory.
- session: Session, Message and the allowed state transitions.
- message_schemas: Pydantic models for outbound WebSocket events and REST payloads.
- session_registry: Process-wide map of live sessions with idle eviction.
"""

from voice_session.models.agent import AgentContext, AgentRecord, KnowledgeDocument
from voice_session.models.message_schemas import (
    AudioEvent,
    ErrorEvent,
    OutboundEvent,
    ResponseEvent,
    TranscriptionEvent,
)
from voice_session.models.session import Message, Session, SessionState
from voice_session.models.session_registry import SessionRegistry
