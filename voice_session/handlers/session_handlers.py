"""
Session lifecycle handling for the transcription WebSocket.

On connect the path parameters are validated and the referenced agent is looked
up before any session exists. A rejected connection is accepted and then closed
with policy-violation code 1008 and a short reason, so browser clients can read
why. On disconnect the session is destroyed through the registry.
"""

import logging
from typing import Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from voice_session.config.constants import LOGGER_NAME, WS_CLOSE_POLICY_VIOLATION
from voice_session.models.session_registry import SessionRegistry
from voice_session.services.agent_directory import AgentDirectory
from voice_session.services.errors import DuplicateSessionError

logger = logging.getLogger(LOGGER_NAME)

REASON_SESSION_REQUIRED = "Session ID required"
REASON_AGENT_NOT_FOUND = "Agent not found"
REASON_SESSION_ACTIVE = "Session already active"


def parse_agent_id(raw: str) -> Optional[int]:
    """Return the agent id as an integer, or None if it is blank or not numeric."""
    try:
        return int((raw or "").strip())
    except ValueError:
        return None


async def close_websocket(websocket: WebSocket, code: int, reason: str = "") -> None:
    """Close the socket unless either side already has."""
    if (
        websocket.application_state != WebSocketState.CONNECTED
        or websocket.client_state != WebSocketState.CONNECTED
    ):
        return
    try:
        await websocket.close(code=code, reason=reason)
    except RuntimeError as e:
        logger.debug(f"WebSocket already closing: {e}")


async def handle_session_connect(
    websocket: WebSocket,
    agent_id: str,
    session_id: str,
    registry: SessionRegistry,
    directory: AgentDirectory,
):
    """
    Validate a new connection and create its session.

    Args:
        websocket: The accepted WebSocket
        agent_id: Raw agent id path segment
        session_id: Raw session id path segment
        registry: Registry that will own the session
        directory: Agent lookup

    Returns:
        The session's state machine, or None if the connection was rejected and
        closed
    """
    session_id = (session_id or "").strip()
    if not session_id:
        logger.warning("Rejecting connection without a session id")
        await close_websocket(websocket, WS_CLOSE_POLICY_VIOLATION, REASON_SESSION_REQUIRED)
        return None

    parsed_agent_id = parse_agent_id(agent_id)
    agent = await directory.get_agent(parsed_agent_id) if parsed_agent_id is not None else None
    if agent is None:
        logger.warning(f"Rejecting session {session_id}: agent {agent_id!r} not found")
        await close_websocket(websocket, WS_CLOSE_POLICY_VIOLATION, REASON_AGENT_NOT_FOUND)
        return None

    try:
        registry.create(session_id, parsed_agent_id)
    except DuplicateSessionError:
        logger.warning(f"Rejecting duplicate connect for session {session_id}")
        await close_websocket(websocket, WS_CLOSE_POLICY_VIOLATION, REASON_SESSION_ACTIVE)
        return None

    logger.info(f"Session {session_id} connected to agent {agent.name} ({parsed_agent_id})")
    return registry.get_machine(session_id)


def handle_session_disconnect(session_id: str, registry: SessionRegistry) -> None:
    """Destroy the session for a closed transport. Safe to call more than once."""
    if registry.destroy(session_id, reason="transport closed"):
        logger.info(f"Session {session_id} disconnected")
