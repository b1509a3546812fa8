"""
WebSocket transport for live voice sessions.

This module binds a FastAPI WebSocket to a session's state machine:
- Validates the agent and session ids on connect and creates the session
- Starts the machine's turn loop as a background task
- Feeds inbound audio frames into the machine's queue
- Forwards outbound events as JSON frames in production order
- Destroys the session when either side goes away

The TransportAdapter never sees provider errors; the machine turns them into
``error`` events before they reach the socket.
"""

import asyncio
import logging
from typing import Set

from fastapi import WebSocket, WebSocketDisconnect

from voice_session.bot.session_state_machine import SessionStateMachine
from voice_session.config.constants import LOGGER_NAME
from voice_session.handlers.session_handlers import (
    handle_session_connect,
    handle_session_disconnect,
)
from voice_session.handlers.stream_handlers import handle_audio_frame, pump_outbound_events
from voice_session.models.session_registry import SessionRegistry
from voice_session.services.agent_directory import AgentDirectory
from voice_session.services.audio_transcoder import AudioChunkTranscoder

logger = logging.getLogger(LOGGER_NAME)

# Turn loops outlive their connection until the in-flight call returns
_background_tasks: Set[asyncio.Task] = set()


def spawn(coro, name: str = None) -> asyncio.Task:
    """Start a background task and keep a reference until it finishes."""
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


class TransportAdapter:
    """
    Connects WebSocket clients to session state machines.

    One adapter serves every connection of the process; per-connection state
    lives in the registry and the tasks started for it.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        directory: AgentDirectory,
        transcoder: AudioChunkTranscoder = None,
    ):
        self.registry = registry
        self.directory = directory
        self.transcoder = transcoder or AudioChunkTranscoder()

    async def _receive_frames(self, websocket: WebSocket, machine: SessionStateMachine) -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.info(
                    f"Client disconnected from session {machine.session_id} "
                    f"(code {message.get('code')})"
                )
                return
            handle_audio_frame(message, machine, self.transcoder)

    async def handle_websocket(self, websocket: WebSocket, agent_id: str, session_id: str):
        """Handle one transcription WebSocket for its whole lifetime.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object
            agent_id (str): Agent id path segment
            session_id (str): Session id path segment
        """
        await websocket.accept()
        logger.info(f"WebSocket connection accepted for agent {agent_id}, session {session_id}")

        machine = await handle_session_connect(
            websocket, agent_id, session_id, self.registry, self.directory
        )
        if machine is None:
            return

        spawn(machine.run(), name=f"session-{machine.session_id}")
        receiver = asyncio.create_task(self._receive_frames(websocket, machine))
        sender = asyncio.create_task(pump_outbound_events(websocket, machine))

        try:
            done, _ = await asyncio.wait(
                {receiver, sender}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                exc = task.exception()
                if exc is not None and not isinstance(exc, WebSocketDisconnect):
                    logger.error(
                        f"Error in WebSocket connection for session {machine.session_id}: {exc}",
                        exc_info=exc,
                    )
        finally:
            for task in (receiver, sender):
                task.cancel()
            handle_session_disconnect(machine.session_id, self.registry)
            logger.info(f"WebSocket connection closed for session {machine.session_id}")
