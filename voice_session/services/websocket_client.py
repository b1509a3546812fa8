"""
WebSocket client for the voice session endpoint.

A small development client: it connects to
``/ws/transcription/{agent_id}/{session_id}``, sends audio as binary frames and
decodes the four outbound event shapes with the same Pydantic models the server
uses.
"""

import asyncio
import json
import logging
from typing import Optional

import websockets
from pydantic import TypeAdapter, ValidationError

from voice_session.config.constants import LOGGER_NAME, TRANSCRIPTION_WS_PATH
from voice_session.models.message_schemas import OutboundEvent

logger = logging.getLogger(LOGGER_NAME)

_event_adapter = TypeAdapter(OutboundEvent)


def session_url(base_url: str, agent_id: int, session_id: str) -> str:
    """Build the session WebSocket URL from a server base such as ``ws://localhost:8000``."""
    path = TRANSCRIPTION_WS_PATH.format(agent_id=agent_id, session_id=session_id)
    return base_url.rstrip("/") + path


def parse_event(raw: str) -> OutboundEvent:
    """
    Decode one outbound frame.

    Raises:
        ValueError: If the frame is not one of the four event shapes
    """
    try:
        return _event_adapter.validate_python(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"Unrecognized event frame: {raw[:120]!r}") from e


class VoiceSessionClient:
    """
    Client for one voice session over WebSocket.

    Usage:
    ```python
    client = VoiceSessionClient(session_url("ws://localhost:8000", 42, "s1"))
    if await client.connect():
        greeting = await client.receive_event()
        await client.send_audio(audio_bytes)
        ...
        await client.close()
    ```
    """

    def __init__(self, url: str):
        """
        Initialize the client.

        Args:
            url: Full session WebSocket URL
        """
        self.url = url
        self.websocket = None
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None

    async def connect(self) -> bool:
        """
        Open the WebSocket.

        Returns:
            True if connection was successful, False otherwise
        """
        try:
            self.websocket = await websockets.connect(self.url)
            logger.info(f"Connected to voice session at {self.url}")
            return True
        except (OSError, websockets.exceptions.WebSocketException) as e:
            logger.error(f"Failed to connect to {self.url}: {e}")
            return False

    async def send_audio(self, audio_data: bytes) -> None:
        """Send one audio chunk as a binary frame."""
        if not self.websocket:
            logger.error("Cannot send audio: Not connected")
            return
        await self.websocket.send(audio_data)
        logger.debug(f"Sent audio chunk of {len(audio_data)} bytes")

    async def receive_event(self, timeout: Optional[float] = None) -> Optional[OutboundEvent]:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely

        Returns:
            The decoded event, or None when the server closed the session or the
            timeout elapsed
        """
        if not self.websocket:
            logger.error("Cannot receive: Not connected")
            return None

        try:
            raw = await asyncio.wait_for(self.websocket.recv(), timeout)
        except asyncio.TimeoutError:
            return None
        except websockets.exceptions.ConnectionClosed as e:
            self.close_code = e.rcvd.code if e.rcvd else None
            self.close_reason = e.rcvd.reason if e.rcvd else None
            logger.info(f"Session closed by server: {self.close_code} {self.close_reason}")
            self.websocket = None
            return None

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return parse_event(raw)

    async def close(self) -> None:
        """
        Close the WebSocket connection.
        """
        if self.websocket:
            await self.websocket.close()
            logger.info("Closed WebSocket connection")
            self.websocket = None
