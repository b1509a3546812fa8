"""
Audio and event streaming between the WebSocket and a session's state machine.

Inbound frames (binary audio, or base64 text) are decoded by the transcoder and
queued on the machine. Outbound events are forwarded as JSON text frames in the
order the machine produced them. When the machine closes, the socket is closed
with code 1011.
"""

import logging
from typing import Any, Dict

from fastapi import WebSocket

from voice_session.bot.session_state_machine import SessionStateMachine
from voice_session.config.constants import LOGGER_NAME, WS_CLOSE_INTERNAL_ERROR
from voice_session.handlers.session_handlers import close_websocket
from voice_session.services.audio_transcoder import AudioChunkTranscoder, InvalidAudioFrame

logger = logging.getLogger(LOGGER_NAME)

REASON_SESSION_CLOSED = "Session closed"


def handle_audio_frame(
    message: Dict[str, Any],
    machine: SessionStateMachine,
    transcoder: AudioChunkTranscoder,
) -> bool:
    """
    Decode one ASGI ``websocket.receive`` message and queue its audio.

    Args:
        message: The raw receive message with a ``bytes`` or ``text`` payload
        machine: The session's state machine
        transcoder: Frame decoder

    Returns:
        True if a chunk was queued, False if the frame was empty, undecodable or
        dropped
    """
    frame = message.get("bytes")
    if frame is None:
        frame = message.get("text")
    if not frame:
        logger.debug(f"Ignoring empty frame for session {machine.session_id}")
        return False

    try:
        chunk = transcoder(frame)
    except InvalidAudioFrame as e:
        logger.warning(f"Invalid audio frame for session {machine.session_id}: {e}")
        return False

    return machine.submit_audio(chunk)


async def pump_outbound_events(websocket: WebSocket, machine: SessionStateMachine) -> int:
    """
    Forward the machine's events to the socket until the machine closes.

    Returns:
        The number of events sent
    """
    sent = 0
    while True:
        event = await machine.next_event()
        if event is None:
            break
        await websocket.send_text(event.model_dump_json())
        sent += 1
        logger.debug(f"Sent {event.type} event to session {machine.session_id}")

    logger.info(f"Event stream ended for session {machine.session_id} after {sent} events")
    await close_websocket(websocket, WS_CLOSE_INTERNAL_ERROR, REASON_SESSION_CLOSED)
    return sent
