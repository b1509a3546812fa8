"""
Command-line client that streams an audio file into a voice session.

The file is sent in fixed-size binary chunks; every event the server sends back
is printed. Synthesized audio can be written to a directory for playback.

Usage:
    python client.py --agent 42 --file question.webm [--session s1] [--url ws://localhost:8000]
"""

import argparse
import asyncio
import base64
import sys
import uuid
from pathlib import Path

from voice_session.config.logging_config import configure_logging
from voice_session.models.message_schemas import AudioEvent, ErrorEvent
from voice_session.services.websocket_client import VoiceSessionClient, session_url

logger = configure_logging()

DEFAULT_CHUNK_SIZE = 16 * 1024


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Stream an audio file into a voice session")
    parser.add_argument("--url", default="ws://localhost:8000", help="Server base URL")
    parser.add_argument("--agent", type=int, required=True, help="Agent id")
    parser.add_argument("--session", default=None, help="Session id (default: random)")
    parser.add_argument("--file", type=Path, default=None, help="Audio file to stream")
    parser.add_argument(
        "--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE, help="Bytes per frame"
    )
    parser.add_argument(
        "--idle", type=float, default=20.0, help="Stop after this many seconds without events"
    )
    parser.add_argument(
        "--save-audio", type=Path, default=None, help="Directory for received audio"
    )
    return parser.parse_args(argv)


def read_chunks(path: Path, chunk_size: int):
    """Yield the file in ``chunk_size`` pieces."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                return
            yield chunk


async def run_client(args) -> int:
    session_id = args.session or str(uuid.uuid4())
    client = VoiceSessionClient(session_url(args.url, args.agent, session_id))
    if not await client.connect():
        return 1

    if args.save_audio:
        args.save_audio.mkdir(parents=True, exist_ok=True)

    if args.file:
        for chunk in read_chunks(args.file, args.chunk_size):
            await client.send_audio(chunk)
        logger.info(f"Streamed {args.file} in {args.chunk_size}-byte chunks")

    received = 0
    errors = 0
    while True:
        event = await client.receive_event(timeout=args.idle)
        if event is None:
            break
        received += 1
        if isinstance(event, AudioEvent):
            audio = base64.b64decode(event.audio)
            print(f"[audio] {len(audio)} bytes")
            if args.save_audio:
                (args.save_audio / f"{session_id}-{received}.mp3").write_bytes(audio)
        elif isinstance(event, ErrorEvent):
            errors += 1
            print(f"[error] {event.message}")
        else:
            print(f"[{event.type}] {event.model_dump(exclude={'type'})}")

    if client.close_code is not None:
        print(f"Session closed: {client.close_code} {client.close_reason or ''}".rstrip())
    await client.close()
    logger.info(f"Received {received} events ({errors} errors)")
    return 0 if errors == 0 else 2


def main(argv=None):
    args = parse_args(argv)
    sys.exit(asyncio.run(run_client(args)))


if __name__ == "__main__":
    main()
