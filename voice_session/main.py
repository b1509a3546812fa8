"""
FastAPI server for real-time voice conversations with AI agents.

This module initializes and configures the FastAPI application that serves the
voice session pipeline. A browser (or the bundled dev client) opens a WebSocket
per call, streams audio up, and receives transcripts, replies and synthesized
speech back.

Endpoints:
- ``/ws/transcription/{agent_id}/{session_id}``: live voice session
- ``POST /api/chat``: closed-book text chat with an agent
- ``GET /api/voices``: synthesis voices for agent configuration
- ``POST /api/voice-chat``: one question answered as text plus speech
- ``POST /api/text-to-speech``: voice preview synthesis
- ``/health`` and ``/``: status and service information

Provider clients, the agent directory and the session registry are built in the
application lifespan from environment settings. Missing provider credentials
stop the application from starting.
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket

from voice_session.bot.session_state_machine import SessionStateMachine
from voice_session.config.constants import TRANSCRIPTION_WS_PATH
from voice_session.config.logging_config import configure_logging
from voice_session.config.settings import Settings, load_settings
from voice_session.handlers.chat_handlers import (
    handle_chat,
    handle_list_voices,
    handle_text_to_speech,
    handle_voice_chat,
)
from voice_session.models.message_schemas import ChatRequest, TextToSpeechRequest
from voice_session.models.session_registry import SessionRegistry
from voice_session.services.agent_directory import (
    AgentDirectory,
    InMemoryAgentDirectory,
    JsonFileAgentDirectory,
)
from voice_session.services.completion_client import CompletionClient
from voice_session.services.synthesis_client import SynthesisClient
from voice_session.services.transcription_client import TranscriptionClient
from voice_session.websocket_manager import TransportAdapter

# Configure logging
logger = configure_logging()

SERVICE_NAME = "Voice Session Pipeline"
SERVICE_DESCRIPTION = "Real-time voice conversations with document-grounded AI agents"
SERVICE_VERSION = "1.0.0"


def create_directory(settings: Settings) -> AgentDirectory:
    """Load agents from ``AGENTS_FILE``, or start with an empty directory."""
    if settings.agents_file:
        return JsonFileAgentDirectory(settings.agents_file)
    logger.warning("AGENTS_FILE not set; every connection will be rejected as agent not found")
    return InMemoryAgentDirectory()


def create_transport(
    settings: Settings,
    directory: AgentDirectory,
    transcription_client: TranscriptionClient,
    completion_client: CompletionClient,
    synthesis_client: SynthesisClient,
) -> TransportAdapter:
    """Wire a registry whose sessions run on the given clients."""

    def machine_factory(session, on_closed):
        return SessionStateMachine(
            session,
            transcription_client=transcription_client,
            completion_client=completion_client,
            synthesis_client=synthesis_client,
            directory=directory,
            queue_size=settings.session.queue_size,
            transcription_timeout=settings.transcription.timeout,
            completion_timeout=settings.completion.timeout,
            synthesis_timeout=settings.synthesis.timeout,
            on_closed=on_closed,
        )

    registry = SessionRegistry(machine_factory, idle_timeout=settings.session.idle_timeout)
    return TransportAdapter(registry, directory)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the pipeline unless one was installed beforehand, and run the idle sweeper."""
    settings = getattr(app.state, "settings", None) or load_settings()
    app.state.settings = settings
    owned_clients = []

    if getattr(app.state, "transport", None) is None:
        settings.validate()
        transcription_client = TranscriptionClient(
            settings.transcription.api_key,
            base_url=settings.transcription.base_url,
            language=settings.transcription.language,
            timeout=settings.transcription.timeout,
        )
        completion_client = CompletionClient(
            settings.completion.api_key,
            base_url=settings.completion.base_url,
            model=settings.completion.model,
            temperature=settings.completion.temperature,
            max_tokens=settings.completion.max_tokens,
            timeout=settings.completion.timeout,
        )
        synthesis_client = SynthesisClient(
            settings.synthesis.api_key,
            base_url=settings.synthesis.base_url,
            model_id=settings.synthesis.model_id,
            timeout=settings.synthesis.timeout,
        )
        owned_clients = [transcription_client, completion_client, synthesis_client]
        directory = create_directory(settings)

        app.state.directory = directory
        app.state.completion_client = completion_client
        app.state.synthesis_client = synthesis_client
        app.state.transport = create_transport(
            settings, directory, transcription_client, completion_client, synthesis_client
        )

    registry = app.state.transport.registry
    sweeper = asyncio.create_task(registry.run_sweeper(settings.session.sweep_interval))
    logger.info(f"{SERVICE_NAME} started")

    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        registry.close_all()
        for client in owned_clients:
            await client.aclose()
        logger.info(f"{SERVICE_NAME} stopped")


# Create FastAPI application
app = FastAPI(
    title=SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


@app.websocket(TRANSCRIPTION_WS_PATH)
async def transcription_endpoint(websocket: WebSocket, agent_id: str, session_id: str):
    """WebSocket endpoint for one live voice session.

    Inbound frames are audio (binary, or base64 text). Outbound frames are JSON
    objects of type ``transcription``, ``response``, ``audio`` or ``error``.
    """
    await websocket.app.state.transport.handle_websocket(websocket, agent_id, session_id)


@app.post("/api/chat")
async def chat(request: Request, body: ChatRequest):
    """Closed-book text chat with an agent that has documents assigned."""
    state = request.app.state
    return await handle_chat(body, state.directory, state.completion_client)


@app.get("/api/voices")
async def voices(request: Request):
    """Voices available from the synthesis provider."""
    return await handle_list_voices(request.app.state.synthesis_client)


@app.post("/api/voice-chat")
async def voice_chat(request: Request, body: ChatRequest):
    """One question answered as text and synthesized speech in the agent's voice."""
    state = request.app.state
    return await handle_voice_chat(
        body, state.directory, state.completion_client, state.synthesis_client
    )


@app.post("/api/text-to-speech")
async def text_to_speech(request: Request, body: TextToSpeechRequest):
    """Synthesize arbitrary text with a given voice."""
    return await handle_text_to_speech(body, request.app.state.synthesis_client)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint for monitoring system status.

    Returns:
        dict: Status, provider credential flags and the number of active sessions
    """
    state = request.app.state
    settings = getattr(state, "settings", None) or load_settings()
    transport = getattr(state, "transport", None)
    return {
        "status": "healthy",
        "transcription_configured": bool(settings.transcription.api_key),
        "completion_configured": bool(settings.completion.api_key),
        "synthesis_configured": bool(settings.synthesis.api_key),
        "active_sessions": len(transport.registry) if transport is not None else 0,
    }


@app.get("/")
async def root():
    """Root endpoint to display basic information about the API.

    Returns:
        dict: Basic information about the API and its purpose.
    """
    return {
        "name": SERVICE_NAME,
        "description": SERVICE_DESCRIPTION,
        "version": SERVICE_VERSION,
        "endpoints": {
            TRANSCRIPTION_WS_PATH: "WebSocket endpoint for live voice sessions",
            "/api/chat": "Closed-book text chat with an agent",
            "/api/voices": "Available synthesis voices",
            "/api/voice-chat": "One-shot spoken reply from an agent",
            "/api/text-to-speech": "Synthesize text with a voice",
            "/health": "Health check endpoint",
        },
    }


if __name__ == "__main__":
    import uvicorn

    settings = load_settings()
    logger.info(f"Starting server on http://{settings.host}:{settings.port}")
    uvicorn.run(app, host=settings.host, port=settings.port, http="h11")
