import asyncio
import logging
import os
import tempfile

import pytest

# Provider credentials and a throwaway log directory must exist before the
# application modules are imported
os.environ.setdefault("DEEPGRAM_API_KEY", "test-deepgram-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")
os.environ.setdefault("ELEVENLABS_API_KEY", "test-elevenlabs-key")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="voice-session-logs-"))

from voice_session.bot.session_state_machine import SessionStateMachine  # noqa: E402
from voice_session.models.agent import (  # noqa: E402
    AgentContext,
    AgentRecord,
    KnowledgeDocument,
)
from voice_session.models.session import Session, SessionState  # noqa: E402
from voice_session.services.audio_transcoder import AudioChunk  # noqa: E402
from voice_session.services.transcription_client import TranscriptionResult  # noqa: E402


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


class CallTracker:
    """Counts provider calls in flight across all stub clients of one session."""

    def __init__(self):
        self.active = 0
        self.peak = 0

    def enter(self):
        self.active += 1
        self.peak = max(self.peak, self.active)

    def exit(self):
        self.active -= 1


class StubTranscriptionClient:
    """Returns the chunk's bytes as a final transcript unless told otherwise."""

    def __init__(self, tracker=None):
        self.tracker = tracker or CallTracker()
        self.calls = []
        self.results = None
        self.error = None
        self.delay = 0.0

    async def transcribe(self, chunk):
        self.calls.append(chunk)
        self.tracker.enter()
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            if self.results is not None:
                return list(self.results)
            return [TranscriptionResult(transcript=chunk.data.decode("utf-8"), is_final=True)]
        finally:
            self.tracker.exit()


class StubCompletionClient:
    """Returns a fixed reply; can be held on a gate to simulate a slow provider."""

    def __init__(self, tracker=None):
        self.tracker = tracker or CallTracker()
        self.calls = []
        self.reply = "Sure."
        self.error = None
        self.delay = 0.0
        self.gate = None

    async def complete(self, messages, **kwargs):
        self.calls.append((list(messages), kwargs))
        self.tracker.enter()
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.reply
        finally:
            self.tracker.exit()


class StubSynthesisClient:
    def __init__(self, tracker=None):
        self.tracker = tracker or CallTracker()
        self.calls = []
        self.audio = b"\x01\x02"
        self.error = None
        self.voices = []

    async def synthesize(self, text, voice_id, settings=None):
        self.calls.append((text, voice_id))
        self.tracker.enter()
        try:
            if self.error is not None:
                raise self.error
            return self.audio
        finally:
            self.tracker.exit()

    async def list_voices(self):
        if self.error is not None:
            raise self.error
        return list(self.voices)


@pytest.fixture
def tracker():
    return CallTracker()


@pytest.fixture
def transcription_client(tracker):
    return StubTranscriptionClient(tracker)


@pytest.fixture
def completion_client(tracker):
    return StubCompletionClient(tracker)


@pytest.fixture
def synthesis_client(tracker):
    return StubSynthesisClient(tracker)


@pytest.fixture
def agent():
    return AgentRecord(id=42, name="Ava")


@pytest.fixture
def voiced_agent():
    return AgentRecord(id=42, name="Ava", voice_id="v1")


@pytest.fixture
def consulting_document():
    return KnowledgeDocument(
        name="Website: acme.com",
        agent_id=42,
        content="Acme offers Consulting for small businesses.",
        metadata={
            "description": "Cloud consulting for small businesses. Founded 2015.",
            "services": [{"title": "Consulting"}],
        },
    )


@pytest.fixture
def make_machine(transcription_client, completion_client, synthesis_client):
    """Build a state machine for an agent snapshot, wired to the stub clients."""

    def _make(agent, documents=(), session_id="s1", **kwargs):
        session = Session(session_id=session_id, agent_id=agent.id)
        context = AgentContext(agent=agent, documents=tuple(documents))
        return SessionStateMachine(
            session,
            transcription_client=transcription_client,
            completion_client=completion_client,
            synthesis_client=synthesis_client,
            agent_context=context,
            **kwargs,
        )

    return _make


def audio_chunk(text):
    return AudioChunk(data=text.encode("utf-8"), encoding="webm", mimetype="audio/webm;codecs=opus")


@pytest.fixture
def chunk():
    """Build an audio chunk whose stub transcript is ``text``."""
    return audio_chunk


@pytest.fixture
def wait_idle():
    """Wait until a machine sits in AwaitingAudio with nothing queued or in flight."""

    async def _wait(machine, turns=None, timeout=2.0):
        async def _poll():
            while not (
                machine.state == SessionState.AWAITING_AUDIO
                and machine.pending_chunks == 0
                and machine.in_flight_calls == 0
                and (turns is None or machine.turns_completed >= turns)
            ):
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_poll(), timeout)

    return _wait


@pytest.fixture
def wait_state():
    async def _wait(machine, state, timeout=2.0):
        async def _poll():
            while machine.state != state:
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_poll(), timeout)

    return _wait


APP_STATE_FIELDS = ("settings", "transport", "directory", "completion_client", "synthesis_client")


@pytest.fixture
def clean_app_state():
    """Leave the FastAPI app without an installed pipeline before and after a test."""
    from voice_session.main import app

    for name in APP_STATE_FIELDS:
        setattr(app.state, name, None)
    yield app
    for name in APP_STATE_FIELDS:
        setattr(app.state, name, None)


@pytest.fixture
def directory(agent, consulting_document):
    from voice_session.services.agent_directory import InMemoryAgentDirectory

    docs_agent = AgentRecord(id=7, name="Max", voice_id="v1")
    document = consulting_document.model_copy(update={"agent_id": 7})
    return InMemoryAgentDirectory([agent, docs_agent], [document])


@pytest.fixture
def test_client(clean_app_state, directory, transcription_client, completion_client, synthesis_client):
    """TestClient for the app with stub providers installed."""
    from fastapi.testclient import TestClient

    from voice_session.config.settings import Settings
    from voice_session.main import create_transport

    app = clean_app_state
    settings = Settings()
    app.state.settings = settings
    app.state.directory = directory
    app.state.completion_client = completion_client
    app.state.synthesis_client = synthesis_client
    app.state.transport = create_transport(
        settings, directory, transcription_client, completion_client, synthesis_client
    )
    with TestClient(app) as client:
        yield client
