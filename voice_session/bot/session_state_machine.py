"""
State machine driving one live voice conversation.

The machine owns a single ``Session`` and sequences each turn through the three
providers: transcription, completion and synthesis. Turns are processed strictly
one at a time by the ``run()`` task:

    Greeting -> AwaitingAudio -> Transcribing -> Completing -> Synthesizing -> AwaitingAudio

Inbound audio chunks go through a small bounded queue. Chunks arriving while a
turn is in flight wait there and are drained in arrival order once the machine
is back in AwaitingAudio; when the queue is full new chunks are dropped with a
warning.

Outbound events (``transcription``, ``response``, ``audio``, ``error``) are put on
an unbounded queue in production order. A ``None`` sentinel marks the end of the
stream once the machine has closed.

Provider failures never escape this module. Transcription and completion
failures end the turn in Error and the conversation continues; synthesis
failures are logged and the text reply stands. Structural failures (the agent
has disappeared) close the session.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, Type, TypeVar

from voice_session.bot.context_builder import (
    ConversationContext,
    build_conversation_context,
    validate_closed_book_response,
)
from voice_session.config.constants import (
    DEFAULT_COMPLETION_TIMEOUT,
    DEFAULT_SESSION_QUEUE_SIZE,
    DEFAULT_SYNTHESIS_TIMEOUT,
    DEFAULT_TRANSCRIPTION_TIMEOUT,
    LOGGER_NAME,
)
from voice_session.models.agent import AgentContext
from voice_session.models.message_schemas import (
    AudioEvent,
    ErrorEvent,
    OutboundEvent,
    ResponseEvent,
    TranscriptionEvent,
)
from voice_session.models.session import (
    ALLOWED_TRANSITIONS,
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    Message,
    Session,
    SessionState,
)
from voice_session.services.agent_directory import AgentDirectory, load_agent_context
from voice_session.services.audio_transcoder import AudioChunk
from voice_session.services.completion_client import CompletionClient
from voice_session.services.errors import (
    CompletionError,
    InvalidTransitionError,
    ProviderError,
    StructuralSessionError,
    SynthesisError,
    TranscriptionError,
)
from voice_session.services.synthesis_client import SynthesisClient
from voice_session.services.transcription_client import TranscriptionClient

logger = logging.getLogger(LOGGER_NAME)

T = TypeVar("T")


class SessionStateMachine:
    """
    Sequences the turns of one conversation.

    Either a pre-loaded ``agent_context`` or a ``directory`` to load it from must
    be given. Loading happens on entry to Greeting, so an agent deleted between
    connect and start closes the session.
    """

    def __init__(
        self,
        session: Session,
        *,
        transcription_client: TranscriptionClient,
        completion_client: CompletionClient,
        synthesis_client: SynthesisClient,
        agent_context: Optional[AgentContext] = None,
        directory: Optional[AgentDirectory] = None,
        queue_size: int = DEFAULT_SESSION_QUEUE_SIZE,
        transcription_timeout: float = DEFAULT_TRANSCRIPTION_TIMEOUT,
        completion_timeout: float = DEFAULT_COMPLETION_TIMEOUT,
        synthesis_timeout: float = DEFAULT_SYNTHESIS_TIMEOUT,
        on_closed: Optional[Callable[[str], None]] = None,
    ):
        if agent_context is None and directory is None:
            raise ValueError("Either agent_context or directory is required")

        self.session = session
        self.transcription_client = transcription_client
        self.completion_client = completion_client
        self.synthesis_client = synthesis_client
        self.agent_context = agent_context
        self.directory = directory
        self.context: Optional[ConversationContext] = None

        self.transcription_timeout = transcription_timeout
        self.completion_timeout = completion_timeout
        self.synthesis_timeout = synthesis_timeout
        self.on_closed = on_closed

        self._inbound: "asyncio.Queue[Optional[AudioChunk]]" = asyncio.Queue(maxsize=queue_size)
        self._outbound: "asyncio.Queue[Optional[OutboundEvent]]" = asyncio.Queue()
        self._sequence = 0

        # Counters read by tests and the health endpoint
        self.in_flight_calls = 0
        self.peak_in_flight_calls = 0
        self.turns_completed = 0
        self.dropped_chunks = 0

    # Introspection
    @property
    def session_id(self) -> str:
        return self.session.session_id

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def closed(self) -> bool:
        return self.session.state == SessionState.CLOSED

    @property
    def pending_chunks(self) -> int:
        """Audio chunks queued behind the turn in flight."""
        return self._inbound.qsize()

    # Inbound side
    def submit_audio(self, chunk: AudioChunk) -> bool:
        """
        Queue an audio chunk for processing. Never blocks.

        Returns:
            True if the chunk was queued, False if it was dropped because the
            queue is full or the session is closed
        """
        if self.closed:
            logger.debug(f"Ignoring audio for closed session {self.session_id}")
            return False

        self._sequence += 1
        try:
            self._inbound.put_nowait(chunk.with_sequence(self._sequence))
        except asyncio.QueueFull:
            self.dropped_chunks += 1
            logger.warning(
                f"Inbound queue full for session {self.session_id}, dropping chunk "
                f"#{self._sequence} ({self.dropped_chunks} dropped so far)"
            )
            return False

        self.session.touch()
        return True

    # Outbound side
    async def next_event(self) -> Optional[OutboundEvent]:
        """Wait for the next outbound event; ``None`` once the session has closed."""
        return await self._outbound.get()

    async def events(self):
        """Iterate outbound events until the session closes."""
        while True:
            event = await self._outbound.get()
            if event is None:
                return
            yield event

    def drain_events(self) -> List[OutboundEvent]:
        """Return the events queued so far without waiting."""
        events = []
        while not self._outbound.empty():
            event = self._outbound.get_nowait()
            if event is not None:
                events.append(event)
        return events

    def _emit(self, event: OutboundEvent) -> None:
        if self.closed:
            return
        self._outbound.put_nowait(event)

    # Lifecycle
    def _transition(self, new_state: SessionState) -> None:
        current = self.session.state
        if new_state not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Illegal transition {current.value} -> {new_state.value} "
                f"for session {self.session_id}"
            )
        logger.debug(f"Session {self.session_id}: {current.value} -> {new_state.value}")
        self.session.state = new_state

    def close(self, reason: str = "closed") -> None:
        """
        Move to Closed. Idempotent.

        Queued chunks are discarded and the outbound stream is terminated. A
        provider call still in flight runs to completion but its result is
        ignored.
        """
        if self.closed:
            return

        self._transition(SessionState.CLOSED)
        while not self._inbound.empty():
            self._inbound.get_nowait()
        self._inbound.put_nowait(None)
        self._outbound.put_nowait(None)
        logger.info(
            f"Session {self.session_id} closed ({reason}) after "
            f"{self.turns_completed} turns"
        )

        if self.on_closed is not None:
            try:
                self.on_closed(self.session_id)
            except Exception as e:
                logger.error(
                    f"Close callback failed for session {self.session_id}: {e}",
                    exc_info=True,
                )

    async def run(self) -> None:
        """Greet the caller, then process queued audio until the session closes."""
        logger.info(f"Session {self.session_id} started for agent {self.session.agent_id}")
        try:
            await self._greet()
            while not self.closed:
                chunk = await self._inbound.get()
                if chunk is None or self.closed:
                    break
                await self._handle_chunk(chunk)
        except StructuralSessionError as e:
            self._fail_structural(e)
        except asyncio.CancelledError:
            self.close("cancelled")
            raise
        except Exception as e:
            logger.error(f"Unexpected error in session {self.session_id}: {e}", exc_info=True)
            if not self.closed:
                self._emit(ErrorEvent(message="Processing failed"))
            self.close("internal error")

    # Provider calls
    async def _call(
        self,
        awaitable: Awaitable[T],
        timeout: float,
        error_class: Type[ProviderError],
    ) -> T:
        """Await one provider call under a hard timeout, tracking in-flight calls."""
        self.in_flight_calls += 1
        self.peak_in_flight_calls = max(self.peak_in_flight_calls, self.in_flight_calls)
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise error_class(f"{error_class.provider.capitalize()} timed out after {timeout:g}s") from exc
        finally:
            self.in_flight_calls -= 1

    async def _synthesize(self, text: str) -> None:
        """Emit an audio event for ``text`` if the agent has a voice. Failures are logged only."""
        if not self.agent_context.has_voice:
            return
        try:
            audio = await self._call(
                self.synthesis_client.synthesize(text, self.agent_context.agent.voice_id),
                self.synthesis_timeout,
                SynthesisError,
            )
        except ProviderError as e:
            logger.warning(f"Synthesis failed for session {self.session_id}: {e}")
            return
        if self.closed:
            return
        self._emit(AudioEvent.from_bytes(audio))

    # States
    async def _greet(self) -> None:
        if self.agent_context is None:
            self.agent_context = await load_agent_context(self.directory, self.session.agent_id)
            if self.closed:
                return
        self.context = build_conversation_context(
            self.agent_context.agent, self.agent_context.documents
        )

        self._emit(TranscriptionEvent(text=self.context.greeting_message, isFinal=True))
        await self._synthesize(self.context.greeting_message)
        if self.closed:
            return
        self._transition(SessionState.AWAITING_AUDIO)

    async def _handle_chunk(self, chunk: AudioChunk) -> None:
        self._transition(SessionState.TRANSCRIBING)
        try:
            results = await self._call(
                self.transcription_client.transcribe(chunk),
                self.transcription_timeout,
                TranscriptionError,
            )
        except ProviderError as e:
            self._fail_turn(e)
            return
        if self.closed:
            return

        finals = []
        for result in results:
            if result.is_final:
                finals.append(result.transcript)
            else:
                self._emit(TranscriptionEvent(text=result.transcript, isFinal=False))

        if not finals:
            self._transition(SessionState.AWAITING_AUDIO)
            return

        transcript = " ".join(finals)
        self._emit(TranscriptionEvent(text=transcript, isFinal=True))
        self.session.append(ROLE_USER, transcript)
        self.session.touch()
        await self._complete()

    async def _complete(self) -> None:
        self._transition(SessionState.COMPLETING)
        messages = [Message(ROLE_SYSTEM, self.context.system_prompt()), *self.session.history]
        try:
            reply = await self._call(
                self.completion_client.complete(messages),
                self.completion_timeout,
                CompletionError,
            )
            if not reply:
                raise CompletionError("Completion returned no text")
        except ProviderError as e:
            self._fail_turn(e)
            return
        if self.closed:
            return

        validated = validate_closed_book_response(self.context, reply)
        if validated != reply:
            logger.warning(
                f"Session {self.session_id}: reply lacks closed-book markers, "
                f"substituting fallback (was: {reply[:80]!r})"
            )

        self.session.append(ROLE_ASSISTANT, validated)
        self._emit(ResponseEvent(text=validated))

        self._transition(SessionState.SYNTHESIZING)
        await self._synthesize(validated)
        if self.closed:
            return

        self._transition(SessionState.AWAITING_AUDIO)
        self.turns_completed += 1
        self.session.touch()

    # Failures
    def _fail_turn(self, error: ProviderError) -> None:
        if self.closed:
            logger.debug(f"Discarding {error.provider} failure for closed session {self.session_id}")
            return
        logger.error(
            f"Session {self.session_id}: {error.provider} failed in state "
            f"{self.state.value}: {error} body={error.raw_body!r}"
        )
        self._transition(SessionState.ERROR)
        self._emit(ErrorEvent(message=str(error)))
        self._transition(SessionState.AWAITING_AUDIO)

    def _fail_structural(self, error: StructuralSessionError) -> None:
        if self.closed:
            return
        logger.error(f"Session {self.session_id} cannot continue: {error}")
        self._transition(SessionState.ERROR)
        self._emit(ErrorEvent(message=str(error)))
        self.close("structural error")
