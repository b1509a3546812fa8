"""
REST handlers for text chat, one-shot voice replies and speech synthesis.

Text chat requires an agent with documents and answers with a low
temperature. One-shot voice replies work for any agent that has a voice and use
the same prompt as a live session. Both apply the closed-book rule: for an
agent with documents, a reply lacking the closed-book markers is replaced by
the fallback sentence. Errors are returned as ``{"error": "..."}`` bodies.
"""

import base64
import logging

from fastapi import status
from fastapi.responses import JSONResponse

from voice_session.bot.context_builder import (
    build_conversation_context,
    validate_closed_book_response,
)
from voice_session.config.constants import DEFAULT_CHAT_TEMPERATURE, LOGGER_NAME
from voice_session.models.message_schemas import (
    ChatRequest,
    ChatResponse,
    TextToSpeechRequest,
    TextToSpeechResponse,
    VoiceChatResponse,
    VoiceListResponse,
)
from voice_session.models.session import ROLE_SYSTEM, ROLE_USER, Message
from voice_session.services.agent_directory import AgentDirectory
from voice_session.services.completion_client import CompletionClient
from voice_session.services.errors import CompletionError, ProviderError
from voice_session.services.synthesis_client import SynthesisClient

logger = logging.getLogger(LOGGER_NAME)

NO_DOCUMENTS_MESSAGE = "This agent has no assigned documents. Please assign documents first."
NO_VOICE_MESSAGE = "No voice selected for agent"
TEXT_TO_SPEECH_REQUIRED_MESSAGE = "Text and voiceId are required"


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def handle_chat(
    request: ChatRequest,
    directory: AgentDirectory,
    completion_client: CompletionClient,
) -> JSONResponse:
    """
    Answer one text question from the agent's documents only.

    Args:
        request: Agent id and question
        directory: Agent lookup
        completion_client: Completion provider

    Returns:
        200 with ``{"response": ...}``, 404 for an unknown agent, 400 when the
        agent has no documents, 502 when the provider fails
    """
    agent = await directory.get_agent(request.agent_id)
    if agent is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Agent not found")

    documents = await directory.get_documents_for_agent(request.agent_id)
    if not documents:
        return error_response(status.HTTP_400_BAD_REQUEST, NO_DOCUMENTS_MESSAGE)

    context = build_conversation_context(agent, documents)
    messages = [
        Message(ROLE_SYSTEM, context.system_prompt()),
        Message(ROLE_USER, request.message),
    ]
    try:
        reply = await completion_client.complete(
            messages, temperature=DEFAULT_CHAT_TEMPERATURE
        )
    except ProviderError as e:
        logger.error(f"Chat completion failed for agent {request.agent_id}: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, str(e))

    validated = validate_closed_book_response(context, reply)
    if validated != reply:
        logger.info(f"Chat reply for agent {request.agent_id} replaced with fallback")
    return JSONResponse(content=ChatResponse(response=validated).model_dump())


async def handle_list_voices(synthesis_client: SynthesisClient) -> JSONResponse:
    """List synthesis voices; 502 when the provider fails."""
    try:
        voices = await synthesis_client.list_voices()
    except ProviderError as e:
        logger.error(f"Failed to fetch voices: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, f"Failed to fetch voices: {e}")
    return JSONResponse(content=VoiceListResponse(voices=voices).model_dump())


async def handle_voice_chat(
    request: ChatRequest,
    directory: AgentDirectory,
    completion_client: CompletionClient,
    synthesis_client: SynthesisClient,
) -> JSONResponse:
    """
    Answer one question and speak the answer with the agent's voice.

    The prompt is the same one a live session uses, so agents with documents
    stay closed-book.

    Returns:
        200 with ``{"text": ..., "audio": ...}``, 404 for an unknown agent, 400
        when the agent has no voice, 502 when a provider fails
    """
    agent = await directory.get_agent(request.agent_id)
    if agent is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Agent not found")
    if not agent.voice_id:
        return error_response(status.HTTP_400_BAD_REQUEST, NO_VOICE_MESSAGE)

    documents = await directory.get_documents_for_agent(request.agent_id)
    context = build_conversation_context(agent, documents)
    messages = [
        Message(ROLE_SYSTEM, context.system_prompt()),
        Message(ROLE_USER, request.message),
    ]
    try:
        reply = await completion_client.complete(messages)
        if not reply:
            raise CompletionError("Completion returned no text")
        text = validate_closed_book_response(context, reply)
        audio = await synthesis_client.synthesize(text, agent.voice_id)
    except ProviderError as e:
        logger.error(f"Voice chat failed for agent {request.agent_id}: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, str(e))

    logger.info(f"Voice chat reply for agent {request.agent_id}: {len(audio)} bytes of audio")
    response = VoiceChatResponse(text=text, audio=base64.b64encode(audio).decode("ascii"))
    return JSONResponse(content=response.model_dump())


async def handle_text_to_speech(
    request: TextToSpeechRequest,
    synthesis_client: SynthesisClient,
) -> JSONResponse:
    """Synthesize ``text`` with ``voiceId``; used by the voice preview."""
    if not request.text or not request.voice_id:
        return error_response(status.HTTP_400_BAD_REQUEST, TEXT_TO_SPEECH_REQUIRED_MESSAGE)

    try:
        audio = await synthesis_client.synthesize(request.text, request.voice_id)
    except ProviderError as e:
        logger.error(f"Text-to-speech failed for voice {request.voice_id}: {e}")
        return error_response(status.HTTP_502_BAD_GATEWAY, f"Failed to convert text to speech: {e}")

    response = TextToSpeechResponse(audio=base64.b64encode(audio).decode("ascii"))
    return JSONResponse(content=response.model_dump())
