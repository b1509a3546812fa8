import json

import pytest

from voice_session.handlers.chat_handlers import (
    NO_DOCUMENTS_MESSAGE,
    NO_VOICE_MESSAGE,
    TEXT_TO_SPEECH_REQUIRED_MESSAGE,
    handle_chat,
    handle_list_voices,
    handle_text_to_speech,
    handle_voice_chat,
)
from voice_session.models.message_schemas import ChatRequest, TextToSpeechRequest, VoiceInfo
from voice_session.services.errors import CompletionError, SynthesisError


def body(response):
    return json.loads(response.body)


@pytest.mark.asyncio
class TestHandleChat:

    async def test_answer_from_documents(self, directory, completion_client):
        completion_client.reply = "Based on the document, Acme offers Consulting."

        response = await handle_chat(
            ChatRequest(agent_id=7, message="What do you offer?"), directory, completion_client
        )

        assert response.status_code == 200
        assert body(response) == {"response": "Based on the document, Acme offers Consulting."}

        messages, kwargs = completion_client.calls[0]
        assert kwargs == {"temperature": 0.1}
        system_prompt = messages[0].content
        assert "Acme offers Consulting for small businesses." in system_prompt
        assert "Available documents" in system_prompt

    async def test_refusal_passes_through(self, directory, completion_client):
        completion_client.reply = "I cannot answer this question as it's not covered in the assigned documents."

        response = await handle_chat(ChatRequest(agent_id=7, message="Weather?"), directory, completion_client)

        assert body(response)["response"] == completion_client.reply

    async def test_unmarked_reply_replaced(self, directory, completion_client):
        completion_client.reply = "It will rain tomorrow."

        response = await handle_chat(ChatRequest(agent_id=7, message="Weather?"), directory, completion_client)

        text = body(response)["response"]
        assert text.startswith("I cannot answer this question")
        assert "Website: acme.com" in text

    async def test_unknown_agent(self, directory, completion_client):
        response = await handle_chat(ChatRequest(agent_id=5, message="Hi"), directory, completion_client)

        assert response.status_code == 404
        assert completion_client.calls == []

    async def test_no_documents(self, directory, completion_client):
        response = await handle_chat(ChatRequest(agent_id=42, message="Hi"), directory, completion_client)

        assert response.status_code == 400
        assert body(response) == {"error": NO_DOCUMENTS_MESSAGE}
        assert completion_client.calls == []

    async def test_provider_error(self, directory, completion_client):
        completion_client.error = CompletionError("Completion timed out after 20s")

        response = await handle_chat(ChatRequest(agent_id=7, message="Hi"), directory, completion_client)

        assert response.status_code == 502
        assert body(response) == {"error": "Completion timed out after 20s"}


@pytest.mark.asyncio
class TestHandleListVoices:

    async def test_voices(self, synthesis_client):
        synthesis_client.voices = [VoiceInfo(voice_id="v1", name="Rachel"), VoiceInfo(voice_id="v2", name="Adam")]

        response = await handle_list_voices(synthesis_client)

        assert response.status_code == 200
        assert [v["voice_id"] for v in body(response)["voices"]] == ["v1", "v2"]

    async def test_provider_error(self, synthesis_client):
        synthesis_client.error = SynthesisError("Synthesis API error: Unauthorized", status_code=401)

        response = await handle_list_voices(synthesis_client)

        assert response.status_code == 502
        assert body(response) == {
            "error": "Failed to fetch voices: Synthesis API error: Unauthorized (status 401)"
        }


@pytest.mark.asyncio
class TestHandleVoiceChat:

    async def test_spoken_answer(self, directory, completion_client, synthesis_client):
        completion_client.reply = "Based on the document, we offer Consulting."

        response = await handle_voice_chat(
            ChatRequest(agent_id=7, message="What do you offer?"),
            directory,
            completion_client,
            synthesis_client,
        )

        assert response.status_code == 200
        assert body(response) == {
            "text": "Based on the document, we offer Consulting.",
            "audio": "AQI=",
        }
        assert synthesis_client.calls[-1] == ("Based on the document, we offer Consulting.", "v1")

        messages, kwargs = completion_client.calls[0]
        assert kwargs == {}
        assert [m.role for m in messages] == ["system", "user"]
        assert messages[1].content == "What do you offer?"

    async def test_unmarked_reply_is_replaced_before_synthesis(
        self, directory, completion_client, synthesis_client
    ):
        completion_client.reply = "It will rain tomorrow."

        response = await handle_voice_chat(
            ChatRequest(agent_id=7, message="Weather?"), directory, completion_client, synthesis_client
        )

        text = body(response)["text"]
        assert text.startswith("I cannot answer this question")
        assert synthesis_client.calls[-1] == (text, "v1")

    async def test_unknown_agent(self, directory, completion_client, synthesis_client):
        response = await handle_voice_chat(
            ChatRequest(agent_id=999, message="Hi"), directory, completion_client, synthesis_client
        )

        assert response.status_code == 404
        assert body(response) == {"error": "Agent not found"}
        assert completion_client.calls == []

    async def test_agent_without_voice(self, directory, completion_client, synthesis_client):
        response = await handle_voice_chat(
            ChatRequest(agent_id=42, message="Hi"), directory, completion_client, synthesis_client
        )

        assert response.status_code == 400
        assert body(response) == {"error": NO_VOICE_MESSAGE}
        assert completion_client.calls == []
        assert synthesis_client.calls == []

    async def test_completion_error(self, directory, completion_client, synthesis_client):
        completion_client.error = CompletionError("Completion timed out after 20s")

        response = await handle_voice_chat(
            ChatRequest(agent_id=7, message="Hi"), directory, completion_client, synthesis_client
        )

        assert response.status_code == 502
        assert body(response) == {"error": "Completion timed out after 20s"}
        assert synthesis_client.calls == []

    async def test_empty_completion(self, directory, completion_client, synthesis_client):
        completion_client.reply = ""

        response = await handle_voice_chat(
            ChatRequest(agent_id=7, message="Hi"), directory, completion_client, synthesis_client
        )

        assert response.status_code == 502
        assert body(response) == {"error": "Completion returned no text"}

    async def test_synthesis_error(self, directory, completion_client, synthesis_client):
        completion_client.reply = "Based on the document, we offer Consulting."
        synthesis_client.error = SynthesisError("Synthesis API error: Unauthorized", status_code=401)

        response = await handle_voice_chat(
            ChatRequest(agent_id=7, message="Hi"), directory, completion_client, synthesis_client
        )

        assert response.status_code == 502
        assert body(response) == {"error": "Synthesis API error: Unauthorized (status 401)"}


@pytest.mark.asyncio
class TestHandleTextToSpeech:

    async def test_synthesizes_text(self, synthesis_client):
        response = await handle_text_to_speech(TextToSpeechRequest(text="hi", voiceId="v1"), synthesis_client)

        assert response.status_code == 200
        assert body(response) == {"audio": "AQI="}
        assert synthesis_client.calls[-1] == ("hi", "v1")

    @pytest.mark.parametrize(
        "payload",
        [{"text": "hi"}, {"voiceId": "v1"}, {"text": "   ", "voiceId": "v1"}, {"text": "hi", "voiceId": None}],
    )
    async def test_missing_fields(self, synthesis_client, payload):
        response = await handle_text_to_speech(TextToSpeechRequest(**payload), synthesis_client)

        assert response.status_code == 400
        assert body(response) == {"error": TEXT_TO_SPEECH_REQUIRED_MESSAGE}
        assert synthesis_client.calls == []

    async def test_provider_error(self, synthesis_client):
        synthesis_client.error = SynthesisError("Synthesis API error: Unauthorized", status_code=401)

        response = await handle_text_to_speech(TextToSpeechRequest(text="hi", voiceId="v1"), synthesis_client)

        assert response.status_code == 502
        assert body(response) == {
            "error": "Failed to convert text to speech: Synthesis API error: Unauthorized (status 401)"
        }
