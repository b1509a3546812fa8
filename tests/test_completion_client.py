import json

import httpx
import pytest

from voice_session.models.session import Message
from voice_session.services.completion_client import CompletionClient
from voice_session.services.errors import CompletionError, ConfigurationError

MESSAGES = [
    Message("system", "You are Ava."),
    Message("user", "what services do you offer"),
]


def completion_payload(content):
    return {
        "id": "chatcmpl-1",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


def make_client(handler, **kwargs):
    return CompletionClient("sk-test", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
class TestCompletionClient:

    async def test_request_shape(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=completion_payload("Hi"))

        client = make_client(handler)
        await client.complete(MESSAGES)
        await client.aclose()

        request = seen["request"]
        assert request.method == "POST"
        assert str(request.url) == "https://api.openai.com/v1/chat/completions"
        assert request.headers["Authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body == {
            "model": "gpt-4-turbo-preview",
            "messages": [
                {"role": "system", "content": "You are Ava."},
                {"role": "user", "content": "what services do you offer"},
            ],
            "temperature": 0.7,
            "max_tokens": 150,
            "stop": ["I don't know", "I am not sure", "I cannot"],
        }

    async def test_overrides(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion_payload("Hi"))

        client = make_client(handler, model="gpt-4o")
        await client.complete(MESSAGES, temperature=0.1, max_tokens=50, stop=None)
        await client.aclose()

        assert seen["body"]["model"] == "gpt-4o"
        assert seen["body"]["temperature"] == 0.1
        assert seen["body"]["max_tokens"] == 50
        assert "stop" not in seen["body"]

    async def test_reply_is_stripped(self):
        client = make_client(lambda r: httpx.Response(200, json=completion_payload("  Based on the document, yes.\n")))
        assert await client.complete(MESSAGES) == "Based on the document, yes."
        await client.aclose()

    async def test_null_content_is_empty(self):
        client = make_client(lambda r: httpx.Response(200, json=completion_payload(None)))
        assert await client.complete(MESSAGES) == ""
        await client.aclose()

    async def test_no_choices(self):
        client = make_client(lambda r: httpx.Response(200, json={"choices": []}))
        with pytest.raises(CompletionError, match="unexpected payload"):
            await client.complete(MESSAGES)
        await client.aclose()

    async def test_rate_limit_error(self):
        client = make_client(lambda r: httpx.Response(429, json={"error": {"message": "Rate limit"}}))
        with pytest.raises(CompletionError) as exc_info:
            await client.complete(MESSAGES)
        await client.aclose()

        assert exc_info.value.status_code == 429
        assert str(exc_info.value) == "Completion API error: Too Many Requests (status 429)"


def test_missing_api_key_fails_at_construction():
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        CompletionClient(None)
