"""Unit tests for the OpenRouterClient."""

import json

import httpx
import pytest

from context_discovery.config import Settings
from context_discovery.infrastructure.openrouter.openrouter_client import OpenRouterClient
from context_discovery.domain.entities import ChatMessage
from context_discovery.domain.exceptions import ChatProviderError


# ── Helpers ──


def _mock_openrouter_response(
    content: str = '{"type": "outcome_analysis"}',
    model: str = "anthropic/claude-sonnet-4.5",
    prompt_tokens: int = 10,
    completion_tokens: int = 5,
    total_tokens: int = 15,
    cost: float | None = 0.00014,
) -> dict:
    """Build a mock OpenRouter JSON response."""
    return {
        "id": "chatcmpl-test123",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "model": model,
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": total_tokens,
            **({
                "cost": cost,
            } if cost is not None else {}),
        },
    }


def _make_mock_transport(
    response_data: dict | None = None,
    status_code: int = 200,
    error_data: dict | None = None,
    captured: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """Create a mock transport that returns a fixed response."""

    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        if error_data:
            return httpx.Response(status_code, json=error_data)
        return httpx.Response(status_code, json=response_data or {})

    return httpx.MockTransport(handler)


def _client(transport: httpx.MockTransport, **kwargs) -> OpenRouterClient:
    return OpenRouterClient(
        api_key="test-key",
        http_client=httpx.AsyncClient(transport=transport),
        **kwargs,
    )


# ── Tests ──


@pytest.mark.asyncio
async def test_complete_parses_response():
    """Non-streaming call correctly parses OpenRouter JSON response."""
    transport = _make_mock_transport(_mock_openrouter_response(content="The answer is 42."))
    client = _client(transport)

    result = await client.complete(
        messages=[ChatMessage(role="user", content="What is 42?")],
        model="anthropic/claude-sonnet-4.5",
    )

    assert result.content == "The answer is 42."
    assert result.model == "anthropic/claude-sonnet-4.5"
    assert result.finish_reason == "stop"
    assert result.usage.prompt_tokens == 10
    assert result.usage.completion_tokens == 5
    assert result.usage.total_tokens == 15
    assert result.usage.cost == 0.00014
    assert result.provider == "openrouter"


@pytest.mark.asyncio
async def test_complete_sends_payload_and_headers():
    """Request carries auth headers, messages and sampling options."""
    captured: list[httpx.Request] = []
    transport = _make_mock_transport(_mock_openrouter_response(), captured=captured)
    client = _client(transport, base_url="https://router.test/api/v1/", app_name="Discovery Test")

    await client.complete(
        messages=[
            ChatMessage(role="system", content="Classify."),
            ChatMessage(role="user", content="How many wounds?"),
        ],
        model="test/model",
        temperature=0.3,
        max_tokens=1000,
    )

    [request] = captured
    assert str(request.url) == "https://router.test/api/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["X-Title"] == "Discovery Test"
    body = json.loads(request.content)
    assert body == {
        "model": "test/model",
        "messages": [
            {"role": "system", "content": "Classify."},
            {"role": "user", "content": "How many wounds?"},
        ],
        "temperature": 0.3,
        "max_tokens": 1000,
    }


@pytest.mark.asyncio
async def test_complete_omits_unset_options():
    captured: list[httpx.Request] = []
    client = _client(_make_mock_transport(_mock_openrouter_response(cost=None), captured=captured))

    result = await client.complete([ChatMessage(role="user", content="Hi")], model="m")

    body = json.loads(captured[0].content)
    assert "temperature" not in body
    assert "max_tokens" not in body
    assert result.usage.cost is None


@pytest.mark.asyncio
async def test_complete_error_handling():
    """Non-streaming call raises ChatProviderError on 4xx/5xx."""
    error_data = {"error": {"code": 429, "message": "Rate limit exceeded"}}
    client = _client(_make_mock_transport(error_data=error_data, status_code=429))

    with pytest.raises(ChatProviderError) as exc_info:
        await client.complete(
            messages=[ChatMessage(role="user", content="Hi")],
            model="anthropic/claude-sonnet-4.5",
        )

    assert exc_info.value.status_code == 429
    assert "Rate limit" in exc_info.value.message
    assert exc_info.value.provider == "openrouter"


@pytest.mark.asyncio
async def test_complete_non_json_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="upstream unavailable")

    client = _client(httpx.MockTransport(handler))

    with pytest.raises(ChatProviderError) as exc_info:
        await client.complete([ChatMessage(role="user", content="Hi")], model="m")

    assert exc_info.value.status_code == 502
    assert exc_info.value.message == "upstream unavailable"


@pytest.mark.asyncio
async def test_error_in_success_body():
    """A 200 response carrying an error object is still an error."""
    body = {"error": {"code": 400, "message": "Model not found"}}
    client = _client(_make_mock_transport(body))

    with pytest.raises(ChatProviderError) as exc_info:
        await client.complete([ChatMessage(role="user", content="Hi")], model="m")

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_empty_choices():
    client = _client(_make_mock_transport({"choices": [], "model": "m"}))

    with pytest.raises(ChatProviderError, match="No choices"):
        await client.complete([ChatMessage(role="user", content="Hi")], model="m")


def test_from_settings():
    settings = Settings(
        openrouter_api_key="sk-test",
        openrouter_base_url="https://router.test/v1",
        openrouter_app_name="Discovery",
    )
    client = OpenRouterClient.from_settings(settings)

    assert client._api_key == "sk-test"
    assert client._base_url == "https://router.test/v1"
    assert client._app_name == "Discovery"


@pytest.mark.asyncio
async def test_provider_name():
    """Provider name is correctly reported."""
    client = OpenRouterClient(api_key="test-key")
    assert client.provider_name == "openrouter"
