"""Tests for the LLM completion client using httpx.MockTransport."""
import json

import httpx
import pytest

from core.exceptions import ConfigurationError, UpstreamError
from services.completion_client import DIET_SYSTEM_PROMPT, CompletionClient


def _ok(content="  {\"meals\": []}  ", tokens=123):
    return httpx.Response(200, json={
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"total_tokens": tokens},
    })


def _client(handler, **kwargs):
    return CompletionClient(
        api_key="test-key",
        base_url="https://llm.test/api/v1",
        default_model="test/model",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def test_complete_posts_chat_request_and_returns_content():
    seen = []

    def handler(request):
        seen.append(request)
        return _ok()

    client = _client(handler)
    assert client.complete("system", "user prompt", temperature=0.3, max_tokens=100) == '{"meals": []}'

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer test-key"
    body = json.loads(request.content)
    assert body["model"] == "test/model"
    assert body["messages"] == [
        {"role": "system", "content": "system"},
        {"role": "user", "content": "user prompt"},
    ]
    assert body["temperature"] == 0.3
    assert body["max_tokens"] == 100
    assert body["top_p"] == 0.9


def test_diet_and_workout_wrappers_use_fixed_settings():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return _ok()

    client = _client(handler)
    client.generate_diet_plan("diet")
    client.generate_workout_plan("workout")

    assert bodies[0]["messages"][0]["content"] == DIET_SYSTEM_PROMPT
    assert (bodies[0]["temperature"], bodies[0]["max_tokens"]) == (0.7, 2500)
    assert "trainer" in bodies[1]["messages"][0]["content"]
    assert (bodies[1]["temperature"], bodies[1]["max_tokens"]) == (0.6, 3000)


def test_non_2xx_raises_upstream_error_with_status_and_message():
    client = _client(lambda request: httpx.Response(500, json={"error": {"message": "provider down"}}))
    with pytest.raises(UpstreamError) as exc_info:
        client.complete("s", "u")
    assert exc_info.value.upstream_status == 500
    assert "provider down" in exc_info.value.message
    assert exc_info.value.code == "AI_UNAVAILABLE"


def test_missing_content_raises_upstream_error():
    client = _client(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(UpstreamError) as exc_info:
        client.complete("s", "u")
    assert "No content" in exc_info.value.message


def test_transport_failure_raises_upstream_error_without_status():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamError) as exc_info:
        _client(handler).complete("s", "u")
    assert exc_info.value.upstream_status is None


def test_missing_api_key_fails_before_any_request():
    calls = []
    client = CompletionClient(api_key=None, transport=httpx.MockTransport(lambda r: calls.append(r) or _ok()))
    with pytest.raises(ConfigurationError):
        client.complete("s", "u")
    assert calls == []


def test_rate_limited_call_is_retried_with_backoff():
    responses = [httpx.Response(429, json={"error": {"message": "slow down"}}), _ok("done")]
    sleeps = []
    client = _client(lambda request: responses.pop(0), max_retries=2, sleep=sleeps.append)
    assert client.complete("s", "u") == "done"
    assert sleeps == [2.0]


def test_retries_disabled_by_default():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, text="unavailable")

    with pytest.raises(UpstreamError) as exc_info:
        _client(handler, max_retries=0).complete("s", "u")
    assert len(calls) == 1
    assert exc_info.value.upstream_status == 503


def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, json={"error": {"message": "bad key"}})

    with pytest.raises(UpstreamError):
        _client(handler, max_retries=3, sleep=lambda s: None).complete("s", "u")
    assert len(calls) == 1
