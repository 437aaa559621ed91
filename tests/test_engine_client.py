# tests/test_engine_client.py

from __future__ import annotations

import json
from types import SimpleNamespace

import httpx
import pytest

from akara.llm.client import EngineError, OpenAIEngineClient, friendly_engine_error_message
from akara.llm.offline import OfflineEngineClient
from akara.tools.catalog import TOOL_SPECS, WEB_SEARCH

SETTINGS = SimpleNamespace(
    engine_base_url="http://engine.test/v1",
    engine_model="llama3.1",
    engine_api_key="ollama",
    extra_headers={"X-Title": "akara-test"},
)


def _chunk(delta: dict) -> str:
    body = {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 0,
        "model": "llama3.1",
        "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
    }
    return f"data: {json.dumps(body)}\n\n"


def _engine(handler) -> tuple[OpenAIEngineClient, list[dict]]:
    bodies: list[dict] = []

    def recording(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return handler(request)

    http_client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
    return OpenAIEngineClient(SETTINGS, http_client=http_client), bodies


@pytest.mark.asyncio
async def test_complete_parses_tool_calls() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-1",
                "object": "chat.completion",
                "created": 0,
                "model": "llama3.1",
                "choices": [
                    {
                        "index": 0,
                        "finish_reason": "tool_calls",
                        "message": {
                            "role": "assistant",
                            "content": None,
                            "tool_calls": [
                                {
                                    "id": "call_abc",
                                    "type": "function",
                                    "function": {"name": "web_search", "arguments": '{"query": "news"}'},
                                }
                            ],
                        },
                    }
                ],
            },
        )

    engine, bodies = _engine(handler)
    reply = await engine.complete([{"role": "user", "content": "news?"}], tools=[TOOL_SPECS[WEB_SEARCH]])
    await engine.aclose()

    assert reply.wants_tools
    assert reply.content == ""
    (call,) = reply.tool_calls
    assert (call.id, call.name, call.arguments) == ("call_abc", "web_search", '{"query": "news"}')
    assert bodies[0]["stream"] is False
    assert bodies[0]["model"] == "llama3.1"
    assert bodies[0]["tools"][0]["function"]["name"] == "web_search"


@pytest.mark.asyncio
async def test_complete_without_tools_omits_them() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "id": "chatcmpl-1",
                "object": "chat.completion",
                "created": 0,
                "model": "llama3.1",
                "choices": [
                    {"index": 0, "finish_reason": "stop", "message": {"role": "assistant", "content": "Paris"}}
                ],
            },
        )

    engine, bodies = _engine(handler)
    reply = await engine.complete([{"role": "user", "content": "capital of France?"}])

    assert reply.content == "Paris"
    assert not reply.wants_tools
    assert "tools" not in bodies[0]


@pytest.mark.asyncio
async def test_stream_skips_empty_and_role_chunks() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = (
            _chunk({"role": "assistant"})
            + _chunk({"content": "Hel"})
            + _chunk({"content": ""})
            + _chunk({"content": "lo"})
            + "data: [DONE]\n\n"
        )
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    engine, bodies = _engine(handler)
    pieces = [p async for p in engine.stream([{"role": "user", "content": "hi"}])]

    assert pieces == ["Hel", "lo"]
    assert bodies[0]["stream"] is True
    assert "tools" not in bodies[0]


@pytest.mark.asyncio
async def test_http_failure_maps_to_engine_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="model crashed")

    engine, _ = _engine(handler)

    with pytest.raises(EngineError) as excinfo:
        await engine.complete([{"role": "user", "content": "hi"}])
    assert str(excinfo.value) == "Engine error (500): model crashed"

    with pytest.raises(EngineError, match=r"Engine error \(500\)"):
        async for _ in engine.stream([{"role": "user", "content": "hi"}]):
            pass


@pytest.mark.asyncio
async def test_unreachable_engine() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    engine, _ = _engine(handler)

    with pytest.raises(EngineError) as excinfo:
        await engine.complete([{"role": "user", "content": "hi"}])
    assert str(excinfo.value).startswith("Engine unreachable")
    assert "AKARA_ENGINE_BASE_URL" in friendly_engine_error_message(excinfo.value)


def test_missing_configuration_is_rejected() -> None:
    with pytest.raises(RuntimeError, match="base URL"):
        OpenAIEngineClient(SimpleNamespace(engine_base_url="", engine_model="m"))
    with pytest.raises(RuntimeError, match="model"):
        OpenAIEngineClient(SimpleNamespace(engine_base_url="http://x/v1", engine_model=""))


@pytest.mark.asyncio
async def test_offline_engine() -> None:
    engine = OfflineEngineClient()
    messages = [{"role": "system", "content": "sys"}, {"role": "user", "content": "ping"}]

    text = "".join([p async for p in engine.stream(messages)])
    reply = await engine.complete(messages, tools=[TOOL_SPECS[WEB_SEARCH]])
    title = await engine.complete([{"role": "system", "content": "Generate a very short title"}])

    assert text.endswith("You said: ping")
    assert reply.content == text and not reply.wants_tools
    assert title.content == "Offline chat"
