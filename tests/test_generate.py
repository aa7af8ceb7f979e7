import asyncio
import json

import httpx
import pytest

from clarity.errors import (
    Cancelled,
    ConfigurationError,
    RequestFailed,
    StreamDecodeError,
    StreamReadFailed,
)
from clarity.llm.generate import (
    UNAUTHORIZED_MESSAGE,
    AnalysisClient,
    accumulate_stream,
    decode_delta,
    generate_chatbot_response,
    iter_sse_deltas,
    parse_error_message,
)
from clarity.tools.cancellation import CancellationToken

from conftest import sse_body


def delta_line(content):
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]})


def test_decode_delta():
    assert decode_delta(json.dumps({"choices": [{"delta": {"content": "x"}}]})) == "x"
    assert decode_delta(json.dumps({"choices": []})) is None
    with pytest.raises(StreamDecodeError):
        decode_delta("{not json")


async def test_accumulate_reports_running_total():
    seen = []
    lines = [delta_line("A"), delta_line("B"), "data: [DONE]"]
    content = await accumulate_stream(lines, seen.append)
    assert content == "AB"
    assert seen == ["A", "AB"]


async def test_stream_stops_at_done_and_skips_noise():
    lines = [
        ": keep-alive",
        "event: message",
        "data: {broken",
        delta_line(""),
        delta_line("ok"),
        "data: [DONE]",
        delta_line("ignored"),
    ]
    deltas = [delta async for delta in iter_sse_deltas(lines)]
    assert deltas == ["ok"]


async def test_multi_line_chunks_are_split():
    chunk = delta_line("a") + "\n\n" + delta_line("b") + "\n\n"
    assert await accumulate_stream([chunk]) == "ab"


def test_parse_error_message():
    assert parse_error_message(401, "{}") == UNAUTHORIZED_MESSAGE
    assert parse_error_message(429, json.dumps({"error": {"message": "Rate limited"}})) == "Rate limited"
    assert parse_error_message(500, "<html>") == "API error: 500"


def client_for(handler, **kwargs):
    return AnalysisClient(transport=httpx.MockTransport(handler), **kwargs)


async def test_analyze_streams_and_sends_openrouter_headers(api_key):
    captured = {}

    def handler(request):
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            text=sse_body("Hello", " world"),
            headers={"Content-Type": "text/event-stream"},
        )

    seen = []
    content = await client_for(handler).analyze("You: hi", "summary", title="Greeting", on_content=seen.append)

    assert content == "Hello world"
    assert seen == ["Hello", "Hello world"]
    assert captured["headers"]["Authorization"] == f"Bearer {api_key}"
    assert captured["headers"]["X-Title"] == "Clarity"
    assert captured["body"]["stream"] is True
    assert captured["body"]["messages"][0]["role"] == "system"
    assert 'titled "Greeting"' in captured["body"]["messages"][1]["content"]


async def test_missing_key_fails_before_any_request(no_api_key):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(ConfigurationError):
        await client_for(handler).analyze("text", "summary")
    assert calls == []


async def test_key_is_read_per_request(no_api_key, monkeypatch):
    client = client_for(lambda request: httpx.Response(200, text=sse_body("ok")))
    with pytest.raises(ConfigurationError):
        await client.analyze("text", "summary")

    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-late")
    assert await client.analyze("text", "summary") == "ok"


async def test_unauthorized_uses_account_message(api_key):
    client = client_for(lambda request: httpx.Response(401, json={"error": {"message": "No auth"}}))
    with pytest.raises(RequestFailed) as excinfo:
        await client.analyze("text", "summary")
    assert excinfo.value.message == UNAUTHORIZED_MESSAGE
    assert excinfo.value.status_code == 401


async def test_upstream_error_message_is_passed_through(api_key):
    client = client_for(lambda request: httpx.Response(429, json={"error": {"message": "Slow down"}}))
    with pytest.raises(RequestFailed) as excinfo:
        await client.analyze("text", "summary")
    assert excinfo.value.message == "Slow down"
    assert excinfo.value.status_code == 429


async def test_connection_error_is_request_failed(api_key):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(RequestFailed):
        await client_for(handler).analyze("text", "summary")


async def test_broken_stream_is_stream_read_failed(api_key):
    class BrokenStream(httpx.AsyncByteStream):
        async def __aiter__(self):
            yield (delta_line("partial") + "\n\n").encode()
            raise httpx.ReadError("connection reset")

    client = client_for(lambda request: httpx.Response(200, stream=BrokenStream()))
    with pytest.raises(StreamReadFailed):
        await client.analyze("text", "summary")


async def test_cancelling_mid_stream_stops_reading_and_closes_response(api_key):
    state = {"second_sent": False, "closed": False}

    class SlowStream(httpx.AsyncByteStream):
        async def __aiter__(self):
            yield (delta_line("first") + "\n\n").encode()
            await asyncio.sleep(10)
            state["second_sent"] = True
            yield (delta_line("second") + "\n\n").encode()

        async def aclose(self):
            state["closed"] = True

    token = CancellationToken()
    seen = []

    def on_content(content):
        seen.append(content)
        token.cancel()

    client = client_for(lambda request: httpx.Response(200, stream=SlowStream()))
    with pytest.raises(Cancelled):
        await client.analyze("text", "summary", on_content=on_content, cancel_token=token)

    assert seen == ["first"]
    assert state == {"second_sent": False, "closed": True}


async def test_generate_chatbot_response(api_key):
    def handler(request):
        body = json.loads(request.content)
        assert body["temperature"] == 0.3
        assert "stream" not in body
        return httpx.Response(200, json={"choices": [{"message": {"content": "{\"nodes\": []}"}}]})

    content = await generate_chatbot_response(
        "system", "user", temperature=0.3, max_tokens=100,
        transport=httpx.MockTransport(handler),
    )
    assert content == "{\"nodes\": []}"
