import json

import httpx
import pytest

from clarity.errors import ExtractionFailed, InvalidFormat, UpstreamError, UpstreamNotFound
from clarity.tools.extractor import (
    ConversationExtractor,
    ShareLinkFetcher,
    extract_messages,
    find_root,
    join_parts,
    mapping_strategy,
    next_data_strategy,
    rendered_dom_strategy,
    server_response_strategy,
)

from conftest import make_mapping, next_data_html


def roles_and_text(messages):
    return [(m.role, m.content) for m in messages]


def test_join_parts_keeps_text_only():
    assert join_parts(["a", {"text": "b"}, {"image": "x"}, 3]) == "a\nb"
    assert join_parts(None) == ""


def test_find_root_prefers_system_node(mapping):
    assert find_root(mapping) == "root"


def test_find_root_falls_back_to_empty_node():
    mapping = make_mapping()
    mapping["root"]["message"] = None
    assert find_root(mapping) == "root"


def test_extract_messages_walks_tree(mapping):
    assert roles_and_text(extract_messages(mapping)) == [("user", "hi"), ("assistant", "hello")]


def test_extract_messages_survives_cycles(mapping):
    mapping["B"]["children"] = ["A"]
    assert roles_and_text(extract_messages(mapping)) == [("user", "hi"), ("assistant", "hello")]


def test_extract_messages_skips_tool_nodes(mapping):
    mapping["B"]["message"]["author"]["role"] = "tool"
    assert roles_and_text(extract_messages(mapping)) == [("user", "hi")]


def test_next_data_strategy():
    result = next_data_strategy(next_data_html(title="Trip planning"))
    assert result.title == "Trip planning"
    assert roles_and_text(result.messages) == [("user", "hi"), ("assistant", "hello")]


def test_next_data_strategy_without_title_uses_placeholder():
    result = next_data_strategy(next_data_html(title=""))
    assert result.title == "Untitled Conversation"


def test_next_data_strategy_ignores_unexpected_shape():
    html = '<script id="__NEXT_DATA__">{"props": []}</script>'
    assert next_data_strategy(html) is None


def test_server_response_strategy():
    payload = json.dumps({"data": {"title": "Inline", "mapping": make_mapping()}})
    html = f'<script>window.x = {{"serverResponse":{payload},"isError":false}}</script>'
    result = server_response_strategy(html)
    assert result.title == "Inline"
    assert len(result.messages) == 2


def test_mapping_strategy_uses_shared_title():
    html = f'<script>{{"mapping":{json.dumps(make_mapping())},"moderation_results":[]}}</script>'
    result = mapping_strategy(html)
    assert result.title == "Shared Conversation"
    assert roles_and_text(result.messages) == [("user", "hi"), ("assistant", "hello")]


def test_rendered_dom_strategy():
    html = (
        "<html><head><title>Rendered chat</title></head><body>"
        '<div data-message-author-role="user"><p>What is SSE?</p></div>'
        '<div data-message-author-role="assistant"><p>Server-sent events.</p></div>'
        "</body></html>"
    )
    result = rendered_dom_strategy(html)
    assert result.title == "Rendered chat"
    assert roles_and_text(result.messages) == [
        ("user", "What is SSE?"),
        ("assistant", "Server-sent events."),
    ]


def test_extractor_raises_when_nothing_matches():
    with pytest.raises(ExtractionFailed) as excinfo:
        ConversationExtractor().extract("<html><body>nothing here</body></html>")
    assert excinfo.value.status_code == 422


def test_extractor_skips_strategies_without_messages():
    empty = next_data_html(mapping={"root": {"id": "root", "children": []}})
    html = empty.replace(
        "</body>",
        '<div data-message-author-role="user">fallback text</div></body>',
    )
    result = ConversationExtractor().extract(html)
    assert roles_and_text(result.messages) == [("user", "fallback text")]


def fetcher_for(handler):
    return ShareLinkFetcher(transport=httpx.MockTransport(handler))


async def test_fetch_builds_conversation():
    requested = []

    def handler(request):
        requested.append(str(request.url))
        return httpx.Response(200, text=next_data_html())

    conversation = await fetcher_for(handler).fetch(" https://chatgpt.com/share/abc-123 ")
    assert requested == ["https://chatgpt.com/share/abc-123"]
    assert conversation.id == "abc-123"
    assert conversation.url == "https://chatgpt.com/share/abc-123"
    assert conversation.title == "Trip planning"
    assert len(conversation.messages) == 2


async def test_fetch_maps_404_to_not_found():
    fetcher = fetcher_for(lambda request: httpx.Response(404))
    with pytest.raises(UpstreamNotFound):
        await fetcher.fetch("https://chatgpt.com/share/gone")


async def test_fetch_maps_server_error_to_upstream_error():
    fetcher = fetcher_for(lambda request: httpx.Response(503))
    with pytest.raises(UpstreamError) as excinfo:
        await fetcher.fetch("https://chatgpt.com/share/abc")
    assert excinfo.value.status_code == 500


async def test_fetch_maps_transport_error_to_upstream_error():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(UpstreamError):
        await fetcher_for(handler).fetch("https://chatgpt.com/share/abc")


async def test_fetch_validates_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200)

    with pytest.raises(InvalidFormat):
        await fetcher_for(handler).fetch("https://example.com/nope")
    assert calls == []
