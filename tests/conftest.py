import json

import pytest

from clarity.llm.database import HistoryManager, MemoryStore


def make_mapping():
    """root(system) -> A(user "hi") -> B(assistant "hello")"""
    return {
        "root": {
            "id": "root",
            "message": {"author": {"role": "system"}, "content": {"parts": [""]}},
            "parent": None,
            "children": ["A"],
        },
        "A": {
            "id": "A",
            "message": {"author": {"role": "user"}, "content": {"parts": ["hi"]}},
            "parent": "root",
            "children": ["B"],
        },
        "B": {
            "id": "B",
            "message": {"author": {"role": "assistant"}, "content": {"parts": ["hello"]}},
            "parent": "A",
            "children": [],
        },
    }


def next_data_html(title="Trip planning", mapping=None):
    next_data = {
        "props": {
            "pageProps": {
                "serverResponse": {
                    "data": {"title": title, "mapping": mapping or make_mapping()},
                },
            },
        },
    }
    return (
        "<html><head><title>ChatGPT</title></head><body>"
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(next_data)}</script>'
        "</body></html>"
    )


def sse_body(*contents, done=True):
    """OpenAI style streaming body carrying one delta per content string"""
    lines = []
    for content in contents:
        event = {"choices": [{"delta": {"content": content}}]}
        lines.append(f"data: {json.dumps(event)}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines)


@pytest.fixture
def mapping():
    return make_mapping()


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test-key")
    return "sk-or-test-key"


@pytest.fixture
def no_api_key(monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)


@pytest.fixture
def history():
    return HistoryManager(MemoryStore())


@pytest.fixture
def long_transcript():
    return (
        "You: How should I structure a small FastAPI project?\n"
        "ChatGPT: Split routers, schemas and services into their own modules.\n"
        "You: Thanks, that helps."
    )


SAMPLE_GRAPH = {
    "nodes": [
        {"id": "central", "label": "Trip planning", "type": "central"},
        {"id": "summary", "label": "Summary", "type": "main", "color": "#667eea"},
        {"id": "actions", "label": "Action Items", "type": "main"},
        {"id": "s1", "label": "Budget", "type": "sub"},
        {"id": "a1", "label": "Book flights", "type": "action"},
        {"id": "i1", "label": "Shoulder season", "type": "insight"},
    ],
    "edges": [
        {"id": "e1", "source": "central", "target": "summary"},
        {"id": "e2", "source": "central", "target": "actions"},
        {"id": "e3", "source": "summary", "target": "s1"},
        {"id": "e4", "source": "actions", "target": "a1"},
        {"id": "e5", "source": "summary", "target": "i1"},
    ],
}
