from clarity.models import Message
from clarity.tools.transcript_parser import format_transcript, parse_transcript


def test_parses_labelled_turns(long_transcript):
    result = parse_transcript(long_transcript)
    assert result.parsed is True
    assert result.raw_text == long_transcript
    assert [m.role for m in result.messages] == ["user", "assistant", "user"]
    assert result.messages[1].content == "Split routers, schemas and services into their own modules."


def test_continuation_lines_join_current_message():
    text = "User: first line\nsecond line\n\nAssistant: reply"
    result = parse_transcript(text)
    assert result.messages == [
        Message(role="user", content="first line\nsecond line"),
        Message(role="assistant", content="reply"),
    ]


def test_labels_are_case_insensitive_and_accept_fullwidth_colon():
    result = parse_transcript("human： question\nGPT: answer")
    assert [(m.role, m.content) for m in result.messages] == [
        ("user", "question"),
        ("assistant", "answer"),
    ]


def test_text_before_first_label_is_ignored():
    result = parse_transcript("preamble\nYou: hello")
    assert [m.content for m in result.messages] == ["hello"]


def test_empty_labelled_message_is_skipped():
    result = parse_transcript("You:\nChatGPT: only me")
    assert [(m.role, m.content) for m in result.messages] == [("assistant", "only me")]


def test_labels_without_text_still_count_as_parsed():
    result = parse_transcript("You:\nChatGPT:")
    assert result.parsed is True
    assert result.messages == []
    assert result.raw_text == "You:\nChatGPT:"


def test_unlabelled_text_is_not_parsed():
    text = "Just some notes about a conversation I had yesterday with the assistant."
    result = parse_transcript(text)
    assert result.parsed is False
    assert result.messages == []
    assert result.raw_text == text


def test_format_transcript():
    messages = [Message(role="user", content="hi"), Message(role="assistant", content="hello")]
    assert format_transcript(messages) == "You: hi\n\nChatGPT: hello"
