"""
Transcript parser
Splits pasted conversation text into messages using speaker labels
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from clarity.models import Message

USER_LABEL = re.compile(r'^(You|User|Human|Me)[:：]', re.IGNORECASE)
ASSISTANT_LABEL = re.compile(r'^(ChatGPT|Assistant|AI|GPT|Claude)[:：]', re.IGNORECASE)

DISPLAY_NAMES = {'user': 'You', 'assistant': 'ChatGPT'}


@dataclass
class ParsedTranscript:
    """Result of parsing pasted text; raw_text is kept verbatim"""
    parsed: bool
    raw_text: str
    messages: List[Message] = field(default_factory=list)


def _match_label(line: str):
    match = USER_LABEL.match(line)
    if match:
        return 'user', match
    match = ASSISTANT_LABEL.match(line)
    if match:
        return 'assistant', match
    return None, None


def parse_transcript(text: str) -> ParsedTranscript:
    """
    Parse "You: ... / ChatGPT: ..." style text into messages

    A line starting with a speaker label opens a new message; other non-empty
    lines are appended to the current one. Text before the first label is
    ignored. parsed is False only when no label line is found at all; labelled
    turns with no text are dropped, so a parsed transcript may hold no messages.
    """
    messages: List[Message] = []
    current_role: Optional[str] = None
    buffer: List[str] = []
    labelled = False

    def flush():
        if current_role is None:
            return
        content = "\n".join(buffer).strip()
        if content:
            messages.append(Message(role=current_role, content=content))

    for line in text.split('\n'):
        stripped = line.strip()
        role, match = _match_label(stripped)

        if role is not None:
            flush()
            labelled = True
            current_role = role
            buffer = [stripped[match.end():].strip()]
        elif current_role is not None and stripped:
            buffer.append(stripped)

    flush()

    return ParsedTranscript(parsed=labelled, raw_text=text, messages=messages)


def format_transcript(messages: List[Message]) -> str:
    """Render messages back to labelled text, one blank line between turns"""
    return "\n\n".join(
        f"{DISPLAY_NAMES[message.role]}: {message.content}" for message in messages
    )
