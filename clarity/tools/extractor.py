#!/usr/bin/env python3
"""
Conversation Extractor
Recovers the title and messages of a ChatGPT shared conversation from its page

The share page layout changes without notice, so extraction is an ordered list
of independent strategies. Each takes the raw HTML and either returns a
conversation or None; the first one that yields messages wins.
"""

import json
import re
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
from bs4 import BeautifulSoup

from clarity.config.settings import FETCH_CONFIG
from clarity.errors import ExtractionFailed, UpstreamError, UpstreamNotFound
from clarity.models import Conversation, Message
from clarity.tools.link_validator import SHARE_HOST, extract_share_id, validate_share_link
from clarity.tools.utils import Logger

DEFAULT_TITLE = "Untitled Conversation"
MAPPING_ONLY_TITLE = "Shared Conversation"

SERVER_RESPONSE_PATTERN = re.compile(r'"serverResponse"\s*:\s*(\{[\s\S]*?\})\s*,\s*"(?:isError|__N)')
MAPPING_PATTERN = re.compile(r'"mapping"\s*:\s*(\{[\s\S]*?\})\s*,\s*"moderation')

ROLE_ATTRIBUTE = 'data-message-author-role'
CONVERSATION_ROLES = ('user', 'assistant')


@dataclass
class ExtractedConversation:
    """Title and ordered messages recovered by one strategy"""
    title: str
    messages: List[Message] = field(default_factory=list)


Strategy = Callable[[str], Optional[ExtractedConversation]]


# ============================================================================
# Mapping helpers
# ============================================================================

def join_parts(parts: Any) -> str:
    """Join message content parts with newlines, keeping only text"""
    if not isinstance(parts, list):
        return ""
    text_parts = []
    for part in parts:
        if isinstance(part, str):
            text_parts.append(part)
        elif isinstance(part, dict) and isinstance(part.get('text'), str):
            text_parts.append(part['text'])
    return "\n".join(text_parts).strip()


def node_to_message(node: Any) -> Optional[Message]:
    """Build a Message from a mapping node, or None if it carries no chat text"""
    if not isinstance(node, dict):
        return None
    message = node.get('message')
    if not isinstance(message, dict):
        return None

    author = message.get('author') or {}
    role = author.get('role') if isinstance(author, dict) else None
    content = message.get('content') or {}
    parts = content.get('parts') if isinstance(content, dict) else None

    if role not in CONVERSATION_ROLES:
        return None
    text = join_parts(parts)
    if not text:
        return None
    return Message(role=role, content=text)


def _node_role(node: Any) -> Optional[str]:
    if not isinstance(node, dict) or not isinstance(node.get('message'), dict):
        return None
    author = node['message'].get('author') or {}
    return author.get('role') if isinstance(author, dict) else None


def _children(node: Any) -> List[str]:
    if not isinstance(node, dict):
        return []
    children = node.get('children') or []
    return [child for child in children if isinstance(child, str)]


def find_root(mapping: Dict[str, Any]) -> Optional[str]:
    """
    Find the node the conversation hangs from

    The system message node is preferred, then the first node without a
    message payload, then the first node whose parent is not in the mapping.
    """
    for node_id, node in mapping.items():
        if _node_role(node) == 'system':
            return node_id

    for node_id, node in mapping.items():
        if isinstance(node, dict) and not node.get('message') and node.get('children'):
            return node_id

    for node_id, node in mapping.items():
        if isinstance(node, dict) and node.get('parent') not in mapping:
            return node_id

    return None


def extract_messages(mapping: Any) -> List[Message]:
    """
    Walk a mapping tree breadth-first and collect user/assistant messages

    Nodes with other roles are walked through but not emitted. A visited set
    guards against cyclic mappings.

    Note: when the tree branches (edited or regenerated replies) every branch
    is flattened in BFS order instead of following the current branch only.
    """
    if not isinstance(mapping, dict) or not mapping:
        return []

    root_id = find_root(mapping)
    if root_id is None:
        return []

    visited = {root_id}
    queue = deque(_children(mapping[root_id]))
    messages = []

    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)

        node = mapping.get(node_id)
        if node is None:
            continue

        message = node_to_message(node)
        if message is not None:
            messages.append(message)

        queue.extend(_children(node))

    return messages


def extract_flat_messages(mapping: Any) -> List[Message]:
    """Collect messages from mapping values in their stored order"""
    if not isinstance(mapping, dict):
        return []
    messages = []
    for node in mapping.values():
        message = node_to_message(node)
        if message is not None:
            messages.append(message)
    return messages


def _from_data_object(data: Any) -> Optional[ExtractedConversation]:
    if not isinstance(data, dict):
        return None
    return ExtractedConversation(
        title=data.get('title') or DEFAULT_TITLE,
        messages=extract_messages(data.get('mapping')),
    )


def _loads(payload: str, strategy: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        Logger.warning(f"{strategy}: could not parse embedded JSON ({e})")
        return None


# ============================================================================
# Strategies
# ============================================================================

def next_data_strategy(html: str) -> Optional[ExtractedConversation]:
    """Read the __NEXT_DATA__ script block and follow props.pageProps.serverResponse.data"""
    soup = BeautifulSoup(html, 'html.parser')
    script = soup.find('script', id='__NEXT_DATA__')
    if script is None or not script.string:
        return None

    next_data = _loads(script.string, 'next_data')
    if not isinstance(next_data, dict):
        return None

    server_response = next_data
    for key in ('props', 'pageProps', 'serverResponse'):
        if not isinstance(server_response, dict):
            return None
        server_response = server_response.get(key)
    if not isinstance(server_response, dict):
        return None
    return _from_data_object(server_response.get('data'))


def server_response_strategy(html: str) -> Optional[ExtractedConversation]:
    """Find an inline "serverResponse": {...} fragment"""
    match = SERVER_RESPONSE_PATTERN.search(html)
    if not match:
        return None

    server_response = _loads(match.group(1), 'server_response')
    if not isinstance(server_response, dict):
        return None
    return _from_data_object(server_response.get('data'))


def mapping_strategy(html: str) -> Optional[ExtractedConversation]:
    """Find an inline "mapping": {...} fragment; no title is available"""
    match = MAPPING_PATTERN.search(html)
    if not match:
        return None

    mapping = _loads(match.group(1), 'mapping')
    if not isinstance(mapping, dict):
        return None
    return ExtractedConversation(title=MAPPING_ONLY_TITLE, messages=extract_flat_messages(mapping))


def rendered_dom_strategy(html: str) -> Optional[ExtractedConversation]:
    """Read messages from already-rendered markup tagged with the author role"""
    soup = BeautifulSoup(html, 'html.parser')
    messages = []
    for element in soup.find_all(attrs={ROLE_ATTRIBUTE: True}):
        role = element.get(ROLE_ATTRIBUTE)
        text = element.get_text("\n", strip=True)
        if role in CONVERSATION_ROLES and text:
            messages.append(Message(role=role, content=text))

    if not messages:
        return None

    title = soup.title.get_text(strip=True) if soup.title else ""
    return ExtractedConversation(title=title or DEFAULT_TITLE, messages=messages)


DEFAULT_STRATEGIES: List[Strategy] = [
    next_data_strategy,
    server_response_strategy,
    mapping_strategy,
    rendered_dom_strategy,
]


class ConversationExtractor:
    """Runs extraction strategies in priority order"""

    def __init__(self, strategies: Optional[Iterable[Strategy]] = None):
        self.strategies = list(strategies) if strategies is not None else list(DEFAULT_STRATEGIES)

    def extract(self, html: str) -> ExtractedConversation:
        """
        Extract a conversation from share page HTML

        Raises:
            ExtractionFailed: no strategy produced any message
        """
        for strategy in self.strategies:
            result = strategy(html)
            if result is not None and result.messages:
                Logger.success(f"Extracted {len(result.messages)} messages using {strategy.__name__}")
                return result
        raise ExtractionFailed("Could not extract conversation data. The page structure may have changed.")


# ============================================================================
# Fetching
# ============================================================================

class ShareLinkFetcher:
    """Downloads a share page and turns it into a Conversation"""

    def __init__(
        self,
        extractor: Optional[ConversationExtractor] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.extractor = extractor or ConversationExtractor()
        self.timeout = timeout or FETCH_CONFIG['timeout']
        self.transport = transport

    async def fetch_html(self, share_id: str) -> str:
        """Get the raw share page for share_id"""
        page_url = f"https://{SHARE_HOST}/share/{share_id}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self.transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(page_url, headers=FETCH_CONFIG['headers'])
        except httpx.HTTPError as e:
            Logger.error(f"Share page request failed: {type(e).__name__}: {e}")
            raise UpstreamError("Failed to fetch conversation. Please try again.")

        if response.status_code == 404:
            raise UpstreamNotFound("Conversation not found. The share link may be invalid or expired.")
        if not response.is_success:
            Logger.error(f"Share page returned HTTP {response.status_code}")
            raise UpstreamError(f"Failed to fetch conversation (HTTP {response.status_code}). Please try again.")

        return response.text

    async def fetch(self, url: str) -> Conversation:
        """
        Fetch and extract a shared conversation

        Args:
            url: Share link, validated here

        Returns:
            Conversation whose id is the share id
        """
        clean_url = validate_share_link(url)
        share_id = extract_share_id(clean_url)

        Logger.info(f"Fetching shared conversation {share_id}...")
        html = await self.fetch_html(share_id)
        extracted = self.extractor.extract(html)

        return Conversation(
            id=share_id,
            title=extracted.title,
            messages=extracted.messages,
            url=clean_url,
            fetched_at=datetime.now(),
        )
