"""
Share link validation
Checks that a submitted URL is a public ChatGPT share link
"""

import re
from typing import Optional

from clarity.config.settings import FETCH_CONFIG
from clarity.errors import InvalidFormat, WrongLinkType

SHARE_HOST = FETCH_CONFIG['share_host']

SHARE_LINK_PATTERN = re.compile(
    r'^https?://(www\.)?' + re.escape(SHARE_HOST) + r'/share/[a-zA-Z0-9-]+$'
)
SHARE_ID_PATTERN = re.compile(re.escape(SHARE_HOST) + r'/share/([a-zA-Z0-9-]+)')


def validate_share_link(url: str) -> str:
    """
    Validate a ChatGPT share link

    Args:
        url: Link as typed by the user

    Returns:
        The trimmed link

    Raises:
        InvalidFormat: empty input or not shaped like a share link
        WrongLinkType: a private /c/ conversation link
    """
    if not url or not url.strip():
        raise InvalidFormat("Please enter a ChatGPT share link")

    clean_url = url.strip()

    if SHARE_LINK_PATTERN.match(clean_url):
        return clean_url

    if '/c/' in clean_url:
        raise WrongLinkType(
            "This looks like a regular chat link. Please use a share link (click Share → Copy Link)"
        )

    if SHARE_HOST in clean_url:
        raise InvalidFormat(
            f"Invalid ChatGPT share link format. It should look like: {SHARE_HOST}/share/..."
        )

    raise InvalidFormat(f"Please enter a valid ChatGPT share link ({SHARE_HOST}/share/...)")


def extract_share_id(url: str) -> Optional[str]:
    """Get the opaque share id from a link, or None"""
    match = SHARE_ID_PATTERN.search(url)
    return match.group(1) if match else None


def looks_like_share_link(text: str) -> bool:
    """
    Decide whether user input is meant as a link rather than pasted text

    A single token that starts with a scheme or mentions /share/ is treated
    as a link and must then pass validate_share_link.
    """
    candidate = text.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return False
    return candidate.startswith(('http://', 'https://')) or '/share/' in candidate
