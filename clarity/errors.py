"""
Error taxonomy for Clarity

Every failure a caller may need to tell apart is a ClarityError subclass
carrying a human-readable message and the HTTP status the API answers with.
"""

from typing import Optional


class ClarityError(Exception):
    """Base class for all expected Clarity failures"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(ClarityError):
    """Malformed link or unusable pasted text, rejected before any network call"""

    status_code = 400


class InvalidFormat(InvalidInput):
    """The submitted string is not a share link"""


class WrongLinkType(InvalidInput):
    """The submitted link points at a private conversation, not a share"""


class UpstreamNotFound(ClarityError):
    """The share origin answered 404"""

    status_code = 404


NotFound = UpstreamNotFound


class UpstreamError(ClarityError):
    """Non-2xx or transport failure from the share origin or the LLM provider"""

    status_code = 500


class RequestFailed(UpstreamError):
    """The LLM request could not be made or was rejected"""


class StreamReadFailed(UpstreamError):
    """The LLM stream broke while being consumed"""

    status_code = 502


class MindMapGenerationFailed(UpstreamError):
    """The mind map service returned nothing usable"""

    status_code = 502


class ExtractionFailed(ClarityError):
    """The share page was fetched but no strategy recovered any messages"""

    status_code = 422


class ConfigurationError(ClarityError):
    """Required configuration (the API key) is missing"""

    status_code = 500


class Cancelled(ClarityError):
    """The operation was aborted through its cancellation token"""

    status_code = 499

    def __init__(self, message: str = "Analysis cancelled", status_code: Optional[int] = None):
        super().__init__(message, status_code)


class StreamDecodeError(ClarityError):
    """A single SSE fragment could not be decoded; skipped by the reader"""
