from __future__ import annotations


class ConceptMapAIError(RuntimeError):
    """Base class for every error raised by the gateway client."""


class ConfigurationError(ConceptMapAIError):
    """Required configuration (the API key) is missing. Raised before any request."""


class HTTPError(ConceptMapAIError):
    def __init__(self, message: str, *, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(ConceptMapAIError):
    """Connection-level failure: DNS, reset, timeout, or a read error mid-stream."""


class StreamUnavailableError(ConceptMapAIError):
    pass


class MalformedFrameError(ConceptMapAIError):
    """A single stream frame could not be parsed. Never escapes the decoder."""
