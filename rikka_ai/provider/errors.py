"""
Error classes for the chat-completion client.

TransportError covers everything the network produced (connection failures,
timeouts, non-2xx status). DecodeError covers response bodies of an unexpected
shape. StreamError is the terminal failure of an event stream.
"""

from typing import Optional


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: Optional[int] = None, response_text: str = ""):
        self.message = message
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(self.message)

    def user_friendly_message(self) -> str:
        """Returns a user-friendly error message."""
        return self.message


class TransportError(APIError):
    """Request did not produce a successful HTTP response."""

    def user_friendly_message(self) -> str:
        return f"[ERROR] Request failed\n\nError: {self.message}"


class NetworkError(TransportError):
    """Network connectivity errors (connection refused, DNS failure, etc.)."""

    def user_friendly_message(self) -> str:
        return (
            f"[ERROR] Unable to connect to provider\n\n"
            f"Error: {self.message}\n\n"
            f"Suggestions:\n"
            f"  1. Check the --base-url value (RIKKA_BASE_URL)\n"
            f"  2. Check your network or proxy settings"
        )


class TimeoutError(TransportError):
    """Request timeout errors."""

    def user_friendly_message(self) -> str:
        return (
            f"[TIMEOUT] Request timed out\n\n"
            f"Error: {self.message}\n\n"
            f"Suggestions:\n"
            f"  1. The model may still be generating; retry or use streaming\n"
            f"  2. Increase the timeout (--timeout / RIKKA_TIMEOUT)"
        )


class HTTPStatusError(TransportError):
    """HTTP status code errors (4xx, 5xx)."""

    def user_friendly_message(self) -> str:
        status = self.status_code or "Unknown"
        return (
            f"[SERVER ERROR] (HTTP {status})\n\n"
            f"Error: {self.message}\n\n"
            f"Response: {self.response_text[:200]}"
        )


class DecodeError(APIError):
    """Malformed or unexpected JSON shape in a provider response."""

    def user_friendly_message(self) -> str:
        text = (
            f"[JSON ERROR] Unexpected response from provider\n\n"
            f"Error: {self.message}"
        )
        if self.response_text:
            text += f"\n\nRaw response: {self.response_text[:200]}"
        return text


class StreamError(APIError):
    """Failure that terminated a chunk stream."""

    def user_friendly_message(self) -> str:
        if self.status_code:
            return f"[STREAM ERROR] (HTTP {self.status_code})\n\nError: {self.message}"
        return f"[STREAM ERROR]\n\nError: {self.message}"
