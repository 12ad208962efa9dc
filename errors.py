"""
errors.py

Exception types and user-facing error notices.
"""

from __future__ import annotations


class StorageError(Exception):
    """A persistence backend could not read or write a key."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


def describe_error(error: BaseException, context: str = "") -> str:
    """
    Map an exception to a short notice suitable for a status line.

    Args:
        error: The failure.
        context: Optional operation name, prefixed to generic messages.

    Returns:
        A one-line message.
    """
    text = str(error)
    lowered = text.lower()

    if "context invalidated" in lowered or "reloaded" in lowered:
        return "Extension was reloaded. Please refresh the page."
    if "api key" in lowered:
        return "API key is not set. Please configure it in extension options."
    if "network" in lowered:
        return "Network error occurred. Please check your internet connection."
    if "quota" in lowered:
        return "Storage quota exceeded. Please try again later."

    prefix = f"{context}: " if context else ""
    return f"{prefix}Error: {text or type(error).__name__}"
