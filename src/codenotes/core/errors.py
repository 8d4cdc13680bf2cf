"""Errors raised by repository analysis."""

from __future__ import annotations

RAW_EXCERPT_CHARS = 100


class AnalysisError(Exception):
    """Base class; ``str(error)`` is meant for display."""


class AnalysisValidationError(AnalysisError, ValueError):
    pass


class AnalysisConfigError(AnalysisError):
    pass


class AnalysisTransportError(AnalysisError):
    pass


class MalformedResponseError(AnalysisError):
    def __init__(self, message: str, raw_text: str) -> None:
        super().__init__(f"{message} Raw content: {excerpt(raw_text)}")
        self.raw_text = raw_text


def excerpt(text: str, limit: int = RAW_EXCERPT_CHARS) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."
