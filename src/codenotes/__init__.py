"""Repository audit notes backed by Gemini analysis."""

__version__ = "0.1.0"
