"""Streaming chat gateway over interchangeable LLM providers."""

__version__ = "0.1.0"
