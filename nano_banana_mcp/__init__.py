"""Nano Banana MCP server: Gemini image generation and editing tools."""

__version__ = "1.0.0"
