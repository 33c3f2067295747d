"""Model provider integrations."""

from cocoder.integrations.openai_client import OpenAIChatProvider, build_client

__all__ = ["OpenAIChatProvider", "build_client"]
