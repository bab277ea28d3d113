"""
LLM provider wrappers.

  get_chat_llm()        → deepseek-chat (responses + summaries)
  CompletionProvider    → prompt string in, response string out
"""

from .llm_provider import (
    CompletionApiError,
    CompletionError,
    CompletionProvider,
    CompletionTransportError,
    get_chat_llm,
)

__all__ = [
    "get_chat_llm",
    "CompletionProvider",
    "CompletionError",
    "CompletionApiError",
    "CompletionTransportError",
]
