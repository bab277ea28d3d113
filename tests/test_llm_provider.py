from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from infrastructure.llm.llm_provider import (
    CompletionApiError,
    CompletionProvider,
    CompletionTransportError,
)

_REQUEST = httpx.Request("POST", "https://api.deepseek.com/v1/chat/completions")


class FakeChatModel:
    model_name = "deepseek-chat"

    def __init__(self, content=None, error: Exception = None) -> None:
        self.content = content
        self.error = error
        self.messages = None

    def invoke(self, messages):
        self.messages = messages
        if self.error is not None:
            raise self.error
        return SimpleNamespace(content=self.content)


def test_complete_returns_stripped_text() -> None:
    llm = FakeChatModel("  Rust is fast.\n")
    provider = CompletionProvider(llm)

    assert provider.complete("tell me about rust") == "Rust is fast."
    assert llm.messages == [HumanMessage(content="tell me about rust")]


def test_system_prompt_prepended() -> None:
    llm = FakeChatModel("ok")
    provider = CompletionProvider(llm, system_prompt="default persona")

    provider.complete("hi")
    assert llm.messages[0] == SystemMessage(content="default persona")

    provider.complete("hi", system_prompt="You are Expert.")
    assert llm.messages[0] == SystemMessage(content="You are Expert.")
    assert llm.messages[1] == HumanMessage(content="hi")


def test_status_error_becomes_api_error() -> None:
    response = httpx.Response(401, request=_REQUEST)
    llm = FakeChatModel(error=openai.AuthenticationError("Invalid API key", response=response, body=None))

    with pytest.raises(CompletionApiError) as excinfo:
        CompletionProvider(llm).complete("hi")

    assert excinfo.value.status_code == 401
    assert str(excinfo.value) == "API Error: Invalid API key"


def test_connection_error_becomes_transport_error() -> None:
    llm = FakeChatModel(error=openai.APITimeoutError(request=_REQUEST))

    with pytest.raises(CompletionTransportError):
        CompletionProvider(llm).complete("hi")


def test_non_text_content_rejected() -> None:
    llm = FakeChatModel([{"type": "image_url"}])

    with pytest.raises(CompletionApiError):
        CompletionProvider(llm).complete("hi")


def test_model_name() -> None:
    assert CompletionProvider(FakeChatModel("x")).model_name == "deepseek-chat"
    assert CompletionProvider(object()).model_name == "unknown"
