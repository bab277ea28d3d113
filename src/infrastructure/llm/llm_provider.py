"""
Completion provider - DeepSeek chat model via its OpenAI-compatible API.

The memory core hands this provider one assembled prompt string and
gets one response string back.  Failures are surfaced typed:

  - ``CompletionApiError``       → the provider answered with an error
  - ``CompletionTransportError`` → the request never got an answer

No automatic retry happens here; the caller owns retry/abort policy.
"""

from typing import Any, List, Optional

import openai
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from loguru import logger

from infrastructure.config import (
    CHAT_MODEL,
    DEEPSEEK_BASE_URL,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    get_api_key,
)
from infrastructure.observability import observe, update_current_observation


class CompletionError(Exception):
    """Base class for completion-provider failures."""


class CompletionApiError(CompletionError):
    """The provider rejected the request (carries the provider's message)."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(f"API Error: {message}")
        self.message = message
        self.status_code = status_code


class CompletionTransportError(CompletionError):
    """Connection failure or timeout talking to the provider."""


def get_chat_llm(
    temperature: Optional[float] = None,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    **kwargs: Any,
) -> ChatOpenAI:
    """LLM for user-facing responses and conversation summaries.

    Model: deepseek-chat via the DeepSeek OpenAI-compatible endpoint.
    """
    return ChatOpenAI(
        model=model or CHAT_MODEL,
        temperature=LLM_TEMPERATURE if temperature is None else temperature,
        max_tokens=LLM_MAX_TOKENS,
        timeout=LLM_TIMEOUT_SECONDS,
        max_retries=0,
        openai_api_base=DEEPSEEK_BASE_URL,
        openai_api_key=api_key or get_api_key("deepseek"),
        **kwargs,
    )


class CompletionProvider:
    """
    ``complete(prompt) -> str`` over a LangChain chat model.

    Any object with ``invoke(messages)`` returning a message with
    ``.content`` works as ``llm``.
    """

    def __init__(self, llm: Any, system_prompt: str = "") -> None:
        self.llm = llm
        self.system_prompt = system_prompt

    @observe(name="completion", as_type="generation")
    def complete(self, prompt: str, *, system_prompt: Optional[str] = None) -> str:
        """Send ``prompt`` to the chat model and return the response text."""
        system = self.system_prompt if system_prompt is None else system_prompt
        messages: List[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))

        update_current_observation(input=prompt[:1000], model=self.model_name)

        try:
            response = self.llm.invoke(messages)
        except openai.APIConnectionError as exc:
            logger.error("Completion transport failure: {}", exc)
            raise CompletionTransportError(str(exc)) from exc
        except openai.APIStatusError as exc:
            logger.error("Completion API error ({}): {}", exc.status_code, exc.message)
            raise CompletionApiError(exc.message, status_code=exc.status_code) from exc
        except openai.APIError as exc:
            logger.error("Completion API error: {}", exc.message)
            raise CompletionApiError(exc.message) from exc

        content = response.content if hasattr(response, "content") else str(response)
        if not isinstance(content, str):
            raise CompletionApiError("Invalid response format: non-text content")

        update_current_observation(output=content[:1000])
        return content.strip()

    @property
    def model_name(self) -> str:
        """Model name of the wrapped LLM for LangFuse metadata."""
        if hasattr(self.llm, "model_name"):
            return self.llm.model_name
        if hasattr(self.llm, "model"):
            return self.llm.model
        return "unknown"
