from __future__ import annotations

import abc
import logging
from typing import AsyncIterator

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)


class BaseLLMClient(abc.ABC):
    """Abstract base class defining the streaming chat interface."""

    @abc.abstractmethod
    def stream(self, system_prompt: str, messages: list[dict], model: str, temperature: float, max_tokens: int) -> AsyncIterator[str]:
        """Yield text chunks of the model's reply. Closing the iterator releases the provider stream."""
        ...


class LLMClient(BaseLLMClient):
    """OpenAI-compatible streaming client (OpenAI, and Gemini via its OpenAI endpoint)."""

    def __init__(self, api_key: str, base_url: str = "https://api.openai.com/v1", timeout: float = 30.0):
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    async def stream(self, system_prompt: str, messages: list[dict], model: str, temperature: float, max_tokens: int) -> AsyncIterator[str]:
        logger.debug(f"Opening OpenAI-compatible stream for {model} ({len(messages)} messages)")
        response = await self.client.chat.completions.create(
            model=model,
            messages=[{"role": "system", "content": system_prompt}, *messages],
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
        )
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        finally:
            await response.close()


class AnthropicLLMClient(BaseLLMClient):
    """Anthropic SDK client with the same interface as LLMClient."""

    def __init__(self, api_key: str, timeout: float = 30.0):
        from anthropic import AsyncAnthropic
        self.client = AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)

    async def stream(self, system_prompt: str, messages: list[dict], model: str, temperature: float, max_tokens: int) -> AsyncIterator[str]:
        logger.debug(f"Opening Anthropic stream for {model} ({len(messages)} messages)")
        async with self.client.messages.stream(
            model=model,
            system=system_prompt,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        ) as response:
            async for text in response.text_stream:
                if text:
                    yield text


def create_llm_client(provider_type: str, api_key: str, base_url: str | None = None, timeout: float = 30.0) -> BaseLLMClient:
    """Factory function to create the appropriate LLM client."""
    if provider_type == "anthropic":
        return AnthropicLLMClient(api_key=api_key, timeout=timeout)
    else:
        return LLMClient(api_key=api_key, base_url=base_url or "https://api.openai.com/v1", timeout=timeout)
