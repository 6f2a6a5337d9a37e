"""Chat request handling: dataset resolution, prompt construction, model dispatch and streaming.

Each request walks a fixed sequence of states::

    idle -> dataset_resolved -> prompt_built -> model_resolved -> dispatched -> streaming -> completed

Any failure moves the exchange to ``failed`` and the raised ChatError records the
last state reached in ``stage``. Nothing is retried.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator

import anthropic
import openai

from ..config import Settings
from ..schemas import ChatRequest
from .dataset import Dataset, DefaultDatasetCache, parse_uploaded_dataset
from .errors import AuthenticationError, ChatError, InputValidationError, ProviderError
from .prompt_builder import SystemPrompt, build_system_prompt
from .providers import ProviderRegistry, ProviderSpec, ResolvedModel

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    IDLE = "idle"
    DATASET_RESOLVED = "dataset_resolved"
    PROMPT_BUILT = "prompt_built"
    MODEL_RESOLVED = "model_resolved"
    DISPATCHED = "dispatched"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


_ORDER = [
    ChatState.IDLE,
    ChatState.DATASET_RESOLVED,
    ChatState.PROMPT_BUILT,
    ChatState.MODEL_RESOLVED,
    ChatState.DISPATCHED,
    ChatState.STREAMING,
    ChatState.COMPLETED,
]


class ChatExchange:
    """Tracks the state of a single chat request."""

    def __init__(self):
        self.state = ChatState.IDLE
        self.history = [ChatState.IDLE]

    def advance(self, state: ChatState):
        expected = _ORDER[_ORDER.index(self.state) + 1] if self.state in _ORDER[:-1] else None
        if state != expected:
            raise RuntimeError(f"Invalid chat state transition {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)
        logger.debug(f"Chat state -> {state.value}")

    def fail(self, error: ChatError):
        if self.state == ChatState.FAILED:
            return
        error.stage = self.state.value
        self.state = ChatState.FAILED
        self.history.append(ChatState.FAILED)


def map_provider_error(error: Exception, provider: ProviderSpec) -> ChatError:
    """Translate an SDK exception into a ChatError with the right status code."""
    if isinstance(error, ChatError):
        return error
    if isinstance(error, (openai.AuthenticationError, anthropic.AuthenticationError)):
        return AuthenticationError(
            f"The {provider.name} API key was rejected. Check your {provider.name} API key in settings.",
            provider=provider.id.value,
            rejected=True,
        )
    logger.error(f"{provider.name} request failed: {error!r}", exc_info=error)
    return ProviderError(f"The {provider.name} request failed. Please try again later.")


class ChatStream:
    """Lazy, finite, non-restartable sequence of text chunks from the provider.

    The first chunk has already been received when the stream is handed out.
    Closing the stream (or abandoning iteration) closes the provider stream.
    """

    def __init__(self, exchange: ChatExchange, upstream: AsyncIterator[str], first_chunk: str | None,
                 prompt: SystemPrompt, resolved: ResolvedModel, dataset: Dataset):
        self.exchange = exchange
        self.prompt = prompt
        self.resolved = resolved
        self.dataset = dataset
        self._upstream = upstream
        self._first_chunk = first_chunk
        self._iterator = self._relay()

    @property
    def state(self) -> ChatState:
        return self.exchange.state

    def __aiter__(self):
        return self._iterator

    async def _relay(self):
        self.exchange.advance(ChatState.STREAMING)
        try:
            if self._first_chunk is not None:
                yield self._first_chunk
            async for chunk in self._upstream:
                yield chunk
        except (GeneratorExit, asyncio.CancelledError):
            logger.info("Chat stream closed by consumer before completion")
            self.exchange.fail(ProviderError("Stream cancelled"))
            raise
        except Exception as e:
            error = map_provider_error(e, self.resolved.provider)
            self.exchange.fail(error)
            raise error from e
        else:
            self.exchange.advance(ChatState.COMPLETED)
        finally:
            await self._upstream.aclose()

    async def aclose(self):
        if self.exchange.state == ChatState.DISPATCHED:
            logger.info("Chat stream closed before the first chunk was relayed")
            self.exchange.fail(ProviderError("Stream cancelled"))
        await self._iterator.aclose()
        await self._upstream.aclose()

    async def collect(self) -> str:
        """Drain the stream into a single string."""
        return "".join([chunk async for chunk in self])


class ChatHandler:
    """Stateless per-request chat handler. The default dataset cache is the only shared state."""

    def __init__(self, settings: Settings, registry: ProviderRegistry, dataset_cache: DefaultDatasetCache):
        self._settings = settings
        self._registry = registry
        self._dataset_cache = dataset_cache

    async def resolve_dataset(self, request: ChatRequest) -> Dataset:
        if request.uploaded_csv_data is not None:
            return parse_uploaded_dataset(request.uploaded_csv_data)
        return await self._dataset_cache.get()

    def select_model(self, request: ChatRequest) -> str:
        model_id = (request.selected_model or "").strip()
        if model_id:
            return model_id
        if self._settings.REQUIRE_SELECTED_MODEL:
            raise InputValidationError("No model selected. Choose a model in settings.")
        return self._settings.DEFAULT_MODEL

    async def start(self, request: ChatRequest) -> ChatStream:
        """Run the request up to the first streamed chunk."""
        exchange = ChatExchange()
        upstream = None
        resolved = None
        try:
            dataset = await self.resolve_dataset(request)
            exchange.advance(ChatState.DATASET_RESOLVED)

            prompt = build_system_prompt(dataset, self._settings.prompt_char_budget)
            exchange.advance(ChatState.PROMPT_BUILT)
            if prompt.truncated:
                logger.warning(f"System prompt truncated: {prompt.shown_rows} of {prompt.total_rows} rows included")

            resolved = self._registry.resolve(self.select_model(request), request.providers)
            exchange.advance(ChatState.MODEL_RESOLVED)

            logger.info(
                f"Chat request: model={resolved.model} provider={resolved.provider.id.value} "
                f"dataset={dataset.source} rows={prompt.shown_rows}/{prompt.total_rows} messages={len(request.messages)}"
            )
            upstream = resolved.client.stream(
                prompt.text,
                request.provider_messages(),
                model=resolved.model,
                temperature=self._settings.CHAT_TEMPERATURE,
                max_tokens=self._settings.CHAT_MAX_TOKENS,
            )
            exchange.advance(ChatState.DISPATCHED)

            try:
                first_chunk = await upstream.__anext__()
            except StopAsyncIteration:
                first_chunk = None
        except Exception as e:
            if isinstance(e, ChatError):
                error = e
            elif resolved is not None:
                error = map_provider_error(e, resolved.provider)
            else:
                logger.exception("Unexpected error while preparing chat request")
                error = ProviderError("Unexpected error while preparing the chat request.")
            exchange.fail(error)
            if upstream is not None:
                await upstream.aclose()
            if error is e:
                raise
            raise error from e

        return ChatStream(exchange, upstream, first_chunk, prompt, resolved, dataset)
