"""Shared test fixtures for datachat unit tests."""
from __future__ import annotations

import pytest

from datachat.services.llm_client import BaseLLMClient


class FakeLLMClient(BaseLLMClient):
    """Streaming client that replays canned chunks and records each call."""

    def __init__(self, chunks=("Hello", ", ", "world"), error: Exception | None = None, fail_after: int | None = None):
        self.chunks = list(chunks)
        self.error = error
        self.fail_after = fail_after
        self.calls: list[dict] = []
        self.closed = False

    async def stream(self, system_prompt, messages, model, temperature, max_tokens):
        self.calls.append({
            "system_prompt": system_prompt,
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        try:
            if self.error is not None and self.fail_after is None:
                raise self.error
            for index, chunk in enumerate(self.chunks):
                if self.error is not None and index == self.fail_after:
                    raise self.error
                yield chunk
        finally:
            self.closed = True


class FakeClientFactory:
    """Stands in for create_llm_client and hands out FakeLLMClient instances."""

    def __init__(self):
        self.chunks = ("Hello", ", ", "world")
        self.error: Exception | None = None
        self.fail_after: int | None = None
        self.created: list[dict] = []
        self.clients: list[FakeLLMClient] = []

    def __call__(self, provider_type, api_key, base_url=None, timeout=30.0):
        client = FakeLLMClient(self.chunks, self.error, self.fail_after)
        self.created.append({"provider_type": provider_type, "api_key": api_key, "base_url": base_url, "timeout": timeout})
        self.clients.append(client)
        return client

    @property
    def last_client(self) -> FakeLLMClient:
        return self.clients[-1]


@pytest.fixture
def make_settings():
    """Factory fixture to create Settings with arbitrary env var overrides."""
    def _make(**overrides):
        from datachat.config import Settings
        defaults = {
            "OPENAI_API_KEY": None,
            "GEMINI_API_KEY": None,
            "ANTHROPIC_API_KEY": None,
            "ALLOW_SERVER_API_KEYS": False,
        }
        defaults.update(overrides)
        return Settings(**defaults)
    return _make


@pytest.fixture
def fake_factory():
    return FakeClientFactory()


@pytest.fixture
def make_registry(make_settings, fake_factory):
    """Factory fixture to create a ProviderRegistry backed by fake clients."""
    def _make(**overrides):
        from datachat.services.providers import ProviderRegistry
        return ProviderRegistry(make_settings(**overrides), client_factory=fake_factory)
    return _make


@pytest.fixture
def make_handler(make_settings, fake_factory):
    """Factory fixture to create a ChatHandler with its own default dataset cache."""
    def _make(**overrides):
        from datachat.services.chat_handler import ChatHandler
        from datachat.services.dataset import DefaultDatasetCache
        from datachat.services.providers import ProviderRegistry
        settings = make_settings(**overrides)
        registry = ProviderRegistry(settings, client_factory=fake_factory)
        return ChatHandler(settings, registry, DefaultDatasetCache(settings.DEFAULT_DATASET_SOURCE))
    return _make


@pytest.fixture
def make_client(make_settings, fake_factory):
    """Factory fixture for a FastAPI TestClient over a fresh app."""
    def _make(**overrides):
        from fastapi.testclient import TestClient
        from datachat.main import create_app
        return TestClient(create_app(make_settings(**overrides), client_factory=fake_factory))
    return _make


@pytest.fixture
def app_client(make_client):
    return make_client()


@pytest.fixture
def sample_csv() -> str:
    return (
        "Username,Full Name,Follower Count,Creator City,Average Likes\n"
        "alice,Alice A,1500,\"New York, NY\",120\n"
        "bob,Bob B,,Paris,\n"
        "\n"
        "carol,Carol C,abc,Berlin,77\n"
    )
