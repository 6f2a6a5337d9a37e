from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Mapping

from ..config import Settings
from ..schemas import ModelDescriptor, ProviderId, ProviderSettings
from .errors import AuthenticationError, ModelSelectionError
from .llm_client import BaseLLMClient, create_llm_client

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., BaseLLMClient]


@dataclass(frozen=True)
class ProviderSpec:
    id: ProviderId
    name: str
    provider_type: str  # "openai_compatible" | "anthropic"
    prefixes: tuple[str, ...]
    models: tuple[ModelDescriptor, ...]


def _models(*pairs: tuple[str, str]) -> tuple[ModelDescriptor, ...]:
    return tuple(ModelDescriptor(id=model_id, name=name) for model_id, name in pairs)


PROVIDERS: dict[ProviderId, ProviderSpec] = {
    ProviderId.OPENAI: ProviderSpec(
        id=ProviderId.OPENAI,
        name="OpenAI",
        provider_type="openai_compatible",
        prefixes=("gpt-", "chatgpt-", "o1", "o3", "o4"),
        models=_models(
            ("gpt-4o", "GPT-4o"),
            ("gpt-4o-mini", "GPT-4o Mini"),
            ("gpt-4-turbo", "GPT-4 Turbo"),
            ("gpt-3.5-turbo", "GPT-3.5 Turbo"),
        ),
    ),
    ProviderId.GOOGLE: ProviderSpec(
        id=ProviderId.GOOGLE,
        name="Google",
        provider_type="openai_compatible",
        prefixes=("gemini",),
        models=_models(
            ("gemini-1.5-pro", "Gemini 1.5 Pro"),
            ("gemini-1.5-flash", "Gemini 1.5 Flash"),
            ("gemini-2.0-flash", "Gemini 2.0 Flash"),
        ),
    ),
    ProviderId.ANTHROPIC: ProviderSpec(
        id=ProviderId.ANTHROPIC,
        name="Anthropic",
        provider_type="anthropic",
        prefixes=("claude",),
        models=_models(
            ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
            ("claude-3-opus-20240229", "Claude 3 Opus"),
            ("claude-3-haiku-20240307", "Claude 3 Haiku"),
        ),
    ),
}


def _normalize_model_id(model_id: str) -> str:
    """Strip provider prefixes like 'models/' from model IDs."""
    model_id = model_id.strip().lower()
    if model_id.startswith("models/"):
        return model_id[len("models/"):]
    return model_id


def classify_model(model_id: str) -> ProviderId | None:
    """Infer the provider from a model identifier's naming convention."""
    normalized = _normalize_model_id(model_id)
    for spec in PROVIDERS.values():
        if normalized.startswith(spec.prefixes):
            return spec.id
    return None


@dataclass
class ResolvedModel:
    provider: ProviderSpec
    model: str
    client: BaseLLMClient


class ProviderRegistry:
    """Resolves a selected model to a provider, an API key and a streaming client."""

    def __init__(self, settings: Settings, client_factory: ClientFactory = create_llm_client):
        self._settings = settings
        self._client_factory = client_factory

    def list_providers(self) -> list[dict]:
        """Return the provider catalog (without secrets)."""
        server_keys = self._settings.get_server_keys()
        return [
            {
                "id": spec.id,
                "name": spec.name,
                "server_key_configured": self._settings.ALLOW_SERVER_API_KEYS and bool(server_keys[spec.id.value]),
                "models": list(spec.models),
            }
            for spec in PROVIDERS.values()
        ]

    def get_provider(self, provider_id: str) -> ProviderSpec | None:
        try:
            return PROVIDERS[ProviderId(provider_id)]
        except ValueError:
            return None

    def provider_for(self, model_id: str, configs: Mapping[ProviderId, ProviderSettings] | None = None) -> ProviderSpec:
        """Provider whose configured model list contains model_id, else classify by name."""
        for provider_id, config in (configs or {}).items():
            for descriptor in config.models:
                if descriptor.id == model_id:
                    return PROVIDERS[descriptor.provider or provider_id]

        provider_id = classify_model(model_id)
        if provider_id is None:
            raise ModelSelectionError(
                f"Unknown model '{model_id}'. Select an OpenAI (gpt-*), Google (gemini-*) or Anthropic (claude-*) model."
            )
        return PROVIDERS[provider_id]

    def api_key_for(self, provider: ProviderSpec, configs: Mapping[ProviderId, ProviderSettings] | None = None) -> str:
        config = (configs or {}).get(provider.id)
        key = config.api_key.strip() if config else ""
        if not key and self._settings.ALLOW_SERVER_API_KEYS:
            key = (self._settings.get_server_keys()[provider.id.value] or "").strip()
            if key:
                logger.info(f"Using server-side API key for {provider.name}")
        if not key:
            raise AuthenticationError(
                f"No API key configured for {provider.name}. Add your {provider.name} API key in settings.",
                provider=provider.id.value,
            )
        return key

    def resolve(self, model_id: str, configs: Mapping[ProviderId, ProviderSettings] | None = None) -> ResolvedModel:
        provider = self.provider_for(model_id, configs)
        api_key = self.api_key_for(provider, configs)
        client = self._client_factory(
            provider.provider_type,
            api_key,
            self._settings.get_base_urls()[provider.id.value],
            timeout=self._settings.REQUEST_TIMEOUT_SECONDS,
        )
        return ResolvedModel(provider=provider, model=model_id, client=client)
