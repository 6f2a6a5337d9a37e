from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from ..schemas import ModelDescriptor, ProvidersResponse
from ..services.providers import ProviderRegistry, classify_model
from .deps import get_registry

router = APIRouter(prefix="/api/providers", tags=["providers"])


@router.get("", response_model=ProvidersResponse)
async def get_providers(request: Request, registry: ProviderRegistry = Depends(get_registry)):
    """List providers, their default models and the default model selection."""
    settings = request.app.state.settings
    return {
        "providers": registry.list_providers(),
        "default_model": settings.DEFAULT_MODEL,
        "server_keys_enabled": settings.ALLOW_SERVER_API_KEYS,
    }


@router.get("/{provider_id}/models", response_model=list[ModelDescriptor])
async def get_provider_models(provider_id: str, registry: ProviderRegistry = Depends(get_registry)):
    provider = registry.get_provider(provider_id)
    if not provider:
        raise HTTPException(404, f"Unknown provider: {provider_id}")
    return [m.model_copy(update={"provider": provider.id}) for m in provider.models]


@router.get("/classify/{model_id:path}")
async def classify(model_id: str):
    """Report which provider a model identifier belongs to."""
    provider_id = classify_model(model_id)
    if provider_id is None:
        raise HTTPException(400, f"Unknown model '{model_id}'")
    return {"model": model_id, "provider": provider_id.value}
