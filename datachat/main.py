from __future__ import annotations

import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, settings as default_settings
from .api.chat import router as chat_router
from .api.datasets import router as datasets_router
from .api.providers import router as providers_router
from .services.chat_handler import ChatHandler
from .services.dataset import DefaultDatasetCache
from .services.providers import ClientFactory, ProviderRegistry
from .services.llm_client import create_llm_client

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s: %(message)s")


def create_app(settings: Settings | None = None, client_factory: ClientFactory = create_llm_client) -> FastAPI:
    """Build the app and its per-process collaborators."""
    settings = settings or default_settings

    app = FastAPI(title="Data Chat", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    registry = ProviderRegistry(settings, client_factory=client_factory)
    dataset_cache = DefaultDatasetCache(settings.DEFAULT_DATASET_SOURCE, timeout=settings.REQUEST_TIMEOUT_SECONDS)
    app.state.settings = settings
    app.state.registry = registry
    app.state.dataset_cache = dataset_cache
    app.state.chat_handler = ChatHandler(settings, registry, dataset_cache)

    app.include_router(chat_router)
    app.include_router(datasets_router)
    app.include_router(providers_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "default_dataset_loaded": dataset_cache.loaded}

    return app


app = create_app()
