from __future__ import annotations

from fastapi import Request

from ..services.chat_handler import ChatHandler
from ..services.dataset import DefaultDatasetCache
from ..services.providers import ProviderRegistry


def get_chat_handler(request: Request) -> ChatHandler:
    return request.app.state.chat_handler


def get_registry(request: Request) -> ProviderRegistry:
    return request.app.state.registry


def get_dataset_cache(request: Request) -> DefaultDatasetCache:
    return request.app.state.dataset_cache
