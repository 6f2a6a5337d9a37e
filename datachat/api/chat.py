from __future__ import annotations

import json
import logging
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import TypeAdapter, ValidationError
from typing import Dict

from ..schemas import ChatRequest, ProviderId, ProviderSettings
from ..services.chat_handler import ChatHandler, ChatStream
from ..services.errors import ChatError, InputValidationError
from .deps import get_chat_handler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

PROVIDERS_HEADER = "X-AI-Providers"

_providers_adapter = TypeAdapter(Dict[ProviderId, ProviderSettings])


def _error_response(error: ChatError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def _providers_from_header(raw: str | None) -> dict | None:
    """Parse the providers header. Malformed JSON or a malformed shape is logged and ignored."""
    if not raw:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Ignoring malformed {PROVIDERS_HEADER} header: {e}")
        return None
    if not isinstance(value, dict):
        logger.warning(f"Ignoring {PROVIDERS_HEADER} header: expected a JSON object")
        return None
    try:
        return _providers_adapter.validate_python(value)
    except ValidationError as e:
        logger.warning(f"Ignoring {PROVIDERS_HEADER} header with invalid provider settings: {e.error_count()} errors")
        return None


def _validation_message(error: ValidationError) -> str:
    for err in error.errors():
        loc = err.get("loc") or ()
        if loc and loc[0] == "messages" and (len(loc) == 1 or err.get("type") == "too_short"):
            return "messages array required"
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"Invalid request field '{location}': {first.get('msg')}"


def parse_chat_request(body, header_providers: dict | None) -> ChatRequest:
    if not isinstance(body, dict):
        raise InputValidationError("Request body must be a JSON object")
    if not isinstance(body.get("messages"), list):
        raise InputValidationError("messages array required")
    if body.get("providers") is None and header_providers is not None:
        body = {**body, "providers": header_providers}
    try:
        return ChatRequest.model_validate(body)
    except ValidationError as e:
        raise InputValidationError(_validation_message(e))


async def _event_generator(stream: ChatStream):
    try:
        async for chunk in stream:
            yield f"event: token\ndata: {json.dumps({'text': chunk})}\n\n"
        yield f"event: done\ndata: {json.dumps({'rows': stream.prompt.total_rows, 'rows_shown': stream.prompt.shown_rows})}\n\n"
    except ChatError as e:
        yield f"event: error\ndata: {json.dumps(e.to_dict())}\n\n"
    finally:
        await stream.aclose()


@router.post("")
async def chat(request: Request, handler: ChatHandler = Depends(get_chat_handler)):
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Rejected chat request with unparseable JSON: {e}")
        return _error_response(InputValidationError("Request body is not valid JSON"))

    try:
        chat_request = parse_chat_request(body, _providers_from_header(request.headers.get(PROVIDERS_HEADER)))
        stream = await handler.start(chat_request)
    except ChatError as e:
        logger.info(f"Chat request failed at {e.stage or 'validation'}: {e.status_code} {e.message}")
        return _error_response(e)

    return StreamingResponse(
        _event_generator(stream),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Model-Provider": stream.resolved.provider.id.value,
            "X-Dataset-Rows": str(stream.prompt.total_rows),
            "X-Dataset-Rows-Shown": str(stream.prompt.shown_rows),
        },
    )
