from __future__ import annotations

import logging
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from ..schemas import DatasetPreviewRequest, DatasetSummary
from ..services.dataset import Dataset, DefaultDatasetCache, parse_uploaded_dataset
from ..services.errors import DatasetError
from .deps import get_dataset_cache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/datasets", tags=["datasets"])

PREVIEW_ROWS = 5


def _summary(dataset: Dataset) -> dict:
    return {
        "source": dataset.source,
        "columns": dataset.columns,
        "row_count": len(dataset),
        "preview": dataset.rows[:PREVIEW_ROWS],
    }


def _parse_or_400(text: str) -> Dataset:
    try:
        return parse_uploaded_dataset(text)
    except DatasetError as e:
        raise HTTPException(400, e.to_dict())


@router.post("/preview", response_model=DatasetSummary)
async def preview_dataset(body: DatasetPreviewRequest):
    """Parse CSV text the way the chat endpoint would and summarize it."""
    return _summary(_parse_or_400(body.csv))


@router.post("/upload", response_model=DatasetSummary)
async def upload_dataset(file: UploadFile = File(...)):
    content = await file.read()
    try:
        text = content.decode("utf-8-sig")  # Handle BOM
    except UnicodeDecodeError:
        raise HTTPException(400, {"detail": "CSV file must be UTF-8 encoded", "error": DatasetError.PARSE_FAILURE})
    dataset = _parse_or_400(text)
    logger.info(f"Previewed upload {file.filename}: {len(dataset)} rows")
    return _summary(dataset)


@router.get("/default", response_model=DatasetSummary)
async def default_dataset(cache: DefaultDatasetCache = Depends(get_dataset_cache)):
    return _summary(await cache.get())
