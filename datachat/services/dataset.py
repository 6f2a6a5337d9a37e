from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from .csv_parser import Value, parse_csv
from .errors import DatasetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dataset:
    rows: list[dict[str, Value]]
    source: str  # "upload" | "default"
    columns: list[str] = field(default_factory=list)

    @classmethod
    def from_rows(cls, rows: list[dict[str, Value]], source: str) -> "Dataset":
        columns = list(rows[0].keys()) if rows else []
        return cls(rows=rows, source=source, columns=columns)

    def __len__(self) -> int:
        return len(self.rows)


def parse_uploaded_dataset(text: str | None) -> Dataset:
    """Parse caller-supplied CSV text, raising DatasetError when it is unusable."""
    if text is None or not text.lstrip("\ufeff").strip():
        raise DatasetError("Uploaded dataset is empty. Upload a CSV file with a header row and data rows.",
                           kind=DatasetError.NO_DATASET)
    rows = parse_csv(text)
    if not rows:
        raise DatasetError("Uploaded dataset could not be parsed: expected a header row followed by at least one data row.",
                           kind=DatasetError.PARSE_FAILURE)
    return Dataset.from_rows(rows, source="upload")


async def read_source(source: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None) -> str:
    """Read raw CSV text from an http(s) URL or a local file path."""
    if source.startswith(("http://", "https://")):
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            response = await client.get(source, follow_redirects=True)
            response.raise_for_status()
        return response.content.decode("utf-8-sig")

    path = Path(source)
    if not path.exists():
        raise FileNotFoundError(f"Dataset file not found: {source}")
    return (await asyncio.to_thread(path.read_bytes)).decode("utf-8-sig")


class DefaultDatasetCache:
    """Single-assignment cell holding the bundled default dataset.

    The first caller loads and parses the source while concurrent callers wait
    on the lock and then share the result. A failed load yields an empty dataset
    and is not cached, so a later request tries again.
    """

    def __init__(self, source: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self._source = source
        self._timeout = timeout
        self._transport = transport
        self._dataset: Dataset | None = None
        self._lock = asyncio.Lock()
        self.load_count = 0

    @property
    def loaded(self) -> bool:
        return self._dataset is not None

    async def get(self) -> Dataset:
        if self._dataset is not None:
            return self._dataset

        async with self._lock:
            if self._dataset is None:
                self.load_count += 1
                try:
                    text = await read_source(self._source, self._timeout, self._transport)
                except Exception as e:
                    logger.error(f"Failed to load default dataset from {self._source}: {e}")
                    return Dataset.from_rows([], source="default")
                self._dataset = Dataset.from_rows(parse_csv(text), source="default")
                logger.info(f"Loaded default dataset: {len(self._dataset)} rows, {len(self._dataset.columns)} columns")
            return self._dataset
