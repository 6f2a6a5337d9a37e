from __future__ import annotations

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Literal, Optional, List, Dict


class ProviderId(str, Enum):
    """Supported model providers."""
    OPENAI = "openai"
    GOOGLE = "google"
    ANTHROPIC = "anthropic"


class MessagePart(BaseModel):
    """A typed part of a chat message. Only text parts carry content."""
    type: str
    text: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class ChatMessage(BaseModel):
    """A chat message in either parts form or plain content form."""
    role: Literal["user", "assistant"]
    content: Optional[str] = None
    parts: Optional[List[MessagePart]] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def text(self) -> str:
        text = "".join(p.text or "" for p in self.parts or [] if p.type == "text")
        return text or self.content or ""

    def to_provider_message(self) -> dict:
        return {"role": self.role, "content": self.text}


class ModelDescriptor(BaseModel):
    """A model offered by a provider."""
    id: str
    name: Optional[str] = None
    provider: Optional[ProviderId] = None

    model_config = ConfigDict(extra="ignore")


class ProviderSettings(BaseModel):
    """Per-request configuration for one provider."""
    name: Optional[str] = None
    api_key: str = Field("", alias="apiKey")
    models: List[ModelDescriptor] = []

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("api_key", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v


class ChatRequest(BaseModel):
    """Schema for POST /api/chat bodies."""
    messages: List[ChatMessage] = Field(..., min_length=1)
    selected_model: Optional[str] = Field(None, alias="selectedModel")
    uploaded_csv_data: Optional[str] = Field(None, alias="uploadedCsvData")
    providers: Dict[ProviderId, ProviderSettings] = {}

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @field_validator("providers", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return {} if v is None else v

    def provider_messages(self) -> list[dict]:
        return [m.to_provider_message() for m in self.messages]


class ProviderInfo(BaseModel):
    """Schema for provider catalog entries."""
    id: ProviderId
    name: str
    server_key_configured: bool
    models: List[ModelDescriptor]


class ProvidersResponse(BaseModel):
    providers: List[ProviderInfo]
    default_model: str
    server_keys_enabled: bool


class DatasetPreviewRequest(BaseModel):
    csv: str


class DatasetSummary(BaseModel):
    """Schema for dataset preview responses."""
    source: str
    columns: List[str]
    row_count: int
    preview: List[dict] = []
