from __future__ import annotations


class ChatError(Exception):
    """Base class for errors reported to the chat client with a status code."""

    status_code = 500
    kind = "internal_error"

    def __init__(self, message: str, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.kind}


class InputValidationError(ChatError):
    status_code = 400
    kind = "invalid_request"


class DatasetError(ChatError):
    """Raised when the uploaded dataset is empty or yields no rows."""

    status_code = 400

    NO_DATASET = "no_dataset"
    PARSE_FAILURE = "parse_failure"

    def __init__(self, message: str, kind: str = PARSE_FAILURE, stage: str | None = None):
        super().__init__(message, stage)
        self.kind = kind


class ModelSelectionError(ChatError):
    status_code = 400
    kind = "unknown_model"


class AuthenticationError(ChatError):
    status_code = 401
    kind = "missing_api_key"

    def __init__(self, message: str, provider: str | None = None, stage: str | None = None, rejected: bool = False):
        super().__init__(message, stage)
        self.provider = provider
        if rejected:
            self.kind = "invalid_api_key"


class ProviderError(ChatError):
    status_code = 500
    kind = "provider_error"
