from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    MISSING_MODEL = "MISSING_MODEL"
    MISSING_MESSAGES = "MISSING_MESSAGES"
    INVALID_TEMPERATURE = "INVALID_TEMPERATURE"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    PROVIDER_NOT_SUPPORTED = "PROVIDER_NOT_SUPPORTED"
    STREAMING_NOT_SUPPORTED = "STREAMING_NOT_SUPPORTED"
    MISSING_CREDENTIAL = "MISSING_CREDENTIAL"
    HTTP_ERROR = "HTTP_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_RETRYABLE_KINDS = {ErrorKind.RATE_LIMIT_EXCEEDED, ErrorKind.NETWORK_ERROR}
_TRANSIENT_STATUSES = {408, 409, 429}


def is_transient_status(status: int) -> bool:
    return status in _TRANSIENT_STATUSES or 500 <= status < 600


class ClassifiedError(RuntimeError):
    """Every failure that leaves the dispatch layer.

    `retryable` is advisory only: nothing inside prdgen retries a call.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        provider: str = "",
        retryable: Optional[bool] = None,
        status_code: Optional[int] = None,
    ):
        self.kind = ErrorKind(kind)
        self.message = message or self.kind.value.replace("_", " ").capitalize()
        self.provider = provider
        self.status_code = status_code
        if retryable is None:
            if self.kind is ErrorKind.HTTP_ERROR and status_code is not None:
                retryable = is_transient_status(status_code)
            else:
                retryable = self.kind in _RETRYABLE_KINDS
        self.retryable = retryable
        super().__init__(self.message)

    def with_provider(self, provider: str) -> "ClassifiedError":
        if not self.provider:
            self.provider = provider
        return self

    def to_dict(self) -> dict:
        return {
            "code": self.kind.value,
            "message": self.message,
            "provider": self.provider,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"ClassifiedError({self.kind.value}, {self.message!r}, provider={self.provider!r})"
