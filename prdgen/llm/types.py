from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Sequence, Tuple

Role = Literal["system", "user", "assistant"]
FinishReason = Literal["stop", "length", "content_filter", "tool_calls"]

ROLES: Tuple[str, ...] = ("system", "user", "assistant")
FINISH_REASONS: Tuple[str, ...] = ("stop", "length", "content_filter", "tool_calls")


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown message role: {self.role!r} (expected one of {list(ROLES)})")

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class Request:
    """A single chat/completion call.

    Messages keep the exact order they were given in; adapters read the
    request and never write back into it.
    """

    model: str
    messages: Sequence[Message]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages or ()))


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: Optional[int] = None

    def __post_init__(self) -> None:
        if self.total_tokens is None:
            self.total_tokens = self.prompt_tokens + self.completion_tokens


@dataclass
class Response:
    content: str
    model: str
    usage: Usage = field(default_factory=Usage)
    finish_reason: FinishReason = "stop"
