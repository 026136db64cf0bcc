from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class PullReply(BaseModel):
    """`GET <endpoint>?key=K` -> 200. `data` is null until the key is first pushed."""

    message: str
    data: dict[str, Any] | None = None
    timestamp: str | None = None


class PushReply(BaseModel):
    """`POST <endpoint>?key=K` -> 200 after the slot is created or replaced."""

    message: str
    timestamp: str


class ErrorReply(BaseModel):
    error: str
    details: str | None = None
