from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Successful responses are wrapped as ``{"data": ...}``."""

    data: T


class StatusPayload(BaseModel):
    status: str


class CountPayload(BaseModel):
    count: int


def wrap(data: T) -> dict[str, T]:
    return {"data": data}
