from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from ..events import KNOWN_EVENT_TYPES


class CreateEventRequest(BaseModel):
    event_type: str
    payload_json: dict[str, Any] = Field(default_factory=dict)
    build_id: str | None = None
    ref: str = ""
    commit: str = ""

    @field_validator("event_type")
    @classmethod
    def known_event_type(cls, v: str) -> str:
        v = v.strip()
        if v not in KNOWN_EVENT_TYPES:
            raise ValueError(f"unknown event type {v!r}; expected one of {', '.join(KNOWN_EVENT_TYPES)}")
        return v


class CreateEventResponse(BaseModel):
    event_id: str
    event_type: str


class ClaimRequest(BaseModel):
    agent_id: str


class ClaimedEvent(BaseModel):
    event_id: str
    event_type: str
    payload_json: dict[str, Any]
    build_id: str
    ref: str
    commit: str
    lease_expires_at: str


class CompleteRequest(BaseModel):
    agent_id: str
    status: Literal["ok", "failed", "noop"]
    details: dict[str, Any] = Field(default_factory=dict)


class EventResponse(BaseModel):
    id: str
    event_type: str
    build_id: str | None
    ref: str
    commit: str
    status: str
    verdict: dict[str, Any] | None
    logs: str | None
    created_at: datetime
