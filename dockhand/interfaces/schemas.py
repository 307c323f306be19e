"""
Pydantic schemas for the ``data`` part of response envelopes.

These schemas define the API contract. No business logic belongs here.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthData(BaseModel):
    status: str
    version: str


class SystemInfoData(BaseModel):
    """Static facts about the host."""

    hostname: str
    platform: str
    python: str
    uptime_seconds: int
    cpu: dict[str, int]
    memory: dict[str, int]


class PublishEventData(BaseModel):
    """Outcome of publishing one event.

    Attributes:
        topic: Topic the event was published on.
        delivered: Number of stream sessions that queued the event.
    """

    topic: str
    delivered: int = Field(..., ge=0)


class SessionItem(BaseModel):
    session_id: str
    mode: str
    type: str
    state: str
    emitted: int
    opened_at: str


class StreamStatusData(BaseModel):
    """Stream session manager statistics."""

    total_sessions: int
    active_sessions: int
    total_emissions: int
    producer_failures: int
    skipped_ticks: int
    dropped_events: int
    sessions: list[SessionItem]
    topics: dict[str, int]


class CancelSessionData(BaseModel):
    session_id: str
    cancelled: bool
    close_reason: Optional[str] = None


MetricData = dict[str, Any]
