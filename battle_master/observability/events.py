"""Structured observability events for generative-AI and playback telemetry."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of observability events."""

    LLM_CALL_START = "llm_call_start"
    LLM_CALL_SUCCESS = "llm_call_success"
    LLM_CALL_ERROR = "llm_call_error"
    HTTP_RETRY = "http_retry"
    PLAYBACK_START = "playback_start"
    PLAYBACK_FINISHED = "playback_finished"
    PLAYBACK_STOPPED = "playback_stopped"


class ObservabilityEvent(BaseModel):
    """Base class for all observability events."""

    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: Optional[str] = None
    request_id: Optional[str] = None
    duration_ms: Optional[float] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class LLMCallEvent(ObservabilityEvent):
    """Event for a generateContent call."""

    model: str
    request_kind: str
    system_instruction: Optional[str] = None
    user_query: Optional[str] = None
    temperature: Optional[float] = None
    grounded: bool = False

    # Response fields (populated on success)
    response_content: Optional[str] = None
    citations_count: Optional[int] = None
    audio_bytes: Optional[int] = None

    # Error fields (populated on error)
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class RetryEvent(ObservabilityEvent):
    """Event for a retried HTTP attempt."""

    event_type: EventType = EventType.HTTP_RETRY
    url: str
    attempt: int
    delay_seconds: float
    reason: str
    status: Optional[int] = None


class PlaybackEvent(ObservabilityEvent):
    """Event for narration playback lifecycle."""

    voice_name: Optional[str] = None
    sample_rate: Optional[int] = None
    duration_seconds: Optional[float] = None
