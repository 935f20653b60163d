"""Observability module for generative-AI and playback telemetry."""

from battle_master.observability.events import (
    EventType,
    LLMCallEvent,
    ObservabilityEvent,
    PlaybackEvent,
    RetryEvent,
)
from battle_master.observability.logger import ObservabilityLogger, get_observability_logger

__all__ = [
    "EventType",
    "LLMCallEvent",
    "ObservabilityEvent",
    "ObservabilityLogger",
    "PlaybackEvent",
    "RetryEvent",
    "get_observability_logger",
]
