"""Observability logger for structured telemetry."""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

from battle_master.observability.events import (
    EventType,
    LLMCallEvent,
    ObservabilityEvent,
    PlaybackEvent,
    RetryEvent,
)

logger = logging.getLogger(__name__)


class ObservabilityLogger:
    """Central logger for generative-AI call, retry and playback events.

    Writes structured events to JSON Lines files for later analysis.
    """

    _instance: Optional["ObservabilityLogger"] = None

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
        log_full_content: bool = False,
        max_content_length: int = 500,
    ):
        """Initialize observability logger.

        Args:
            log_dir: Directory for log files (default: data/logs)
            enabled: Whether logging is enabled
            log_full_content: Whether to log full prompt/response content
            max_content_length: Max length for truncated content
        """
        self.enabled = enabled
        self.log_full_content = log_full_content
        self.max_content_length = max_content_length

        if log_dir is None:
            log_dir = Path("data/logs")
        self.log_dir = log_dir
        if self.enabled:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self._log_files: dict[str, Path] = {
            "llm": self.log_dir / "llm_calls.jsonl",
            "http": self.log_dir / "http_retries.jsonl",
            "audio": self.log_dir / "playback.jsonl",
        }

    @classmethod
    def get_instance(cls) -> "ObservabilityLogger":
        """Get or create singleton instance configured from settings."""
        if cls._instance is None:
            from battle_master.config import get_settings

            settings = get_settings()
            cls._instance = cls(
                log_dir=settings.observability_dir,
                enabled=settings.observability_enabled,
            )
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Drop the singleton so the next access re-reads settings."""
        cls._instance = None

    def generate_request_id(self) -> str:
        """Generate a unique request ID."""
        return str(uuid.uuid4())[:8]

    def _write_event(self, event: ObservabilityEvent, log_type: str) -> None:
        """Write event to appropriate log file."""
        if not self.enabled:
            return

        try:
            log_file = self._log_files.get(log_type)
            if log_file:
                with open(log_file, "a") as f:
                    f.write(event.model_dump_json() + "\n")
        except OSError as e:
            logger.warning(f"Failed to write observability event: {e}")

    def _truncate(self, content: Optional[str]) -> Optional[str]:
        """Truncate content if needed."""
        if content is None or self.log_full_content:
            return content
        if len(content) <= self.max_content_length:
            return content
        return content[: self.max_content_length] + "..."

    # Generative-AI call logging

    @contextmanager
    def llm_call(
        self,
        model: str,
        request_kind: str,
        system_instruction: Optional[str] = None,
        user_query: Optional[str] = None,
        temperature: Optional[float] = None,
        grounded: bool = False,
        request_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        """Context manager for logging generateContent calls.

        Usage:
            with obs.llm_call(model, "generate", ...) as event:
                result = await client.generate_text(...)
                event.response_content = result.text
        """
        start_time = time.time()
        request_id = request_id or self.generate_request_id()

        event = LLMCallEvent(
            event_type=EventType.LLM_CALL_START,
            model=model,
            request_kind=request_kind,
            system_instruction=self._truncate(system_instruction),
            user_query=self._truncate(user_query),
            temperature=temperature,
            grounded=grounded,
            request_id=request_id,
            session_id=session_id,
        )

        try:
            yield event
            event.event_type = EventType.LLM_CALL_SUCCESS
            event.response_content = self._truncate(event.response_content)

        except Exception as e:
            event.event_type = EventType.LLM_CALL_ERROR
            event.error_type = type(e).__name__
            event.error_message = str(e)[:200]
            raise

        finally:
            event.duration_ms = (time.time() - start_time) * 1000
            self._write_event(event, "llm")

    def log_retry(
        self,
        url: str,
        attempt: int,
        delay_seconds: float,
        reason: str,
        status: Optional[int] = None,
    ) -> None:
        """Log a retried HTTP attempt."""
        # Strip the query string so API keys never reach the log files
        event = RetryEvent(
            url=url.split("?", 1)[0],
            attempt=attempt,
            delay_seconds=delay_seconds,
            reason=reason,
            status=status,
        )
        self._write_event(event, "http")

    def log_playback(
        self,
        event_type: EventType,
        voice_name: Optional[str] = None,
        sample_rate: Optional[int] = None,
        duration_seconds: Optional[float] = None,
        session_id: Optional[str] = None,
    ) -> None:
        """Log a playback lifecycle event."""
        event = PlaybackEvent(
            event_type=event_type,
            voice_name=voice_name,
            sample_rate=sample_rate,
            duration_seconds=duration_seconds,
            session_id=session_id,
        )
        self._write_event(event, "audio")

    # Utility methods

    def get_recent_events(
        self,
        log_type: str,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Read recent events from a log file."""
        log_file = self._log_files.get(log_type)
        if not log_file or not log_file.exists():
            return []

        events = []
        with open(log_file) as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def get_stats(self, log_type: str) -> dict[str, Any]:
        """Get basic statistics for a log type."""
        events = self.get_recent_events(log_type, limit=1000)
        if not events:
            return {"total": 0}

        total = len(events)
        errors = sum(1 for e in events if "error" in e.get("event_type", ""))
        avg_duration = sum(e.get("duration_ms") or 0 for e in events) / total

        return {
            "total": total,
            "errors": errors,
            "error_rate": errors / total if total > 0 else 0,
            "avg_duration_ms": avg_duration,
        }


def get_observability_logger() -> ObservabilityLogger:
    """Get the global observability logger instance."""
    return ObservabilityLogger.get_instance()
