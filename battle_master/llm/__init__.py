"""Generative-AI client layer with resilient HTTP transport."""

from battle_master.llm.base import (
    AudioDecodeFailure,
    CallError,
    Citation,
    ErrorKind,
    HttpError,
    LLMError,
    MalformedResponse,
    NetworkFailure,
    RateLimited,
    RetriesExhausted,
    SpeechResult,
    TextResult,
)
from battle_master.llm.gemini import GeminiClient
from battle_master.llm.http import ResilientCaller


def create_client_from_settings(settings=None) -> GeminiClient:
    """Create a generateContent client from application settings."""
    from battle_master.config import get_settings

    settings = settings or get_settings()
    caller = ResilientCaller(
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
    )
    return GeminiClient(
        caller,
        api_key=settings.api_key,
        base_url=settings.api_base_url,
        text_model=settings.text_model,
        tts_model=settings.tts_model,
    )


__all__ = [
    "AudioDecodeFailure",
    "CallError",
    "Citation",
    "ErrorKind",
    "GeminiClient",
    "HttpError",
    "LLMError",
    "MalformedResponse",
    "NetworkFailure",
    "RateLimited",
    "ResilientCaller",
    "RetriesExhausted",
    "SpeechResult",
    "TextResult",
    "create_client_from_settings",
]
